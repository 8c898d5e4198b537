"""An HTTP client that retries requests failing with temporary network errors."""

from __future__ import annotations

import http.client
import io
import random
import time
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple

import requests

RequestOption = Callable[[requests.Request], None]

_MIN_RETRY_DELAY = 0.2  # seconds
_MAX_RANDOM_RETRY_DELAY_MS = 800
_RETRIES = 2
_SERVICE_UNAVAILABLE = 503

_EOF_ERRORS = (EOFError, http.client.IncompleteRead, http.client.RemoteDisconnected)


class TemporaryNetworkError(requests.exceptions.ConnectionError):
    """A request kept failing with a temporary network error."""

    def __init__(self, method: str, url: str, error: BaseException) -> None:
        super().__init__(f'{method} "{url}": Temporary network error: {error}')
        self.method = method
        self.url = url
        self.error = error


class _RetryBody:
    """A readable, seekable request body that can be sent more than once."""

    def __init__(self, body: Any) -> None:
        self._body = body

    def read(self, size: int = -1) -> Any:
        return self._body.read(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._body.seek(offset, whence)

    def tell(self) -> int:
        return self._body.tell()

    def close(self) -> None:
        closer = getattr(self._body, "close", None)
        if closer is not None:
            closer()


def retry_body(body: Any) -> Optional[_RetryBody]:
    """Wrap a readable, seekable body so that it can be re-sent; None stays None."""
    if body is None:
        return None
    if isinstance(body, (bytes, bytearray)):
        body = io.BytesIO(bytes(body))
    if not (hasattr(body, "read") and hasattr(body, "seek")):
        raise TypeError("request body must be readable and seekable")
    return _RetryBody(body)


def with_header(key: str, value: str) -> RequestOption:
    """Return a request option that sets the header key to value."""

    def apply(request: requests.Request) -> None:
        request.headers[key] = value

    return apply


def _causes(err: BaseException) -> Iterator[BaseException]:
    seen = set()
    pending = [err]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        linked = (
            current.__cause__,
            current.__context__,
            getattr(current, "reason", None),
            *current.args,
        )
        pending.extend(item for item in linked if isinstance(item, BaseException))


def is_temporary(err: Optional[BaseException]) -> bool:
    """Report whether err is a request error that may go away on retry."""
    if not isinstance(err, requests.exceptions.RequestException):
        return False
    if isinstance(err, requests.exceptions.Timeout):
        return True
    # A dropped connection may recover once the server is back.
    return any(isinstance(cause, _EOF_ERRORS) for cause in _causes(err))


def _retry_source(data: Any) -> Any:
    if data is None or isinstance(data, (bytes, bytearray, str, list, tuple, dict)):
        return None
    if hasattr(data, "read") and hasattr(data, "seek"):
        return data
    raise TypeError("request cannot be retried: body is not seekable")


def _endpoint_url(endpoint: str, path: str) -> str:
    return endpoint.rstrip("/") + "/" + path.lstrip("/")


class RetryClient:
    """Sends HTTP requests and retries those that fail temporarily."""

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self.session = session if session is not None else requests.Session()

    def send(self, method: str, endpoints: Sequence[str], path: str, body: Any, *args: RequestOption) -> requests.Response:
        """Send the request to the endpoints, from a random one on, until one answers."""
        if not endpoints:
            raise ValueError("no server endpoint")
        start = random.randrange(len(endpoints))
        ordered = [*endpoints[start:], *endpoints[:start]]
        error: Optional[requests.RequestException] = None
        for endpoint in ordered:
            wrapped = retry_body(body)
            if wrapped is not None and error is not None:
                wrapped.seek(0)
            request = requests.Request(method, _endpoint_url(endpoint, path), data=wrapped)
            for option in args:
                option(request)
            try:
                return self.do(request)
            except requests.RequestException as exc:
                error = exc
        assert error is not None
        raise error

    def get(self, url: str) -> requests.Response:
        """Issue a GET to url."""
        return self.do(requests.Request("GET", url))

    def post(self, url: str, content_type: str, body: Any) -> requests.Response:
        """Issue a POST of body to url with the given content type."""
        request = requests.Request(
            "POST", url, data=retry_body(body), headers={"Content-Type": content_type}
        )
        return self.do(request)

    def do(self, request: requests.Request) -> requests.Response:
        """Send request, retrying a few times on temporary errors or 503 responses."""
        body = _retry_source(request.data)
        retries = _RETRIES
        response, error = self._attempt(request, body, rewind=False)
        while retries > 0 and (
            is_temporary(error)
            or (response is not None and response.status_code == _SERVICE_UNAVAILABLE)
        ):
            time.sleep(_MIN_RETRY_DELAY + random.randrange(_MAX_RANDOM_RETRY_DELAY_MS) / 1000)
            retries -= 1
            if response is not None:
                response.close()
            response, error = self._attempt(request, body, rewind=True)
        if is_temporary(error):
            raise TemporaryNetworkError(request.method, request.url, error) from error
        if error is not None:
            raise error
        assert response is not None
        return response

    def _attempt(
        self, request: requests.Request, body: Any, rewind: bool
    ) -> Tuple[Optional[requests.Response], Optional[requests.RequestException]]:
        if rewind and body is not None:
            body.seek(0)
        prepared = self.session.prepare_request(request)
        settings = self.session.merge_environment_settings(prepared.url, {}, None, None, None)
        try:
            return self.session.send(prepared, **settings), None
        except requests.RequestException as exc:
            return None, exc