"""Streams of error and audit events emitted by a key server."""

from __future__ import annotations

import codecs
import ipaddress
import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Generic, Iterator, Optional, TypeVar, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_CHUNK_SIZE = 4096
_ZERO_TIME_TEXT = "0001-01-01T00:00:00Z"
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_TIME_PATTERN = re.compile(
    r"(\d{4}-\d{2}-\d{2})T(\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})\Z"
)

T = TypeVar("T")


def _decode_json(reader: Any) -> Iterator[Any]:
    """Yield consecutive JSON values read from a binary or text reader."""
    decoder = json.JSONDecoder()
    text_decoder = codecs.getincrementaldecoder("utf-8")()
    buffer = ""
    eof = False
    while True:
        buffer = buffer.lstrip(" \t\r\n")
        if buffer:
            try:
                value, end = decoder.raw_decode(buffer)
            except json.JSONDecodeError:
                if eof:
                    raise
            else:
                is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
                # A number that ends the buffer may continue in the next chunk.
                if not (is_number and end == len(buffer) and not eof):
                    buffer = buffer[end:]
                    yield value
                    continue
        elif eof:
            return
        chunk = reader.read(_CHUNK_SIZE)
        if not chunk:
            eof = True
            if isinstance(chunk, bytes):
                buffer += text_decoder.decode(b"", final=True)
        elif isinstance(chunk, bytes):
            buffer += text_decoder.decode(chunk)
        else:
            buffer += chunk


def _as_object(value: Any) -> dict:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    raise ValueError(f"cannot decode JSON {type(value).__name__} into an object")


def _field(obj: dict, key: str, kind: type, default: Any) -> Any:
    value = obj.get(key)
    if value is None:
        return default
    if kind is int:
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, kind)
    if not valid:
        raise ValueError(f"invalid JSON type for field {key!r}: {type(value).__name__}")
    return value


def _parse_time(text: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; the zero time and a missing value give None."""
    if text is None:
        return None
    match = _TIME_PATTERN.match(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}")
    date, clock, fraction, offset = match.groups()
    iso = f"{date}T{clock}"
    if fraction:
        iso += "." + fraction[:6].ljust(6, "0")
    iso += "+00:00" if offset == "Z" else offset
    value = datetime.fromisoformat(iso)
    return None if value == _ZERO_TIME else value


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return _ZERO_TIME_TEXT
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def _dump(record: dict) -> bytes:
    return (json.dumps(record, separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")


class CountingWriter:
    """Wraps a binary writer and counts the bytes written through it."""

    def __init__(self, writer: Any) -> None:
        self.writer = writer
        self.count = 0

    def write(self, data: bytes) -> int:
        written = self.writer.write(data)
        if written is None:
            written = len(data)
        self.count += written
        return written


class _Stream(Generic[T]):
    """Iterator over a stream of JSON objects that closes its reader at the end."""

    def __init__(self, reader: Any) -> None:
        self._reader = reader
        self._values = _decode_json(reader)
        self._error: Optional[BaseException] = None
        self._closed = False

    def _convert(self, obj: dict) -> T:
        raise NotImplementedError

    def _encode(self, obj: dict) -> dict:
        raise NotImplementedError

    def _write_after_close(self) -> int:
        return 0

    def _read(self) -> Optional[dict]:
        try:
            return _as_object(next(self._values))
        except StopIteration:
            self.close()
            return None
        except Exception as exc:
            self._error = exc
            raise

    def __iter__(self) -> "_Stream[T]":
        return self

    def __next__(self) -> T:
        if self._closed or self._error is not None:
            raise StopIteration
        obj = self._read()
        if obj is None:
            raise StopIteration
        try:
            return self._convert(obj)
        except Exception as exc:
            self._error = exc
            raise

    def write_to(self, writer: Any) -> int:
        """Encode all remaining entries to writer and return the bytes written."""
        if self._error is not None:
            raise self._error
        if self._closed:
            return self._write_after_close()
        counter = CountingWriter(writer)
        while (obj := self._read()) is not None:
            try:
                counter.write(_dump(self._encode(obj)))
            except Exception as exc:
                self._error = exc
                raise
        return counter.count

    def close(self) -> None:
        """Close the stream and the underlying reader."""
        if self._closed:
            return
        self._closed = True
        closer = getattr(self._reader, "close", None)
        if closer is None:
            return
        try:
            closer()
        except Exception as exc:
            if self._error is None:
                self._error = exc
            raise

    def __enter__(self) -> "_Stream[T]":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


@dataclass(frozen=True)
class ErrorEvent:
    """An error logged by the server."""

    message: str = ""


@dataclass(frozen=True)
class AuditEvent:
    """The record of a response the server sent."""

    timestamp: Optional[datetime] = None
    api_path: str = ""
    client_ip: Optional[IPAddress] = None
    client_identity: str = ""
    status_code: int = 0
    response_time: timedelta = timedelta(0)


class ErrorStream(_Stream[ErrorEvent]):
    """Iterates over a stream of ErrorEvents."""

    def __iter__(self) -> "ErrorStream":
        return self

    def __next__(self) -> ErrorEvent:
        return super().__next__()

    def write_to(self, writer: Any) -> int:
        return super().write_to(writer)

    def close(self) -> None:
        super().close()

    def __enter__(self) -> "ErrorStream":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _convert(self, obj: dict) -> ErrorEvent:
        return ErrorEvent(message=_field(obj, "message", str, ""))

    def _encode(self, obj: dict) -> dict:
        return {"message": _field(obj, "message", str, "")}


def _audit_fields(obj: dict) -> tuple:
    request = _as_object(obj.get("request"))
    response = _as_object(obj.get("response"))
    timestamp = _parse_time(_field(obj, "time", str, None))
    ip_text = _field(request, "ip", str, "")
    ip = ipaddress.ip_address(ip_text) if ip_text else None
    path = _field(request, "path", str, "")
    identity = _field(request, "identity", str, "")
    code = _field(response, "code", int, 0)
    nanoseconds = _field(response, "time", int, 0)
    return timestamp, path, ip, identity, code, nanoseconds


class AuditStream(_Stream[AuditEvent]):
    """Iterates over a stream of AuditEvents."""

    def __iter__(self) -> "AuditStream":
        return self

    def __next__(self) -> AuditEvent:
        return super().__next__()

    def write_to(self, writer: Any) -> int:
        return super().write_to(writer)

    def close(self) -> None:
        super().close()

    def __enter__(self) -> "AuditStream":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _convert(self, obj: dict) -> AuditEvent:
        timestamp, path, ip, identity, code, nanoseconds = _audit_fields(obj)
        return AuditEvent(
            timestamp=timestamp,
            api_path=path,
            client_ip=ip,
            client_identity=identity,
            status_code=code,
            response_time=timedelta(microseconds=nanoseconds / 1000),
        )

    def _encode(self, obj: dict) -> dict:
        timestamp, path, ip, identity, code, nanoseconds = _audit_fields(obj)
        return {
            "time": _format_time(timestamp),
            "request": {"ip": str(ip) if ip else "", "path": path, "identity": identity},
            "response": {"code": code, "time": nanoseconds},
        }