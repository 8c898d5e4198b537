"""Server metric snapshots, server state and API descriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Mapping


def _nanoseconds(value: int) -> timedelta:
    return timedelta(microseconds=value / 1000)


def _integer(value: Any, name: str, unsigned: bool) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"invalid JSON type for field {name!r}: {type(value).__name__}")
    if unsigned and value < 0:
        raise ValueError(f"invalid value for field {name!r}: {value} is negative")
    return value


def _histogram_key(key: Any) -> int:
    if isinstance(key, bool):
        raise ValueError(f"invalid histogram bucket: {key!r}")
    if isinstance(key, int):
        return key
    if isinstance(key, str):
        try:
            return int(key)
        except ValueError:
            raise ValueError(f"invalid histogram bucket: {key!r}") from None
    raise ValueError(f"invalid histogram bucket: {key!r}")


@dataclass
class Metric:
    """A snapshot of a key server's metrics."""

    request_ok: int = 0
    request_err: int = 0
    request_fail: int = 0
    request_active: int = 0

    audit_events: int = 0
    error_events: int = 0

    # Cumulative buckets: each maps a latency bound to the number of
    # responses that took that long or less.
    latency_histogram: Dict[timedelta, int] = field(default_factory=dict)

    up_time: timedelta = timedelta(0)

    cpus: int = 0
    usable_cpus: int = 0
    threads: int = 0

    heap_alloc: int = 0
    heap_objects: int = 0
    stack_alloc: int = 0

    def request_n(self) -> int:
        """Return the total number of received requests."""
        return self.request_ok + self.request_err + self.request_fail

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Metric":
        """Build a Metric from the server's JSON representation."""
        if not isinstance(data, Mapping):
            raise ValueError(f"cannot decode JSON {type(data).__name__} into a metric")

        def uint(name: str) -> int:
            return _integer(data.get(name), name, unsigned=True)

        def sint(name: str) -> int:
            return _integer(data.get(name), name, unsigned=False)

        histogram = data.get("kes_http_response_time")
        if histogram is None:
            histogram = {}
        if not isinstance(histogram, Mapping):
            raise ValueError("invalid JSON type for field 'kes_http_response_time'")

        return cls(
            request_ok=uint("kes_http_request_success"),
            request_err=uint("kes_http_request_error"),
            request_fail=uint("kes_http_request_failure"),
            request_active=uint("kes_http_request_active"),
            audit_events=uint("kes_log_audit_events"),
            error_events=uint("kes_log_error_events"),
            latency_histogram={
                _nanoseconds(_histogram_key(key)): _integer(count, "kes_http_response_time", unsigned=True)
                for key, count in histogram.items()
            },
            up_time=_nanoseconds(sint("kes_system_up_time")),
            cpus=sint("kes_system_num_cpu"),
            usable_cpus=sint("kes_system_num_cpu_used"),
            threads=sint("kes_system_num_threads"),
            heap_alloc=uint("kes_system_mem_heap_used"),
            heap_objects=uint("kes_system_mem_heap_objects"),
            stack_alloc=uint("kes_system_mem_stack_used"),
        )


@dataclass(frozen=True)
class State:
    """A snapshot of a key server's status."""

    version: str = ""
    up_time: timedelta = timedelta(0)


@dataclass(frozen=True)
class API:
    """Describes one API of a key server."""

    method: str
    path: str
    max_body: int = 0
    timeout: timedelta = timedelta(0)