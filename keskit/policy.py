"""Access policies and policy listings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from keskit.key import _decode_info, _encode_info
from keskit.log import _Stream


@dataclass
class Policy:
    """Glob patterns that allow or deny request paths; deny rules take precedence."""

    allow: List[str] = field(default_factory=list)
    deny: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PolicyInfo:
    """Describes a policy at a key server."""

    name: str
    created_at: Optional[datetime] = None
    created_by: str = ""


class PolicyIterator(_Stream[PolicyInfo]):
    """Iterates over a stream of PolicyInfo entries."""

    def __iter__(self) -> "PolicyIterator":
        return self

    def __next__(self) -> PolicyInfo:
        return super().__next__()

    def write_to(self, writer: Any) -> int:
        return super().write_to(writer)

    def close(self) -> None:
        super().close()

    def __enter__(self) -> "PolicyIterator":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _convert(self, obj: dict) -> PolicyInfo:
        name, created_at, created_by = _decode_info(obj)
        return PolicyInfo(name=name, created_at=created_at, created_by=created_by)

    def _encode(self, obj: dict) -> dict:
        return _encode_info(obj)

    def _write_after_close(self) -> int:
        raise ValueError("write_to called after close")