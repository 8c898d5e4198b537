"""Data encryption keys and key listings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from keskit.log import _field, _format_time, _parse_time, _Stream


@dataclass(frozen=True)
class DEK:
    """A data encryption key with its plaintext and ciphertext forms."""

    plaintext: bytes
    ciphertext: bytes


@dataclass(frozen=True)
class CCP:
    """A ciphertext together with its decryption context."""

    ciphertext: bytes
    context: bytes = b""


@dataclass(frozen=True)
class PCP:
    """A plaintext together with its encryption context."""

    plaintext: bytes
    context: bytes = b""


@dataclass(frozen=True)
class KeyInfo:
    """Describes a cryptographic key at a key server."""

    name: str
    created_at: Optional[datetime] = None
    created_by: str = ""


def _decode_info(obj: dict) -> tuple:
    """Return (name, created_at, created_by), raising if the entry reports an error."""
    error = _field(obj, "error", str, "")
    if error:
        raise RuntimeError(error)
    return (
        _field(obj, "name", str, ""),
        _parse_time(_field(obj, "created_at", str, None)),
        _field(obj, "created_by", str, ""),
    )


def _encode_info(obj: dict) -> dict:
    name, created_at, created_by = _decode_info(obj)
    record = {"name": name, "created_at": _format_time(created_at)}
    if created_by:
        record["created_by"] = created_by
    return record


class KeyIterator(_Stream[KeyInfo]):
    """Iterates over a stream of KeyInfo entries."""

    def __iter__(self) -> "KeyIterator":
        return self

    def __next__(self) -> KeyInfo:
        return super().__next__()

    def write_to(self, writer: Any) -> int:
        return super().write_to(writer)

    def close(self) -> None:
        super().close()

    def __enter__(self) -> "KeyIterator":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _convert(self, obj: dict) -> KeyInfo:
        name, created_at, created_by = _decode_info(obj)
        return KeyInfo(name=name, created_at=created_at, created_by=created_by)

    def _encode(self, obj: dict) -> dict:
        return _encode_info(obj)

    def _write_after_close(self) -> int:
        raise ValueError("write_to called after close")