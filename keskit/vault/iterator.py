"""Iteration over a Vault key listing."""

from __future__ import annotations

from typing import Any, Iterable, Iterator


def _text(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ListingIterator:
    """Yields the entry names of a listing, skipping prefixes that end in '/'."""

    def __init__(self, values: Iterable[Any] = ()) -> None:
        self._values: Iterator[Any] = iter(values)

    def __iter__(self) -> "ListingIterator":
        return self

    def __next__(self) -> str:
        for value in self._values:
            name = _text(value)
            if not name.endswith("/"):
                return name
        raise StopIteration