"""Configuration values that expand environment references when parsed."""

from __future__ import annotations

import datetime as _dt
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from fractions import Fraction
from typing import Any, Callable, Tuple

_SPECIAL = frozenset("*#$@!?-0123456789")
_NAME = re.compile(r"[A-Za-z0-9_]*")
_NUMBER = re.compile(r"([0-9]*)(?:\.([0-9]*))?")
_UNIT = re.compile(r"[^0-9.]*")
_MAX = 1 << 63
_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}


class ConfigTypeError(ValueError):
    """A configuration value has a type or format that cannot be decoded."""

    def __init__(self, *errors: str) -> None:
        super().__init__("yaml: unmarshal errors:\n  " + "\n  ".join(errors))
        self.errors = list(errors)


def _getenv(name: str) -> str:
    return os.environ.get(name, "")


def _shell_name(s: str) -> Tuple[str, int]:
    if s[0] == "{":
        if len(s) > 2 and s[1] in _SPECIAL and s[2] == "}":
            return s[1:2], 3
        close = s.find("}", 1)
        if close == -1:
            return "", 1  # bad syntax: eat "${"
        if close == 1:
            return "", 2  # bad syntax: eat "${}"
        return s[1:close], close + 1
    if s[0] in _SPECIAL:
        return s[0], 1
    name = _NAME.match(s).group(0)
    return name, len(name)


def _expand(s: str, mapping: Callable[[str], str]) -> str:
    parts = []
    expanded = False
    start = 0
    pos = 0
    while pos < len(s):
        if s[pos] == "$" and pos + 1 < len(s):
            expanded = True
            parts.append(s[start:pos])
            name, width = _shell_name(s[pos + 1 :])
            if name:
                parts.append(mapping(name))
            elif width == 0:
                parts.append("$")
            pos += width
            start = pos + 1
        pos += 1
    if not expanded:
        return s
    return "".join(parts) + s[start:]


def replace(s: str, mapping: Callable[[str], str]) -> str:
    """Expand s through mapping if, trimmed, it has the form ${...}; else return s."""
    trimmed = s.strip()
    if trimmed.startswith("${") and trimmed.endswith("}"):
        return _expand(trimmed, mapping)
    return s


def _parse_duration_ns(text: str) -> int:
    invalid = ValueError(f'time: invalid duration "{text}"')
    s = text
    negative = False
    if s and s[0] in "+-":
        negative = s[0] == "-"
        s = s[1:]
    if s == "0":
        return 0
    if not s:
        raise invalid
    total = 0
    while s:
        number = _NUMBER.match(s)
        whole, fraction = number.group(1), number.group(2)
        if not whole and not fraction:
            raise invalid
        s = s[number.end() :]
        unit_text = _UNIT.match(s).group(0)
        if not unit_text:
            raise ValueError(f'time: missing unit in duration "{text}"')
        s = s[len(unit_text) :]
        unit = _UNITS.get(unit_text)
        if unit is None:
            raise ValueError(f'time: unknown unit "{unit_text}" in duration "{text}"')
        value = int(whole) if whole else 0
        if value > _MAX // unit:
            raise invalid
        value *= unit
        if fraction:
            value += int(Fraction(int(fraction), 10 ** len(fraction)) * unit)
            if value > _MAX:
                raise invalid
        total += value
        if total > _MAX:
            raise invalid
    if negative:
        return -total
    if total > _MAX - 1:
        raise invalid
    return total


def _timedelta(nanoseconds: int) -> timedelta:
    sign = -1 if nanoseconds < 0 else 1
    micro, rest = divmod(abs(nanoseconds), 1000)
    if rest >= 500:
        micro += 1
    return timedelta(microseconds=sign * micro)


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "300ms", "-1.5h" or "2h45m"."""
    return _timedelta(_parse_duration_ns(text))


def _yaml_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "!!map"
    if isinstance(value, (list, tuple)):
        return "!!seq"
    return f"!!{type(value).__name__}"


def _scalar_text(value: Any) -> str:
    """Return the text of a YAML scalar; mappings and sequences are type errors."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (_dt.date, _dt.datetime)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8")
    raise ConfigTypeError(f"cannot unmarshal {_yaml_kind(value)} into string")


@dataclass(frozen=True)
class String:
    """A string whose value has environment references expanded; raw is kept."""

    raw: str = ""
    value: str = ""

    @classmethod
    def parse(cls, raw: Any) -> "String":
        text = _scalar_text(raw)
        return cls(raw=text, value=replace(text, _getenv))

    def to_yaml(self) -> str:
        return self.raw


@dataclass(frozen=True)
class Identity:
    """An identity whose value has environment references expanded; raw is kept."""

    raw: str = ""
    value: str = ""

    @classmethod
    def parse(cls, raw: Any) -> "Identity":
        text = _scalar_text(raw)
        return cls(raw=text, value=replace(text, _getenv))

    def to_yaml(self) -> str:
        return self.raw

    def is_unknown(self) -> bool:
        """Report whether the identity is empty."""
        return self.value == ""


@dataclass(frozen=True)
class Duration:
    """A duration whose value has environment references expanded; raw is kept."""

    raw: str = ""
    value: timedelta = timedelta(0)

    @classmethod
    def parse(cls, raw: Any) -> "Duration":
        text = _scalar_text(raw)
        try:
            value = parse_duration(replace(text, _getenv))
        except ValueError as exc:
            raise ConfigTypeError(str(exc)) from exc
        return cls(raw=text, value=value)

    def to_yaml(self) -> str:
        return self.raw