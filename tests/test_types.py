import os
from datetime import timedelta

import pytest

from keskit.yml.types import (
    ConfigTypeError,
    Duration,
    Identity,
    String,
    parse_duration,
    replace,
)

PI = "3.1415926535"


def _only_test_value(key):
    return PI if key == "TEST_VALUE" else ""


@pytest.mark.parametrize(
    "value, mapping, result",
    [
        (PI, lambda k: os.environ.get(k, ""), PI),
        ("${TEST_VALUE}", lambda _: PI, PI),
        ("       ${TEST_VALUE}  ", lambda _: PI, PI),
        ("${TEST_VALUE}", _only_test_value, PI),
        ("${ TEST_VALUE}", lambda _: PI, PI),
        ("$TEST_VALUE", lambda _: PI, "$TEST_VALUE"),
        ("$TEST_VALUE}", lambda _: PI, "$TEST_VALUE}"),
    ],
)
def test_replace(value, mapping, result):
    assert replace(value, mapping) == result


def test_replace_passes_name_to_mapping():
    seen = []

    def mapping(name):
        seen.append(name)
        return "x"

    assert replace("${A_NAME}", mapping) == "x"
    assert seen == ["A_NAME"]


@pytest.mark.parametrize(
    "text, expected",
    [
        ("5s", timedelta(seconds=5)),
        ("0", timedelta(0)),
        ("300ms", timedelta(milliseconds=300)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(hours=1, minutes=30)),
        ("-2m", -timedelta(minutes=2)),
        ("+10us", timedelta(microseconds=10)),
        (".5s", timedelta(milliseconds=500)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "10", "1x", ".", "-", "s", "5s3"])
def test_parse_duration_errors(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_parse_duration_overflow():
    with pytest.raises(ValueError):
        parse_duration("9999999999999h")


def test_string_parse_expands_environment(monkeypatch):
    monkeypatch.setenv("KESKIT_TEST_VALUE", "expanded")
    value = String.parse("${KESKIT_TEST_VALUE}")
    assert value.value == "expanded"
    assert value.raw == "${KESKIT_TEST_VALUE}"
    assert value.to_yaml() == "${KESKIT_TEST_VALUE}"


def test_string_parse_missing_variable(monkeypatch):
    monkeypatch.delenv("KESKIT_TEST_MISSING", raising=False)
    assert String.parse("${KESKIT_TEST_MISSING}").value == ""


def test_string_parse_scalars():
    assert String.parse(42).value == "42"
    assert String.parse(True).value == "true"
    assert String.parse(None) == String()


def test_string_parse_rejects_mapping():
    with pytest.raises(ConfigTypeError):
        String.parse({"a": 1})


def test_identity_unknown():
    assert Identity().is_unknown()
    assert not Identity.parse("3ecfcdf38fcbe141ae26a1030f81e96b753365a46760ae6b578698a97c59fd22").is_unknown()


def test_identity_expands_environment(monkeypatch):
    monkeypatch.setenv("KESKIT_TEST_IDENTITY", "abc")
    identity = Identity.parse("${KESKIT_TEST_IDENTITY}")
    assert identity.value == "abc"
    assert identity.to_yaml() == "${KESKIT_TEST_IDENTITY}"


def test_identity_rejects_sequence():
    with pytest.raises(ConfigTypeError):
        Identity.parse(["a"])


def test_duration_parse(monkeypatch):
    monkeypatch.setenv("KESKIT_TEST_DURATION", "2m")
    duration = Duration.parse("${KESKIT_TEST_DURATION}")
    assert duration.value == timedelta(minutes=2)
    assert duration.to_yaml() == "${KESKIT_TEST_DURATION}"


def test_duration_parse_invalid_is_type_error():
    with pytest.raises(ConfigTypeError) as info:
        Duration.parse("forever")
    assert info.value.errors