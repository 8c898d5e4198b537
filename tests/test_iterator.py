import pytest

from keskit.vault.iterator import ListingIterator


def test_skips_prefixes():
    assert list(ListingIterator(["a", "dir/", "b"])) == ["a", "b"]


def test_empty_listing():
    assert list(ListingIterator()) == []


def test_only_prefixes():
    assert list(ListingIterator(["x/", "y/"])) == []


def test_non_string_values_are_formatted():
    assert list(ListingIterator([1, "x/", "key"])) == ["1", "key"]


def test_exhausted_iterator_stops():
    iterator = ListingIterator(["only"])
    assert next(iterator) == "only"
    with pytest.raises(StopIteration):
        next(iterator)
    with pytest.raises(StopIteration):
        next(iterator)


def test_order_is_preserved():
    names = ["c", "a", "b"]
    assert list(ListingIterator(names)) == names