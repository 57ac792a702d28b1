"""Tests for key serialization and structural comparison."""

from relpage.keys import (
    canonical,
    digest,
    record_key,
    same_value,
    serialize_key,
)


class TestCanonical:
    """Tests for canonical and same_value."""

    def test_key_order_ignored(self) -> None:
        assert canonical({"a": 1, "b": [1, 2]}) == canonical({"b": [1, 2], "a": 1})

    def test_list_order_matters(self) -> None:
        assert not same_value([1, 2], [2, 1])

    def test_nested_equality(self) -> None:
        left = {"q": "x", "range": {"from": 1, "to": 5}}
        right = {"range": {"to": 5, "from": 1}, "q": "x"}
        assert same_value(left, right)
        assert not same_value(left, {**right, "q": "y"})

    def test_tuples_and_lists_compare_equal(self) -> None:
        assert same_value({"ids": (1, 2)}, {"ids": [1, 2]})

    def test_sets_compare_by_content(self) -> None:
        assert same_value({"tags": {"b", "a"}}, {"tags": {"a", "b"}})

    def test_digest_is_stable(self) -> None:
        assert digest({"a": 1, "b": 2}) == digest({"b": 2, "a": 1})
        assert len(digest("x")) == 16


class TestSerializeKey:
    """Tests for serialize_key."""

    def test_simple(self) -> None:
        assert serialize_key(("comments", "getOne", "1")) == "comments:getOne:1"

    def test_escaping(self) -> None:
        """Colons and backslashes inside parts are escaped."""
        assert serialize_key(("ns:a", "b\\c")) == "ns\\:a:b\\\\c"


class TestRecordKey:
    """Tests for record_key."""

    def test_without_meta(self) -> None:
        assert record_key("comments", 1) == "comments:getOne:1"

    def test_int_and_str_ids_share_a_key(self) -> None:
        assert record_key("comments", 1) == record_key("comments", "1")

    def test_meta_changes_key(self) -> None:
        assert record_key("comments", 1, {"t": "a"}) != record_key("comments", 1)
        assert record_key("comments", 1, {"t": "a"}) == record_key(
            "comments", 1, {"t": "a"}
        )
