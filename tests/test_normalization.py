"""
Tests for value normalization

Normalization decides which inputs collapse to the same fingerprint, so the
rounding and text rules are pinned to exact outputs here.
"""

import enum
import itertools
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fpgateway.app.services.normalization import (
    FUNCTION_SENTINEL,
    MAX_DEPTH_EXCEEDED,
    UNDEFINED,
    Symbol,
    canonical_sort_key,
    is_number,
    json_safe,
    normalize_array,
    normalize_number,
    normalize_object,
    normalize_string,
    normalize_value,
    scrub_surrogates,
    to_text,
    unsupported_sentinel,
)


class Color(enum.Enum):
    RED = object()


class Level(enum.IntEnum):
    HIGH = 3


class TestNormalizeString:
    """Test suite for string normalization."""

    def test_collapses_and_trims_whitespace(self):
        assert normalize_string("  hello   world  ") == "hello world"

    def test_tabs_and_newlines_collapse_to_space(self):
        assert normalize_string("a\t\tb\r\nc\n") == "a b c"

    def test_removes_zero_width_characters(self):
        text = "fi\u200bnger\u200cpr\u200dint\ufeff"
        assert normalize_string(text) == "fingerprint"

    def test_zero_width_between_spaces_collapses(self):
        assert normalize_string("a \u200b b") == "a b"

    def test_nfc_composition(self):
        decomposed = "e\u0301"
        assert normalize_string(decomposed) == "\u00e9"

    def test_non_string_converted(self):
        assert normalize_string(42) == "42"
        assert normalize_string(None) == "null"
        assert normalize_string(True) == "true"

    def test_lone_surrogate_replaced(self):
        assert normalize_string("a\ud800b") == "a\ufffdb"
        assert normalize_string("\udfff") == "\ufffd"
        normalize_string("x\udc00").encode("utf-8")

    def test_split_surrogate_pair_joined(self):
        assert normalize_string("\ud83d\ude00") == "\U0001F600"

    def test_idempotent(self):
        once = normalize_string("  Zu\u0308rich \t city ")
        assert normalize_string(once) == once


class TestNormalizeNumber:
    """Test suite for number rounding."""

    def test_rounds_half_up(self):
        assert normalize_number(1.2345, 3) == "1.235"

    def test_rounds_down(self):
        assert normalize_number(1.2344, 3) == "1.234"

    def test_jitter_below_precision_collapses(self):
        assert normalize_number(1.2345, 3) == normalize_number(1.2345000001, 3)

    def test_ties_round_away_from_zero(self):
        assert normalize_number(-1.2345, 3) == "-1.235"
        assert normalize_number(2.5, 0) == "3"

    def test_integers_get_fixed_digits(self):
        assert normalize_number(7) == "7.000"

    def test_negative_zero_unsigned(self):
        assert normalize_number(-0.0) == "0.000"
        assert normalize_number(-0.0001) == "0.000"

    def test_precision_clamped(self):
        assert normalize_number(1.5, -4) == "2"
        assert normalize_number(0.1, 99) == "0.1000000000"

    def test_non_finite(self):
        assert normalize_number(float("nan")) == "NaN"
        assert normalize_number(float("inf")) == "Infinity"
        assert normalize_number(float("-inf")) == "-Infinity"

    def test_large_values_keep_all_digits(self):
        assert normalize_number(1e20) == "100000000000000000000.000"


class TestNormalizeArray:
    """Test suite for array normalization."""

    def test_sorts_by_canonical_form(self):
        assert normalize_array([3, 1, 2]) == ["1.000", "2.000", "3.000"]

    def test_order_independent(self):
        assert normalize_array(["b", {"x": 1}, "a"]) == normalize_array(["a", "b", {"x": 1}])

    def test_unsorted_keeps_order(self):
        assert normalize_array(["b", "a"], sort=False) == ["b", "a"]

    def test_non_array_is_empty(self):
        assert normalize_array("abc") == []
        assert normalize_array(None) == []

    def test_mixed_kinds_any_input_order(self):
        items = ["true", True, "null", None, '["a"]', ["a"]]
        expected = normalize_array(items)
        for order in itertools.permutations(items):
            assert normalize_array(list(order)) == expected
        assert expected == ['["a"]', ["a"], "null", None, "true", True]


class TestNormalizeObject:
    """Test suite for object normalization."""

    def test_keys_sorted(self):
        result = normalize_object({"zebra": 1, "apple": 2})
        assert list(result) == ["apple", "zebra"]

    def test_keys_normalized(self):
        assert normalize_object({"  a  b ": "x"}) == {"a b": "x"}

    def test_nested_values_normalized(self):
        result = normalize_object({"outer": {"inner": [2.0004, 1]}})
        assert result == {"outer": {"inner": ["1.000", "2.000"]}}

    def test_colliding_keys_resolve_deterministically(self):
        first = normalize_object({" k": "one", "k ": "two"})
        second = normalize_object({"k ": "two", " k": "one"})
        assert first == second == {"k": "two"}

    def test_non_mapping_is_empty(self):
        assert normalize_object([1, 2]) == {}


class TestNormalizeValue:
    """Test suite for kind dispatch and sentinels."""

    def test_passthrough(self):
        assert normalize_value(None) is None
        assert normalize_value(True) is True
        assert normalize_value(False) is False

    def test_undefined_becomes_null(self):
        assert normalize_value(UNDEFINED) is None

    def test_function_sentinel(self):
        assert normalize_value(len) == FUNCTION_SENTINEL
        assert normalize_value(lambda: None) == "[Function]"

    def test_symbol_sentinel(self):
        assert normalize_value(Symbol("token")) == "Symbol(token)"
        assert normalize_value(Color.RED) == "Symbol(Color.RED)"

    def test_int_enum_is_a_number(self):
        assert normalize_value(Level.HIGH) == "3.000"

    def test_big_integer_as_text(self):
        assert normalize_value(2 ** 64) == "18446744073709551616"
        assert normalize_value(-(2 ** 60)) == "-1152921504606846976"

    def test_binary_is_empty_string(self):
        assert normalize_value(b"\x00\x01") == ""
        assert normalize_value(bytearray(b"ab")) == ""

    def test_sets_sorted(self):
        assert normalize_value({"b", "a", "c"}) == ["a", "b", "c"]

    def test_unknown_object_named_by_type(self):
        class Gadget:
            pass
        assert normalize_value(Gadget()) == "[Gadget]"

    def test_deep_nesting_bounded(self):
        doc = current = []
        for _ in range(500):
            current.append([])
            current = current[0]
        text = repr(normalize_value(doc))
        assert MAX_DEPTH_EXCEEDED in text

    def test_cycle_bounded(self):
        doc = {"name": "loop"}
        doc["self"] = doc
        result = normalize_value(doc)
        assert result["name"] == "loop"
        assert MAX_DEPTH_EXCEEDED in repr(result)


class TestHelpers:
    """Test suite for shared helpers."""

    def test_is_number(self):
        assert is_number(1)
        assert is_number(1.5)
        assert not is_number(True)
        assert not is_number("1")
        assert not is_number(2 ** 53)

    def test_sort_key_strings_by_themselves(self):
        assert canonical_sort_key("abc") == ("abc", 0)
        assert canonical_sort_key({"b": 1, "a": None}) == ('{"a":null,"b":1}', 1)

    def test_sort_key_string_before_same_text(self):
        assert canonical_sort_key("true") < canonical_sort_key(True)
        assert canonical_sort_key("null") < canonical_sort_key(None)
        assert canonical_sort_key('["a"]') < canonical_sort_key(["a"])

    def test_to_text(self):
        assert to_text(None) == "null"
        assert to_text(False) == "false"
        assert to_text(3) == "3"

    def test_unsupported_sentinel_for_memoryview(self):
        assert unsupported_sentinel(memoryview(b"x")) == ""


class TestJsonSafe:
    """Test suite for response-safe copies."""

    def test_plain_values_unchanged(self):
        value = {"a": [1, 2.5, "x", None, True]}
        assert json_safe(value) == value

    def test_non_finite_floats_as_text(self):
        value = {"nan": float("nan"), "up": float("inf"), "down": float("-inf")}
        assert json_safe(value) == {"nan": "NaN", "up": "Infinity", "down": "-Infinity"}

    def test_surrogates_scrubbed_in_keys_and_values(self):
        assert json_safe({"k\ud800": ["\udc00"]}) == {"k\ufffd": ["\ufffd"]}

    def test_unsupported_kinds(self):
        assert json_safe({"fn": len, "raw": b"x", "u": UNDEFINED}) == {"fn": "[Function]", "raw": "", "u": None}

    def test_depth_bounded(self):
        doc = []
        doc.append(doc)
        assert MAX_DEPTH_EXCEEDED in repr(json_safe(doc, max_depth=3))

    def test_scrub_surrogates_leaves_valid_text(self):
        assert scrub_surrogates("plain") == "plain"
        assert scrub_surrogates("\U0001F600") == "\U0001F600"


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
