"""
Value normalization for fingerprint canonicalization

Signal documents arrive with keys in arbitrary order, floats carrying
representation jitter and strings with stray whitespace. These helpers map
every value onto one canonical JSON-compatible form.

Rules:
- Strings: lone surrogates replaced by U+FFFD, zero-width characters removed,
  NFC, whitespace runs collapsed, trimmed. Zero-width characters go first,
  so "a \\u200b b" becomes "a b" rather than keeping two spaces
- Numbers: rounded half-up to a fixed precision, rendered as decimal text
- Arrays: elements normalized, then ordered by canonical string form; a
  string sorts before a non-string with the same text
- Objects: keys and values normalized, keys sorted
- Nesting beyond DEFAULT_MAX_DEPTH: "[MAX_DEPTH_EXCEEDED]"
- Unsupported kinds: fixed sentinel strings
"""

import enum
import json
import math
import re
import unicodedata
from collections.abc import Mapping
from decimal import Context, Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Tuple


DEFAULT_PRECISION = 3
MAX_PRECISION = 10

DEFAULT_MAX_DEPTH = 50
# Highest nesting limit a caller may configure; deeper walks would run
# into the interpreter recursion limit
MAX_DEPTH_LIMIT = 100

# Largest integer a JavaScript number holds exactly
MAX_SAFE_INTEGER = 2 ** 53 - 1

MAX_DEPTH_EXCEEDED = "[MAX_DEPTH_EXCEEDED]"
FUNCTION_SENTINEL = "[Function]"
BINARY_SENTINEL = ""
REPLACEMENT_CHARACTER = "\ufffd"

_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\ufeff]")
_WHITESPACE_RE = re.compile(r"\s+")
_SURROGATE_RE = re.compile("[\ud800-\udfff]")
_SURROGATE_PAIR_RE = re.compile("([\ud800-\udbff])([\udc00-\udfff])")


class _Undefined:
    """Marker for a collected value that is present but undefined."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNDEFINED"

    def __bool__(self):
        return False


UNDEFINED = _Undefined()


class Symbol:
    """
    Unique, description-carrying marker value.

    Renders as ``Symbol(<description>)`` in canonical output.
    """

    __slots__ = ("description",)

    def __init__(self, description: str = ""):
        self.description = description

    def __repr__(self):
        return f"Symbol({self.description})"


def normalize_string(value: Any) -> str:
    """
    Normalize a string value.

    Args:
        value: String to normalize; other values are converted to text first

    Returns:
        Valid Unicode text without zero-width characters, NFC-composed,
        with every whitespace run collapsed to a single space and no
        leading or trailing whitespace

    Example:
        >>> normalize_string("  hello \\t\\n  world  ")
        'hello world'
    """
    if not isinstance(value, str):
        value = to_text(value)

    value = scrub_surrogates(value)
    value = _ZERO_WIDTH_RE.sub("", value)
    value = unicodedata.normalize("NFC", value)
    value = _WHITESPACE_RE.sub(" ", value)
    return value.strip()


def scrub_surrogates(value: str) -> str:
    """
    Make text encodable as UTF-8.

    Surrogate pairs left as two code points are joined; any surrogate
    without a partner becomes U+FFFD.
    """
    if not _SURROGATE_RE.search(value):
        return value
    value = _SURROGATE_PAIR_RE.sub(_join_surrogates, value)
    return _SURROGATE_RE.sub(REPLACEMENT_CHARACTER, value)


def _join_surrogates(match) -> str:
    high, low = match.group(1), match.group(2)
    return chr(0x10000 + ((ord(high) - 0xD800) << 10) + (ord(low) - 0xDC00))


def normalize_number(value: Any, precision: int = DEFAULT_PRECISION) -> str:
    """
    Round a number to a fixed number of decimal places.

    Ties round away from zero. The result always carries exactly
    ``precision`` fractional digits, so values closer together than the
    precision collapse to the same text.

    Args:
        value: int or float
        precision: Decimal places, clamped to [0, 10]

    Returns:
        Fixed-point decimal text, or "NaN" / "Infinity" / "-Infinity"

    Example:
        >>> normalize_number(1.2345)
        '1.235'
    """
    precision = max(0, min(int(precision), MAX_PRECISION))

    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        # repr() is the shortest text that round-trips, so 1.2345 stays 1.2345
        decimal_value = Decimal(repr(value))
    else:
        decimal_value = Decimal(int(value))

    quantum = Decimal(1).scaleb(-precision)
    context = Context(
        prec=max(28, decimal_value.adjusted() + precision + 2),
        rounding=ROUND_HALF_UP,
    )
    rounded = decimal_value.quantize(quantum, context=context)
    if rounded.is_zero():
        rounded = abs(rounded)
    return format(rounded, "f")


def normalize_array(value: Any, sort: bool = True, depth: int = 0) -> List[Any]:
    """
    Normalize every element of an array and order the result.

    Args:
        value: list or tuple; anything else normalizes to an empty list
        sort: Order elements by canonical string form
        depth: Nesting level of ``value``; elements past DEFAULT_MAX_DEPTH
            become "[MAX_DEPTH_EXCEEDED]"

    Returns:
        List of normalized elements
    """
    if not isinstance(value, (list, tuple)):
        return []

    items = [normalize_value(item, depth + 1) for item in value]
    if sort:
        items.sort(key=canonical_sort_key)
    return items


def normalize_object(value: Any, sort_keys: bool = True, depth: int = 0) -> Dict[str, Any]:
    """
    Normalize keys and values of a mapping.

    Args:
        value: Mapping; anything else normalizes to an empty dict
        sort_keys: Emit keys in ascending order
        depth: Nesting level of ``value``

    Returns:
        Dict with normalized keys and values
    """
    if not isinstance(value, Mapping):
        return {}

    normalized = {}
    # Walk original keys in sorted text order so collisions after
    # normalization always resolve the same way
    for key in sorted(value, key=to_text):
        normalized[normalize_string(key)] = normalize_value(value[key], depth + 1)

    if sort_keys:
        return {key: normalized[key] for key in sorted(normalized)}
    return normalized


def normalize_value(value: Any, depth: int = 0) -> Any:
    """
    Normalize any value by dispatching on its kind.

    Booleans and None pass through unchanged. UNDEFINED becomes None.
    Values nested deeper than DEFAULT_MAX_DEPTH (cycles included) become
    "[MAX_DEPTH_EXCEEDED]".
    """
    if depth > DEFAULT_MAX_DEPTH:
        return MAX_DEPTH_EXCEEDED
    if value is None or isinstance(value, bool):
        return value
    if value is UNDEFINED:
        return None
    if isinstance(value, str):
        return normalize_string(value)
    if is_number(value):
        return normalize_number(value)
    if isinstance(value, (list, tuple)):
        return normalize_array(value, depth=depth)
    if isinstance(value, (set, frozenset)):
        return normalize_array(list(value), depth=depth)
    if isinstance(value, Mapping):
        return normalize_object(value, depth=depth)
    return unsupported_sentinel(value)


def is_number(value: Any) -> bool:
    """True for int and float values that normalize as numbers."""
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return True
    if isinstance(value, int):
        return abs(value) <= MAX_SAFE_INTEGER
    return False


def unsupported_sentinel(value: Any) -> str:
    """
    Map a value with no JSON representation onto its sentinel text.

    Args:
        value: Any value that is not a string, number, bool, None,
            list or mapping

    Returns:
        - integers beyond the safe range: their base-10 text
        - bytes, bytearray, memoryview: ""
        - Symbol and Enum members: "Symbol(<description>)"
        - callables: "[Function]"
        - anything else: "[<TypeName>]"
    """
    if isinstance(value, Symbol):
        return f"Symbol({value.description})"
    if isinstance(value, enum.Enum):
        return f"Symbol({type(value).__name__}.{value.name})"
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BINARY_SENTINEL
    if callable(value):
        return FUNCTION_SENTINEL
    return f"[{type(value).__name__}]"


def canonical_sort_key(item: Any) -> Tuple[str, int]:
    """
    Ordering key for array elements.

    Strings order by themselves, every other value by its compact JSON
    text. The second member keeps "true" and true (or "null" and null)
    from tying, so the order never depends on input position.
    """
    if isinstance(item, str):
        return item, 0
    return json.dumps(
        item,
        separators=(",", ":"),
        ensure_ascii=False,
        sort_keys=True,
        default=unsupported_sentinel,
    ), 1


def json_safe(value: Any, max_depth: int = MAX_DEPTH_LIMIT, depth: int = 0) -> Any:
    """
    Copy of a value that any strict JSON encoder accepts.

    Used for values echoed back to callers. Strings and keys lose lone
    surrogates, non-finite floats become "NaN" / "Infinity" / "-Infinity",
    unsupported kinds become their sentinels and nesting past
    ``max_depth`` (cycles included) becomes "[MAX_DEPTH_EXCEEDED]".
    """
    if depth > max_depth:
        return MAX_DEPTH_EXCEEDED
    if value is UNDEFINED:
        return None
    if value is None or isinstance(value, (bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else normalize_number(value)
    if isinstance(value, str):
        return scrub_surrogates(value)
    if isinstance(value, Mapping):
        return {
            scrub_surrogates(to_text(key)): json_safe(item, max_depth, depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [json_safe(item, max_depth, depth + 1) for item in value]
    return unsupported_sentinel(value)


def to_text(value: Any) -> str:
    """Text form of a key or scalar, using JSON spellings for None and bools."""
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
