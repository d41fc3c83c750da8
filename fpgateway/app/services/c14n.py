"""
Canonical JSON serialization for signal documents

This module turns an arbitrary signal document into one deterministic JSON
text. The fingerprint hash is computed over this text, so any drift here
changes every identifier issued.

Rules:
- UTF-8 text, no whitespace outside strings
- Object keys normalized and sorted
- Array elements normalized and sorted by canonical string form
- Numbers rendered as fixed-precision decimal strings
- Cycles and excess depth replaced by "[MAX_DEPTH_EXCEEDED]"; the depth
  limit is capped at MAX_DEPTH_LIMIT
- Unsupported kinds replaced by fixed sentinels
- Never raises for any input
"""

import json
import logging
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from fpgateway.app.services.normalization import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_PRECISION,
    MAX_DEPTH_EXCEEDED,
    MAX_DEPTH_LIMIT,
    UNDEFINED,
    canonical_sort_key,
    is_number,
    normalize_number,
    normalize_string,
    to_text,
    unsupported_sentinel,
)
from fpgateway.app.services.trace import DebugSession, NormalizationStepType

logger = logging.getLogger(__name__)

Replacer = Callable[[str, Any], Any]

# Returned by _Pass.entry for object entries the inclusion policy drops
_OMIT = object()


@dataclass(frozen=True)
class SerializationConfig:
    """
    Serialization policy.

    ``max_depth`` is clamped to [0, MAX_DEPTH_LIMIT].
    """
    enable_normalization: bool = True
    sort_keys: bool = True
    sort_arrays: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH
    include_nulls: bool = True
    include_undefined: bool = True
    custom_replacer: Optional[Replacer] = None

    def __post_init__(self):
        depth = max(0, int(self.max_depth))
        if depth > MAX_DEPTH_LIMIT:
            logger.warning("max_depth %d is above the limit, using %d", depth, MAX_DEPTH_LIMIT)
            depth = MAX_DEPTH_LIMIT
        object.__setattr__(self, "max_depth", depth)

    @classmethod
    def from_options(cls, options: Optional[Mapping] = None) -> "SerializationConfig":
        """
        Build a config from a caller-supplied option mapping.

        Option names may be camelCase (``sortArrays``) or snake_case
        (``sort_arrays``). ``redactKeys`` installs a redacting_replacer for
        the listed property names. Unknown names are logged and ignored.

        Args:
            options: Mapping of option name to value

        Returns:
            SerializationConfig with defaults for every option not given
        """
        if not options:
            return cls()

        known = {f.name for f in fields(cls)}
        values = {}
        for name, value in options.items():
            attr = _snake_case(name)
            if attr == "redact_keys":
                if value:
                    values["custom_replacer"] = redacting_replacer(value)
                continue
            if attr not in known:
                logger.warning("Ignoring unknown serialization option: %s", name)
                continue
            values[attr] = value

        if values.get("max_depth") is None:
            values.pop("max_depth", None)
        for flag in ("enable_normalization", "sort_keys", "sort_arrays",
                     "include_nulls", "include_undefined"):
            if flag in values:
                values[flag] = bool(values[flag])

        return cls(**values)

    def as_options(self) -> Dict[str, Any]:
        """camelCase view of the config, without the replacer."""
        return {
            "enableNormalization": self.enable_normalization,
            "sortKeys": self.sort_keys,
            "sortArrays": self.sort_arrays,
            "maxDepth": self.max_depth,
            "includeNulls": self.include_nulls,
            "includeUndefined": self.include_undefined,
            "customReplacer": self.custom_replacer is not None,
        }


DEFAULT_SERIALIZATION_CONFIG = SerializationConfig()


@dataclass
class SerializationStats:
    """Counters collected over one serialization pass."""
    total_properties: int = 0
    normalized_values: int = 0
    sorted_objects: int = 0
    sorted_arrays: int = 0
    max_depth_reached: int = 0
    processing_time_ns: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "totalProperties": self.total_properties,
            "normalizedValues": self.normalized_values,
            "sortedObjects": self.sorted_objects,
            "sortedArrays": self.sorted_arrays,
            "maxDepthReached": self.max_depth_reached,
            "processingTimeNanos": self.processing_time_ns,
        }


@dataclass
class SerializationResult:
    """Canonical text, the tree it was rendered from, and pass statistics."""
    serialized_text: str
    canonical_tree: Any
    stats: SerializationStats = field(default_factory=SerializationStats)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "serializedText": self.serialized_text,
            "canonicalTree": self.canonical_tree,
            "stats": self.stats.as_dict(),
        }


@dataclass
class SerializationComparison:
    """Enhanced vs legacy serialization of the same value."""
    enhanced: SerializationResult
    legacy_serialized: str
    legacy_processing_time_ns: int
    identical: bool
    length_difference: int
    performance_improvement_ns: int
    total_comparison_time_ns: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "enhanced": self.enhanced.as_dict(),
            "legacy": {
                "serialized": self.legacy_serialized,
                "processingTimeNanos": self.legacy_processing_time_ns,
            },
            "comparison": {
                "identical": self.identical,
                "lengthDifference": self.length_difference,
                "performanceImprovement": self.performance_improvement_ns,
                "totalComparisonTime": self.total_comparison_time_ns,
            },
        }


class _Pass:
    """State of a single serialization pass."""

    def __init__(self, config: SerializationConfig, trace: Optional[DebugSession] = None):
        self.config = config
        self.trace = trace
        self.stats = SerializationStats()
        self.ancestors: Set[int] = set()
        self.sentinels = 0

    def walk(self, value: Any, depth: int, path: str) -> Any:
        config = self.config

        if depth > config.max_depth:
            return self._fallback(path, value, "max_depth")
        self.stats.max_depth_reached = max(self.stats.max_depth_reached, depth)

        if value is None or value is UNDEFINED:
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            if config.enable_normalization:
                self.stats.normalized_values += 1
                result = normalize_string(value)
                if self.trace is not None:
                    self.trace.record(NormalizationStepType.STRING_NORMALIZE, path, value, result)
                return result
            return value
        if is_number(value):
            return self._number(value, path)

        if isinstance(value, Mapping):
            return self._container(value, depth, path, self._object)
        if isinstance(value, (list, tuple)):
            return self._container(value, depth, path, self._array)
        if isinstance(value, (set, frozenset)):
            # Sets have no stable iteration order; always sort them
            items = self._container(value, depth, path, self._array)
            if isinstance(items, list) and not config.sort_arrays:
                items.sort(key=canonical_sort_key)
            return items

        result = unsupported_sentinel(value)
        if self.trace is not None:
            self.trace.record(NormalizationStepType.FALLBACK_APPLIED, path, _type_label(value), result,
                              reason="unsupported_type")
        return result

    def _number(self, value: Any, path: str) -> Any:
        if self.config.enable_normalization:
            self.stats.normalized_values += 1
            result = normalize_number(value)
            if self.trace is not None:
                self.trace.record(NormalizationStepType.NUMERIC_ROUND, path, value, result,
                                  precision=DEFAULT_PRECISION)
            return result
        if isinstance(value, float) and not math.isfinite(value):
            return normalize_number(value)
        return value

    def _fallback(self, path: str, value: Any, reason: str) -> str:
        self.sentinels += 1
        if self.trace is not None:
            self.trace.record(NormalizationStepType.FALLBACK_APPLIED, path, _type_label(value),
                              MAX_DEPTH_EXCEEDED, reason=reason)
        return MAX_DEPTH_EXCEEDED

    def _container(self, value: Any, depth: int, path: str, handler: Callable) -> Any:
        marker = id(value)
        if marker in self.ancestors:
            return self._fallback(path, value, "cycle")

        self.ancestors.add(marker)
        try:
            return handler(value, depth, path)
        finally:
            self.ancestors.discard(marker)

    def _object(self, value: Mapping, depth: int, path: str) -> Dict[str, Any]:
        config = self.config
        entries = []
        for key, item in value.items():
            self.stats.total_properties += 1
            key_text = to_text(key)
            child_path = f"{path}.{key_text}" if path else key_text
            if config.enable_normalization:
                self.stats.normalized_values += 1
                out_key = normalize_string(key_text)
                if self.trace is not None and out_key != key_text:
                    self.trace.record(NormalizationStepType.STRING_NORMALIZE, child_path, key_text, out_key,
                                      target="key")
            else:
                out_key = key_text

            out_value = self.entry(key_text, item, depth + 1, child_path)
            if out_value is _OMIT:
                continue
            entries.append((key_text, out_key, out_value))

        if config.sort_keys:
            self.stats.sorted_objects += 1
            before = [out_key for _, out_key, _ in entries]
            # Sort on the original key too so keys that collide after
            # normalization resolve the same way for any input order
            entries.sort(key=lambda entry: (entry[1], entry[0]))
            if self.trace is not None:
                self.trace.record(NormalizationStepType.OBJECT_KEY_SORT, path, before,
                                  [out_key for _, out_key, _ in entries])

        return {out_key: out_value for _, out_key, out_value in entries}

    def _array(self, value: Iterable, depth: int, path: str) -> List[Any]:
        items = []
        for index, item in enumerate(value):
            self.stats.total_properties += 1
            out_value = self.entry(str(index), item, depth + 1, f"{path}[{index}]", in_array=True)
            items.append(out_value)

        if self.config.sort_arrays:
            self.stats.sorted_arrays += 1
            before = list(items) if self.trace is not None else None
            items.sort(key=canonical_sort_key)
            if self.trace is not None:
                self.trace.record(NormalizationStepType.ARRAY_SORT, path, before, items)
        return items

    def entry(self, key: str, value: Any, depth: int, path: str, in_array: bool = False) -> Any:
        """Apply the replacer and the inclusion policy to one key/value pair."""
        config = self.config
        if config.custom_replacer is not None:
            replaced = config.custom_replacer(key, value)
            if self.trace is not None and replaced is not value:
                self.trace.record(NormalizationStepType.REPLACER_APPLIED, path, _type_label(value), replaced)
            value = replaced

        if not in_array:
            if value is UNDEFINED and not config.include_undefined:
                return _OMIT
            if value is None and not config.include_nulls:
                return _OMIT

        return self.walk(value, depth, path)


class CanonicalSerializer:
    """
    Deterministic serializer for signal documents.

    Holds a default SerializationConfig; every call builds its own pass
    state, so one instance can be shared freely.
    """

    def __init__(self, config: Optional[SerializationConfig] = None):
        self.config = config or DEFAULT_SERIALIZATION_CONFIG

    def serialize(
        self,
        value: Any,
        config: Optional[SerializationConfig] = None,
        trace: Optional[DebugSession] = None,
    ) -> SerializationResult:
        """
        Serialize a value into canonical JSON text.

        Args:
            value: Any value; malformed, cyclic or deep input is allowed
            config: Policy for this call (default: the serializer's config)
            trace: Session that records every normalization step (optional)

        Returns:
            SerializationResult with the canonical text, the canonical tree
            and statistics for the pass
        """
        effective = config or self.config
        started = time.perf_counter_ns()

        state = _Pass(effective, trace)
        tree = state.entry("", value, 0, "", in_array=True)
        text = _dump(tree, effective.sort_keys)

        state.stats.processing_time_ns = time.perf_counter_ns() - started
        if state.sentinels:
            logger.warning(
                "Replaced %d cyclic or too-deep value(s) with %s (max_depth=%d)",
                state.sentinels, MAX_DEPTH_EXCEEDED, effective.max_depth,
            )
        logger.debug("Serialized %d properties in %d ns",
                     state.stats.total_properties, state.stats.processing_time_ns)

        return SerializationResult(
            serialized_text=text,
            canonical_tree=tree,
            stats=state.stats,
        )

    def serialize_legacy(self, value: Any) -> str:
        """
        Serialize with the legacy rules, kept for comparison.

        Keys are sorted and numbers rounded, strings only have whitespace
        collapsed, arrays keep their order and there is no cycle tracking:
        a plain depth cap stops runaway recursion.
        """
        tree = _legacy_walk(value, 0, self.config.max_depth)
        return _dump(tree, True)

    def compare_serialization_methods(
        self,
        value: Any,
        config: Optional[SerializationConfig] = None,
    ) -> SerializationComparison:
        """
        Serialize a value with both the enhanced and the legacy method.

        Returns:
            SerializationComparison with both outputs and timing
        """
        started = time.perf_counter_ns()
        enhanced = self.serialize(value, config)

        legacy_started = time.perf_counter_ns()
        legacy = self.serialize_legacy(value)
        legacy_time = time.perf_counter_ns() - legacy_started

        total = time.perf_counter_ns() - started
        return SerializationComparison(
            enhanced=enhanced,
            legacy_serialized=legacy,
            legacy_processing_time_ns=legacy_time,
            identical=enhanced.serialized_text == legacy,
            length_difference=len(enhanced.serialized_text) - len(legacy),
            performance_improvement_ns=legacy_time - enhanced.stats.processing_time_ns,
            total_comparison_time_ns=total,
        )


def redacting_replacer(keys: Iterable[str], placeholder: str = "[REDACTED]") -> Replacer:
    """
    Build a custom_replacer that substitutes a placeholder for selected keys.

    Args:
        keys: Property names to redact, at any depth
        placeholder: Replacement value

    Returns:
        Replacer callable for SerializationConfig.custom_replacer
    """
    redacted = frozenset(keys)

    def replacer(key: str, value: Any) -> Any:
        if key in redacted:
            return placeholder
        return value

    return replacer


def _legacy_walk(value: Any, depth: int, max_depth: int) -> Any:
    if depth > max_depth:
        return MAX_DEPTH_EXCEEDED
    if value is None or value is UNDEFINED or isinstance(value, bool):
        return None if value is UNDEFINED else value
    if isinstance(value, str):
        return " ".join(value.split())
    if is_number(value):
        return normalize_number(value)
    if isinstance(value, Mapping):
        return {
            str(key): _legacy_walk(value[key], depth + 1, max_depth)
            for key in sorted(value, key=str)
        }
    if isinstance(value, (list, tuple)):
        return [_legacy_walk(item, depth + 1, max_depth) for item in value]
    return unsupported_sentinel(value)


def _dump(tree: Any, sort_keys: bool) -> str:
    return json.dumps(
        tree,
        separators=(",", ":"),
        ensure_ascii=False,
        sort_keys=sort_keys,
        allow_nan=False,
        default=unsupported_sentinel,
    )


def _type_label(value: Any) -> str:
    return f"<{type(value).__name__}>"


def _snake_case(name: str) -> str:
    out = []
    for char in name:
        if char.isupper():
            out.append("_")
            out.append(char.lower())
        else:
            out.append(char)
    return "".join(out)


default_serializer = CanonicalSerializer()


def serialize(
    value: Any,
    config: Optional[SerializationConfig] = None,
    trace: Optional[DebugSession] = None,
) -> SerializationResult:
    """Serialize with the default serializer; see CanonicalSerializer.serialize."""
    return default_serializer.serialize(value, config, trace)


def canonical_text(value: Any, config: Optional[SerializationConfig] = None) -> str:
    """Canonical JSON text of a value."""
    return default_serializer.serialize(value, config).serialized_text


def serialize_legacy(value: Any) -> str:
    return default_serializer.serialize_legacy(value)


def compare_serialization_methods(
    value: Any,
    config: Optional[SerializationConfig] = None,
) -> SerializationComparison:
    return default_serializer.compare_serialization_methods(value, config)
