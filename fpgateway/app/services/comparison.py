"""
Hash comparison for troubleshooting fingerprint variations

Explains why two signal documents hash differently (or the same): every raw
difference is classified by type and severity, and the differences that
survive canonicalization are reported separately.
"""

import enum
import json
import logging
import math
import time
import unicodedata
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from fpgateway.app.services.c14n import DEFAULT_SERIALIZATION_CONFIG, SerializationConfig, serialize
from fpgateway.app.services.hashing import content_hash, generate_id
from fpgateway.app.services.normalization import UNDEFINED, json_safe, unsupported_sentinel

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIFFERENCE_DEPTH = 10
DEFAULT_MAX_DEPTH = DEFAULT_SERIALIZATION_CONFIG.max_depth

# Numbers closer than this count as a precision difference
PRECISION_TOLERANCE = 0.001

CRITICAL_PROPERTIES = (
    "userAgent",
    "platform",
    "screenResolution",
    "webGLImageHash",
    "canvasFingerprint",
    "audioFingerprint",
)


class DifferenceType(str, enum.Enum):
    VALUE_CHANGE = "value_change"
    TYPE_CHANGE = "type_change"
    MISSING_PROPERTY = "missing_property"
    ADDED_PROPERTY = "added_property"
    ARRAY_LENGTH = "array_length"
    PRECISION_DIFFERENCE = "precision_difference"
    WHITESPACE_DIFFERENCE = "whitespace_difference"
    ENCODING_DIFFERENCE = "encoding_difference"


class DifferenceSeverity(str, enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NEGLIGIBLE = "negligible"


_SEVERITY_RANK = {
    DifferenceSeverity.CRITICAL: 4,
    DifferenceSeverity.HIGH: 3,
    DifferenceSeverity.MEDIUM: 2,
    DifferenceSeverity.LOW: 1,
    DifferenceSeverity.NEGLIGIBLE: 0,
}


@dataclass
class PropertyDifference:
    property: str
    value1: Any
    value2: Any
    type: DifferenceType
    severity: DifferenceSeverity
    affects_hash: bool
    description: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "property": self.property,
            "value1": json_safe(self.value1, DEFAULT_MAX_DEPTH),
            "value2": json_safe(self.value2, DEFAULT_MAX_DEPTH),
            "type": self.type.value,
            "severity": self.severity.value,
            "affectsHash": self.affects_hash,
            "description": self.description,
        }


@dataclass
class ImpactAnalysis:
    total_differences: int
    critical_differences: int
    hash_affecting_differences: int
    normalized_away_differences: int
    most_significant_differences: List[PropertyDifference]
    hash_stability_score: float
    recommendations: List[str]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "totalDifferences": self.total_differences,
            "criticalDifferences": self.critical_differences,
            "hashAffectingDifferences": self.hash_affecting_differences,
            "normalizedAwayDifferences": self.normalized_away_differences,
            "mostSignificantDifferences": [d.as_dict() for d in self.most_significant_differences],
            "hashStabilityScore": self.hash_stability_score,
            "recommendations": list(self.recommendations),
        }


@dataclass
class ComparisonResult:
    identical: bool
    hashes_match: bool
    hash1: str
    hash2: str
    differences: List[PropertyDifference]
    normalized_differences: List[PropertyDifference]
    impact: ImpactAnalysis
    processing_time_ns: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "identical": self.identical,
            "hashesMatch": self.hashes_match,
            "hash1": self.hash1,
            "hash2": self.hash2,
            "differences": [d.as_dict() for d in self.differences],
            "normalizedDifferences": [d.as_dict() for d in self.normalized_differences],
            "impactAnalysis": self.impact.as_dict(),
            "processingTimeNanos": self.processing_time_ns,
        }


@dataclass
class HashVariationAnalysis:
    input_hashes: List[str]
    unique_hashes: List[str]
    variation_rate: float
    common_differences: List[PropertyDifference]
    stability_metrics: Dict[str, float]
    recommendations: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "inputHashes": list(self.input_hashes),
            "uniqueHashes": list(self.unique_hashes),
            "variationRate": self.variation_rate,
            "commonDifferences": [d.as_dict() for d in self.common_differences],
            "stabilityMetrics": dict(self.stability_metrics),
            "recommendations": list(self.recommendations),
        }


class HashComparator:
    """
    Compares signal documents and classifies their differences.

    Args:
        max_difference_depth: Nesting depth below which differences are not
            reported
        ignored_properties: Property names skipped at every level
        severity_rules: Severity overrides keyed by property path
    """

    def __init__(
        self,
        max_difference_depth: int = DEFAULT_MAX_DIFFERENCE_DEPTH,
        ignored_properties: Iterable[str] = (),
        severity_rules: Optional[Dict[str, DifferenceSeverity]] = None,
    ):
        self.max_difference_depth = max_difference_depth
        self.ignored_properties = frozenset(ignored_properties)
        self.severity_rules = dict(severity_rules or {})

    def compare(self, doc1: Any, doc2: Any, config: Optional[SerializationConfig] = None) -> ComparisonResult:
        """
        Compare two signal documents.

        Args:
            doc1: First signal document
            doc2: Second signal document
            config: Serialization policy used for both hashes

        Returns:
            ComparisonResult with both hashes, raw and post-normalization
            differences and an impact analysis
        """
        started = time.perf_counter_ns()

        result1 = serialize(doc1, config)
        result2 = serialize(doc2, config)
        hash1 = content_hash(result1.serialized_text)
        hash2 = content_hash(result2.serialized_text)
        hashes_match = hash1 == hash2

        differences = self.find_differences("", doc1, doc2)
        normalized_differences = self.find_differences(
            "",
            result1.canonical_tree,
            result2.canonical_tree,
        )
        impact = self._analyze_impact(differences, normalized_differences, hashes_match)

        elapsed = time.perf_counter_ns() - started
        logger.debug("Compared documents: %d raw, %d normalized differences, hashes_match=%s",
                     len(differences), len(normalized_differences), hashes_match)

        return ComparisonResult(
            identical=hashes_match and not differences,
            hashes_match=hashes_match,
            hash1=hash1,
            hash2=hash2,
            differences=differences,
            normalized_differences=normalized_differences,
            impact=impact,
            processing_time_ns=elapsed,
        )

    def analyze_variations(
        self,
        docs: Sequence[Any],
        config: Optional[SerializationConfig] = None,
    ) -> HashVariationAnalysis:
        """
        Measure how stable the hash is across several captures.

        Args:
            docs: At least two signal documents, usually captures of the
                same client

        Returns:
            HashVariationAnalysis

        Raises:
            ValueError: If fewer than two documents are given
        """
        if len(docs) < 2:
            raise ValueError("At least 2 inputs required for variation analysis")

        input_hashes = [generate_id(doc, config) for doc in docs]
        unique_hashes = list(OrderedDict.fromkeys(input_hashes))
        variation_rate = len(unique_hashes) / len(input_hashes) * 100

        all_differences = []
        for i in range(len(docs) - 1):
            for j in range(i + 1, len(docs)):
                all_differences.extend(self.find_differences("", docs[i], docs[j]))

        grouped = OrderedDict()
        for diff in all_differences:
            grouped.setdefault((diff.property, diff.type), []).append(diff)
        ranked = sorted(grouped.values(), key=len, reverse=True)
        common_differences = [diffs[0] for diffs in ranked[:10]]

        metrics = _stability_metrics(input_hashes, unique_hashes, all_differences)

        recommendations = []
        if variation_rate > 50:
            recommendations.append("High variation rate detected - review input consistency")
        if metrics["consistency"] < 0.8:
            recommendations.append("Low consistency - investigate common difference patterns")
        if common_differences:
            top = common_differences[0]
            recommendations.append(f"Most common difference: {top.property} ({top.type.value})")
        if metrics["robustness"] < 0.7:
            recommendations.append("Low robustness - minor input changes significantly affect hashes")

        return HashVariationAnalysis(
            input_hashes=input_hashes,
            unique_hashes=unique_hashes,
            variation_rate=variation_rate,
            common_differences=common_differences,
            stability_metrics=metrics,
            recommendations=recommendations,
        )

    def find_differences(self, prefix: str, value1: Any, value2: Any, depth: int = 0) -> List[PropertyDifference]:
        """Walk two values side by side and collect every difference."""
        if depth > self.max_difference_depth:
            return []

        if _is_missing(value1) or _is_missing(value2):
            if not (_is_missing(value1) and _is_missing(value2) and value1 is value2):
                return [self._difference(prefix, value1, value2)]
            return []

        both_mappings = isinstance(value1, Mapping) and isinstance(value2, Mapping)
        both_arrays = _is_array(value1) and _is_array(value2)

        if not both_mappings and not both_arrays:
            if _is_container(value1) or _is_container(value2):
                return [self._difference(prefix, value1, value2, DifferenceType.TYPE_CHANGE)]
            if _kind(value1) != _kind(value2) or value1 != value2:
                return [self._difference(prefix, value1, value2)]
            return []

        if both_arrays:
            return self._compare_arrays(prefix, value1, value2, depth)

        differences = []
        keys = list(OrderedDict.fromkeys(list(value1) + list(value2)))
        for key in keys:
            if key in self.ignored_properties:
                continue
            path = f"{prefix}.{key}" if prefix else str(key)
            if key not in value1:
                differences.append(self._difference(path, UNDEFINED, value2[key], DifferenceType.ADDED_PROPERTY))
            elif key not in value2:
                differences.append(self._difference(path, value1[key], UNDEFINED, DifferenceType.MISSING_PROPERTY))
            else:
                differences.extend(self.find_differences(path, value1[key], value2[key], depth + 1))
        return differences

    def create_difference_report(self, comparison: ComparisonResult) -> str:
        """Plain-text report of a comparison, most relevant differences first."""
        impact = comparison.impact
        lines = [
            "=== Hash Comparison Report ===",
            f"Processing Time: {comparison.processing_time_ns / 1e6:.2f}ms",
            "",
            "=== Hash Results ===",
            f"Hash 1: {comparison.hash1}",
            f"Hash 2: {comparison.hash2}",
            f"Hashes Match: {'YES' if comparison.hashes_match else 'NO'}",
            f"Inputs Identical: {'YES' if comparison.identical else 'NO'}",
            "",
            "=== Impact Analysis ===",
            f"Total Differences: {impact.total_differences}",
            f"Critical Differences: {impact.critical_differences}",
            f"Hash-Affecting Differences: {impact.hash_affecting_differences}",
            f"Normalized Away: {impact.normalized_away_differences}",
            f"Stability Score: {impact.hash_stability_score * 100:.1f}%",
            "",
        ]

        if impact.recommendations:
            lines.append("=== Recommendations ===")
            lines.extend(f"• {rec}" for rec in impact.recommendations)
            lines.append("")

        shown = [d for d in comparison.differences if d.severity is not DifferenceSeverity.NEGLIGIBLE]
        if shown:
            lines.append("=== Detailed Differences ===")
            for diff in shown[:20]:
                lines.append(f"{diff.property} [{diff.severity.value.upper()}]:")
                lines.append(f"  Type: {diff.type.value}")
                lines.append(f"  Value 1: {format_value(diff.value1)}")
                lines.append(f"  Value 2: {format_value(diff.value2)}")
                lines.append(f"  Affects Hash: {'YES' if diff.affects_hash else 'NO'}")
                lines.append(f"  Description: {diff.description}")
                lines.append("")

        return "\n".join(lines)

    def _compare_arrays(self, prefix: str, array1: Sequence, array2: Sequence, depth: int) -> List[PropertyDifference]:
        differences = []
        if len(array1) != len(array2):
            differences.append(self._difference(
                f"{prefix}.length", len(array1), len(array2), DifferenceType.ARRAY_LENGTH,
            ))

        for index in range(max(len(array1), len(array2))):
            item1 = array1[index] if index < len(array1) else UNDEFINED
            item2 = array2[index] if index < len(array2) else UNDEFINED
            differences.extend(self.find_differences(f"{prefix}[{index}]", item1, item2, depth + 1))
        return differences

    def _difference(
        self,
        prop: str,
        value1: Any,
        value2: Any,
        diff_type: Optional[DifferenceType] = None,
    ) -> PropertyDifference:
        diff_type = diff_type or detect_difference_type(value1, value2)
        severity = self._severity(prop, diff_type)
        return PropertyDifference(
            property=prop,
            value1=value1,
            value2=value2,
            type=diff_type,
            severity=severity,
            affects_hash=_affects_hash(diff_type, severity),
            description=describe_difference(diff_type, prop, value1, value2),
        )

    def _severity(self, prop: str, diff_type: DifferenceType) -> DifferenceSeverity:
        if prop in self.severity_rules:
            return DifferenceSeverity(self.severity_rules[prop])

        if diff_type in (DifferenceType.WHITESPACE_DIFFERENCE, DifferenceType.ENCODING_DIFFERENCE):
            return DifferenceSeverity.NEGLIGIBLE
        if diff_type is DifferenceType.PRECISION_DIFFERENCE:
            return DifferenceSeverity.LOW
        if diff_type in (DifferenceType.TYPE_CHANGE, DifferenceType.MISSING_PROPERTY,
                         DifferenceType.ADDED_PROPERTY):
            return DifferenceSeverity.HIGH
        if any(name in prop for name in CRITICAL_PROPERTIES):
            return DifferenceSeverity.CRITICAL
        return DifferenceSeverity.MEDIUM

    def _analyze_impact(
        self,
        differences: List[PropertyDifference],
        normalized_differences: List[PropertyDifference],
        hashes_match: bool,
    ) -> ImpactAnalysis:
        total = len(differences)
        critical = sum(1 for d in differences if d.severity is DifferenceSeverity.CRITICAL)
        hash_affecting = len(normalized_differences)
        normalized_away = max(0, total - hash_affecting)

        score = 1.0
        if total > 0:
            score = max(0.0, 1 - hash_affecting / total)
        if not hashes_match:
            score *= 0.5

        most_significant = sorted(
            (d for d in differences if d.affects_hash),
            key=lambda d: _SEVERITY_RANK[d.severity],
            reverse=True,
        )[:5]

        recommendations = []
        if not hashes_match:
            recommendations.append("Hashes do not match - investigate critical differences")
        if score < 0.7:
            recommendations.append("Low stability score - consider improving input normalization")
        if critical:
            recommendations.append(f"{critical} critical differences found - review core fingerprint properties")
        if normalized_away:
            recommendations.append(
                f"{normalized_away} differences normalized away - normalization is working effectively")
        if any(d.type is DifferenceType.PRECISION_DIFFERENCE for d in differences):
            recommendations.append("Numeric precision differences detected - ensure consistent rounding")
        if any(d.type is DifferenceType.WHITESPACE_DIFFERENCE for d in differences):
            recommendations.append("Whitespace differences detected - ensure consistent string normalization")

        return ImpactAnalysis(
            total_differences=total,
            critical_differences=critical,
            hash_affecting_differences=hash_affecting,
            normalized_away_differences=normalized_away,
            most_significant_differences=most_significant,
            hash_stability_score=score,
            recommendations=recommendations,
        )


def detect_difference_type(value1: Any, value2: Any) -> DifferenceType:
    """Classify a difference between two leaf values."""
    if _kind(value1) != _kind(value2):
        return DifferenceType.TYPE_CHANGE

    if isinstance(value1, str) and isinstance(value2, str):
        if value1.strip() == value2.strip():
            return DifferenceType.WHITESPACE_DIFFERENCE
        if unicodedata.normalize("NFC", value1) == unicodedata.normalize("NFC", value2):
            return DifferenceType.ENCODING_DIFFERENCE

    if _kind(value1) == "number":
        delta = abs(value1 - value2)
        if math.isfinite(delta) and delta < PRECISION_TOLERANCE:
            return DifferenceType.PRECISION_DIFFERENCE

    return DifferenceType.VALUE_CHANGE


def describe_difference(diff_type: DifferenceType, prop: str, value1: Any, value2: Any) -> str:
    if diff_type is DifferenceType.VALUE_CHANGE:
        return f"Value changed from {format_value(value1)} to {format_value(value2)}"
    if diff_type is DifferenceType.TYPE_CHANGE:
        return f"Type changed from {_kind(value1)} to {_kind(value2)}"
    if diff_type is DifferenceType.MISSING_PROPERTY:
        return "Property missing in second input"
    if diff_type is DifferenceType.ADDED_PROPERTY:
        return "Property added in second input"
    if diff_type is DifferenceType.ARRAY_LENGTH:
        return f"Array length changed from {value1} to {value2}"
    if diff_type is DifferenceType.WHITESPACE_DIFFERENCE:
        return "Whitespace differences detected"
    if diff_type is DifferenceType.ENCODING_DIFFERENCE:
        return "Text encoding differences detected"
    if diff_type is DifferenceType.PRECISION_DIFFERENCE:
        return f"Numeric precision difference: {abs(value1 - value2):.2e}"
    return f"Difference detected in {prop}"


def format_value(value: Any) -> str:
    """Short display text for a value in reports."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value[:47]}..."' if len(value) > 50 else f'"{value}"'
    if _is_container(value):
        text = json.dumps(json_safe(value, DEFAULT_MAX_DEPTH), ensure_ascii=False, default=unsupported_sentinel)
        return f"{text[:97]}..." if len(text) > 100 else text
    return str(value)


def compare_signal_documents(
    doc1: Any,
    doc2: Any,
    config: Optional[SerializationConfig] = None,
    ignored_properties: Iterable[str] = (),
) -> ComparisonResult:
    """Compare two signal documents; see HashComparator.compare."""
    comparator = HashComparator(ignored_properties=ignored_properties)
    return comparator.compare(doc1, doc2, config)


def analyze_hash_variations(
    docs: Sequence[Any],
    config: Optional[SerializationConfig] = None,
) -> HashVariationAnalysis:
    """Hash stability across captures; see HashComparator.analyze_variations."""
    return HashComparator().analyze_variations(docs, config)


def _affects_hash(diff_type: DifferenceType, severity: DifferenceSeverity) -> bool:
    if severity is DifferenceSeverity.NEGLIGIBLE:
        return False
    if severity in (DifferenceSeverity.CRITICAL, DifferenceSeverity.HIGH):
        return True
    if diff_type is DifferenceType.PRECISION_DIFFERENCE:
        return False
    return severity is not DifferenceSeverity.LOW


def _stability_metrics(
    input_hashes: List[str],
    unique_hashes: List[str],
    differences: List[PropertyDifference],
) -> Dict[str, float]:
    total = len(input_hashes)
    consistency = 1 - (len(unique_hashes) - 1) / (total - 1)

    entropy = 0.0
    for unique in unique_hashes:
        probability = input_hashes.count(unique) / total
        entropy -= probability * math.log2(probability)
    max_entropy = math.log2(total)

    minor = sum(1 for d in differences
                if d.severity in (DifferenceSeverity.LOW, DifferenceSeverity.NEGLIGIBLE))
    robustness = 1 - minor / len(differences) if differences else 1.0

    return {
        "consistency": consistency,
        "entropy": entropy / max_entropy if max_entropy > 0 else 0.0,
        "predictability": consistency,
        "robustness": robustness,
    }


def _kind(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if _is_array(value):
        return "array"
    return type(value).__name__


def _is_missing(value: Any) -> bool:
    return value is None or value is UNDEFINED


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_container(value: Any) -> bool:
    return isinstance(value, Mapping) or _is_array(value)
