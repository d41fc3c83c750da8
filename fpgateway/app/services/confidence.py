"""
Confidence scoring for signal documents

Classifies how trustworthy a signal document is, alone ("system") or
together with the network traits of its IP address ("combined"), into one of
five ordered reliability bands with human-readable factors.

get_language_consistency and is_risky_asn are standalone helpers for
callers that hold a browser language or an ASN; the combined score does not
use them, since network traits arrive already resolved in the geolocation.
"""

import enum
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fpgateway.app.services.normalization import to_text


# Score used when a document carries no usable confidenceScore
FALLBACK_SCORE = 0.1

COMBINED_BASE_SCORE = 0.5
COMBINED_MIN_SCORE = 0.1
COMBINED_MAX_SCORE = 0.9

BOT_SIGNALS_DETECTED = "Bot signals detected"
NO_BOT_SIGNALS = "No bot signals detected"
UA_PLATFORM_MISMATCH = "User agent and platform mismatch"
HARDWARE_INCONSISTENT = "Hardware profile inconsistencies detected"
NO_NETWORK_FACTORS = "No suspicious network factors detected"

# Trait name and factor text, in reporting order
NETWORK_FACTORS = (
    ("isAnonymousProxy", "Proxy detected"),
    ("isAnonymousVpn", "VPN detected"),
    ("isHostingProvider", "Hosting provider detected"),
    ("isTorExitNode", "Tor exit node detected"),
)

LANGUAGES_BY_COUNTRY = {
    "US": ("en", "es"),
    "GB": ("en",),
    "FR": ("fr",),
    "DE": ("de",),
    "CN": ("zh",),
    "JP": ("ja",),
    "RU": ("ru",),
    "IN": ("hi", "en"),
}

RISKY_ASNS = frozenset({
    "AS14061",  # DigitalOcean
    "AS16276",  # OVH
    "AS16509",  # Amazon AWS
    "AS14618",  # Amazon AWS
    "AS3356",   # Level3
    "AS9009",   # M247
    "AS24940",  # Hetzner
    "AS48666",  # NETASSIST
})

_OS_MARKERS = (
    ("windows", "win"),
    ("mac", "mac"),
    ("linux", "linux"),
)


class ConfidenceLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM_LOW = "medium-low"
    MEDIUM = "medium"
    MEDIUM_HIGH = "medium-high"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = [
    ConfidenceLevel.LOW,
    ConfidenceLevel.MEDIUM_LOW,
    ConfidenceLevel.MEDIUM,
    ConfidenceLevel.MEDIUM_HIGH,
    ConfidenceLevel.HIGH,
]


@dataclass(frozen=True)
class ConfidenceBand:
    level: ConfidenceLevel
    rating: str
    description: str
    reliability: str


# Lower bound (inclusive) and band, highest first
_BANDS = (
    (0.8, ConfidenceBand(
        ConfidenceLevel.HIGH,
        "High Confidence",
        "The data appears to be from a genuine user with consistent information across all signals.",
        "Data is highly reliable for most purposes including fraud detection and analytics.",
    )),
    (0.65, ConfidenceBand(
        ConfidenceLevel.MEDIUM_HIGH,
        "Medium-High Confidence",
        "The data appears mostly consistent with some minor discrepancies.",
        "Data is generally reliable but may have some inconsistencies worth investigating.",
    )),
    (0.5, ConfidenceBand(
        ConfidenceLevel.MEDIUM,
        "Medium Confidence",
        "The data shows a moderate level of consistency, but with some concerning signals.",
        "Data should be treated with caution and verified through additional means.",
    )),
    (0.35, ConfidenceBand(
        ConfidenceLevel.MEDIUM_LOW,
        "Medium-Low Confidence",
        "The data shows significant inconsistencies that suggest possible fraud or spoofing.",
        "Data reliability is questionable and should not be trusted without verification.",
    )),
)

_LOW_BAND = ConfidenceBand(
    ConfidenceLevel.LOW,
    "Low Confidence",
    "The data exhibits strong signals of automation, spoofing, or intentional manipulation.",
    "Data is highly unreliable and shows strong indications of non-human origin.",
)


@dataclass
class ConfidenceAssessment:
    score: float
    level: ConfidenceLevel
    rating: str
    description: str
    reliability: str
    factors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "rating": self.rating,
            "description": self.description,
            "reliability": self.reliability,
            "factors": list(self.factors),
        }


def interpret_confidence_score(score: float) -> ConfidenceBand:
    """
    Map a score onto its reliability band.

    Lower bounds are inclusive: 0.8 high, 0.65 medium-high, 0.5 medium,
    0.35 medium-low, anything below low.

    Example:
        >>> interpret_confidence_score(0.9).level.value
        'high'
    """
    for lower_bound, band in _BANDS:
        if score >= lower_bound:
            return band
    return _LOW_BAND


def system_confidence(signal_doc: Any) -> ConfidenceAssessment:
    """
    Assess a signal document on its own.

    Args:
        signal_doc: Signal document; missing fields degrade to defaults

    Returns:
        ConfidenceAssessment scored from the document's confidenceScore,
        with bot signals and consistency findings as factors
    """
    doc = signal_doc if isinstance(signal_doc, Mapping) else {}
    score = _clamp(_number_or(doc.get("confidenceScore"), FALLBACK_SCORE), 0.0, 1.0)

    factors = []
    bot = doc.get("bot")
    if isinstance(bot, Mapping) and bot.get("isBot"):
        factors.append(BOT_SIGNALS_DETECTED)
        signals = bot.get("signals")
        if isinstance(signals, (list, tuple)):
            factors.extend(to_text(signal) for signal in signals)
    else:
        factors.append(NO_BOT_SIGNALS)

    user_agent = doc.get("userAgent")
    platform = doc.get("platform")
    if isinstance(user_agent, str) and isinstance(platform, str):
        if get_ua_platform_mismatch(user_agent, platform) > 0:
            factors.append(UA_PLATFORM_MISMATCH)

    if check_browser_consistency(doc) < 0:
        factors.append(HARDWARE_INCONSISTENT)

    return _assessment(score, factors)


def combined_confidence(score: float, traits: Optional[Mapping] = None) -> ConfidenceAssessment:
    """
    Assess a combined system and network score.

    Args:
        score: Combined score, clamped to [0, 1]
        traits: Network traits of the IP address, if known

    Returns:
        ConfidenceAssessment whose factors name every suspicious trait, or
        the single "No suspicious network factors detected" entry
    """
    score = _clamp(_number_or(score, FALLBACK_SCORE), 0.0, 1.0)

    factors = []
    if isinstance(traits, Mapping):
        factors = [text for trait, text in NETWORK_FACTORS if traits.get(trait) is True]
    if not factors:
        factors = [NO_NETWORK_FACTORS]

    return _assessment(score, factors)


def get_language_consistency(language: str, country: str) -> float:
    """
    Score agreement between a browser language and a country code.

    Returns:
        0.15 when the primary language is spoken in the country, -0.1 when
        it is not, 0 when the country is not in the table
    """
    if not isinstance(language, str) or not isinstance(country, str):
        return 0
    primary = language.split("-")[0].lower()
    spoken = LANGUAGES_BY_COUNTRY.get(country.upper())
    if spoken is None:
        return 0
    return 0.15 if primary in spoken else -0.1


def is_risky_asn(asn: str) -> bool:
    """True for autonomous systems of well-known hosting providers."""
    return asn in RISKY_ASNS


def get_ua_platform_mismatch(user_agent: str, platform: str) -> float:
    """
    Penalty for a user agent that disagrees with the reported platform.

    Returns:
        0.2 when one side looks mobile and the other does not, 0.15 when the
        operating systems disagree, 0 otherwise
    """
    ua = user_agent.lower()
    plat = platform.lower()

    mobile_ua = "mobile" in ua or "android" in ua or "iphone" in ua
    mobile_platform = "arm" in plat or "iphone" in plat or "android" in plat
    if mobile_ua != mobile_platform:
        return 0.2

    for ua_marker, platform_marker in _OS_MARKERS:
        if ua_marker in ua and platform_marker not in plat:
            return 0.15
    return 0


def check_browser_consistency(system_info: Any) -> float:
    """
    Count hardware profile contradictions.

    Checks a viewport larger than the screen and implausible pairings of
    device memory and CPU count.

    Returns:
        Minus 0.1 per contradiction, bounded to [-0.3, 0.3]
    """
    if not isinstance(system_info, Mapping):
        return 0

    inconsistencies = 0

    screen = _dimensions(system_info.get("screenResolution"))
    viewport = _dimensions(system_info.get("viewportSize"))
    if screen and viewport:
        if viewport[0] > screen[0] or viewport[1] > screen[1]:
            inconsistencies += 1

    memory = _number_or(system_info.get("deviceMemory"), 0)
    cores = _number_or(system_info.get("hardwareConcurrency"), 0)
    if memory and cores:
        if memory < 2 and cores > 4:
            inconsistencies += 1
        if memory > 8 and cores < 4:
            inconsistencies += 1

    return max(-0.3, min(0.3, -inconsistencies * 0.1))


def calculate_combined_confidence(system_info: Any, geolocation: Optional[Mapping]) -> float:
    """
    Derive a combined score from the signal document and its geolocation.

    Starts from the document's confidenceScore (0.5 when absent) and
    subtracts penalties for bot signals, anonymizing networks, a timezone
    that disagrees with the geolocation and a user agent that disagrees with
    the platform.

    Returns:
        Score bounded to [0.1, 0.9]
    """
    doc = system_info if isinstance(system_info, Mapping) else {}
    geo = geolocation if isinstance(geolocation, Mapping) else {}

    confidence = _number_or(doc.get("confidenceScore"), 0) or COMBINED_BASE_SCORE

    bot = doc.get("bot")
    if isinstance(bot, Mapping) and bot.get("isBot"):
        confidence -= min(0.4, _number_or(bot.get("confidence"), 0) * 0.6)

    traits = geo.get("traits")
    if isinstance(traits, Mapping):
        if traits.get("isAnonymousProxy") or traits.get("isHostingProvider") or traits.get("isTorExitNode"):
            confidence -= 0.2

    timezone = doc.get("timezone")
    location = geo.get("location")
    geo_timezone = location.get("timeZone") if isinstance(location, Mapping) else None
    if timezone and geo_timezone != timezone:
        confidence -= 0.15

    user_agent = doc.get("userAgent")
    platform = doc.get("platform")
    if user_agent and platform and isinstance(user_agent, str) and isinstance(platform, str):
        confidence -= get_ua_platform_mismatch(user_agent, platform)

    return _clamp(confidence, COMBINED_MIN_SCORE, COMBINED_MAX_SCORE)


def _assessment(score: float, factors: List[str]) -> ConfidenceAssessment:
    band = interpret_confidence_score(score)
    return ConfidenceAssessment(
        score=score,
        level=band.level,
        rating=band.rating,
        description=band.description,
        reliability=band.reliability,
        factors=factors,
    )


def _number_or(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return value


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _dimensions(value: Any) -> Optional[tuple]:
    if not isinstance(value, Sequence) or isinstance(value, str) or len(value) < 2:
        return None
    width, height = _number_or(value[0], None), _number_or(value[1], None)
    if width is None or height is None:
        return None
    return width, height
