"""
Composite fingerprint report

Merges a signal document, an optional geolocation document, the VPN
heuristic, the confidence assessments and the content hash into the single
document returned to callers.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional

from fpgateway.app.services.c14n import SerializationConfig
from fpgateway.app.services.confidence import combined_confidence, system_confidence
from fpgateway.app.services.hashing import generate_id
from fpgateway.app.services.vpn import get_vpn_status

logger = logging.getLogger(__name__)

_EMPTY_REGION = {"isoCode": "", "name": ""}
_EMPTY_CONTINENT = {"code": "", "name": ""}
_EMPTY_LOCATION = {"accuracyRadius": 0, "latitude": 0, "longitude": 0, "timeZone": ""}

_PROJECTED_TRAITS = (
    "isAnonymous",
    "isAnonymousProxy",
    "isAnonymousVpn",
    "isHostingProvider",
    "isTorExitNode",
)


def assemble(
    geolocation: Optional[Mapping],
    system_info: Any,
    combined_score: Optional[float] = None,
    config: Optional[SerializationConfig] = None,
) -> Dict[str, Any]:
    """
    Build the composite report.

    Args:
        geolocation: Geolocation document of the client IP, or None
        system_info: Signal document, passed through unchanged
        combined_score: Combined system and network score, if computed
        config: Serialization policy for the hash

    Returns:
        Dict with confidenceAssessment, geolocation, systemInfo and hash.
        confidenceAssessment.combined is present only when combined_score
        is given.
    """
    assessment = {"system": system_confidence(system_info).as_dict()}
    if combined_score is not None:
        traits = geolocation.get("traits") if isinstance(geolocation, Mapping) else None
        assessment["combined"] = combined_confidence(combined_score, traits).as_dict()

    projected = None
    if isinstance(geolocation, Mapping):
        local_timezone = system_info.get("timezone") if isinstance(system_info, Mapping) else None
        projected = project_geolocation(geolocation, local_timezone)

    report = {
        "confidenceAssessment": assessment,
        "geolocation": projected,
        "systemInfo": system_info,
        "hash": generate_id(system_info, config),
    }
    logger.debug("Assembled report %s (geolocation=%s, combined=%s)",
                 report["hash"], projected is not None, combined_score is not None)
    return report


def project_geolocation(geolocation: Mapping, local_timezone: Optional[str] = None) -> Dict[str, Any]:
    """Reduce a geolocation document to the report fields, with empty defaults."""
    location = _mapping(geolocation.get("location"))
    traits = _mapping(geolocation.get("traits"))
    city = _mapping(geolocation.get("city"))

    subdivisions = geolocation.get("subdivisions")
    region = None
    if isinstance(subdivisions, (list, tuple)) and subdivisions:
        region = subdivisions[0]

    vpn_status = get_vpn_status(location.get("timeZone"), local_timezone)

    projected_traits = {name: bool(traits.get(name, False)) for name in _PROJECTED_TRAITS}
    projected_traits["network"] = traits.get("network") or ""

    return {
        "vpnStatus": vpn_status.as_dict(),
        "ip": geolocation.get("ipAddress") or traits.get("ipAddress") or "",
        "city": city.get("name") or "",
        "region": region or dict(_EMPTY_REGION),
        "country": geolocation.get("country") or dict(_EMPTY_REGION),
        "continent": geolocation.get("continent") or dict(_EMPTY_CONTINENT),
        "location": location or dict(_EMPTY_LOCATION),
        "traits": projected_traits,
    }


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}
