"""
VPN heuristic based on timezone agreement

A browser reporting a different timezone than the one geolocated for its IP
address is a hint, not proof, of a tunnelled connection.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fpgateway.app.services.timezones import normalize_timezone

logger = logging.getLogger(__name__)

UNKNOWN_TIMEZONE = "unknown"

PROBABILITY_UNKNOWN = 0.5
PROBABILITY_MISMATCH = 0.75
PROBABILITY_MATCH = 0.2


@dataclass(frozen=True)
class VpnStatus:
    status: bool
    probability: float

    def as_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "probability": self.probability}


def get_vpn_status(geoip: Optional[str], localtime: Optional[str]) -> VpnStatus:
    """
    Estimate VPN usage from the geolocated and the local timezone.

    Args:
        geoip: Timezone of the IP address geolocation
        localtime: Timezone reported by the client

    Returns:
        VpnStatus:
        - either side missing or "unknown": status False, probability 0.5
        - names differ after alias resolution: status True, probability 0.75
        - names agree: status False, probability 0.2

    Example:
        >>> get_vpn_status("UTC", "Etc/UTC")
        VpnStatus(status=False, probability=0.2)
    """
    if not geoip or not localtime:
        return VpnStatus(False, PROBABILITY_UNKNOWN)
    if geoip == UNKNOWN_TIMEZONE or localtime == UNKNOWN_TIMEZONE:
        return VpnStatus(False, PROBABILITY_UNKNOWN)

    if normalize_timezone(geoip) != normalize_timezone(localtime):
        logger.debug("Timezone mismatch: geoip=%s localtime=%s", geoip, localtime)
        return VpnStatus(True, PROBABILITY_MISMATCH)

    return VpnStatus(False, PROBABILITY_MATCH)
