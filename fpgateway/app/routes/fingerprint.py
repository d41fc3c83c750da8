"""
Fingerprint routes: reports, hashes and comparisons
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from fpgateway.app.config import Settings, get_settings
from fpgateway.app.models.signals import (
    CompareRequest,
    FingerprintRequest,
    HashRequest,
    SerializationCompareRequest,
    SerializationOptions,
    VpnStatusRequest,
)
from fpgateway.app.services.c14n import SerializationConfig, compare_serialization_methods
from fpgateway.app.services.comparison import compare_signal_documents
from fpgateway.app.services.confidence import calculate_combined_confidence
from fpgateway.app.services.hashing import generate_id, generate_id_with_debug
from fpgateway.app.services.normalization import json_safe
from fpgateway.app.services.report import assemble
from fpgateway.app.services.vpn import get_vpn_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["fingerprint"])


def resolve_config(options: Optional[SerializationOptions], settings: Settings) -> SerializationConfig:
    """Serialization policy for a request: its options over the deployment defaults."""
    if options is None:
        return settings.serialization_config()
    return options.to_config(settings.max_depth)


@router.post("/fingerprint")
async def create_report(request: FingerprintRequest, settings: Settings = Depends(get_settings)):
    """
    Build a composite fingerprint report.

    When combinedScore is omitted and a geolocation is supplied, the combined
    score is derived from the signal document and the geolocation.

    Returns:
        Report with confidenceAssessment, geolocation, systemInfo and hash
    """
    config = resolve_config(request.options, settings)

    combined_score = request.combined_score
    if combined_score is None and request.geolocation is not None:
        combined_score = calculate_combined_confidence(request.system_info, request.geolocation)

    return json_safe(assemble(request.geolocation, request.system_info, combined_score, config))


@router.post("/fingerprint/hash")
async def hash_signals(request: HashRequest, settings: Settings = Depends(get_settings)):
    """
    Compute the content hash of a signal document.

    Returns:
        {"hash": ...}, plus "serialized", "stats" and the normalization
        "trace" when debug is set
    """
    config = resolve_config(request.options, settings)

    if not request.debug:
        return {"hash": generate_id(request.system_info, config)}

    result = generate_id_with_debug(request.system_info, config)
    return json_safe({
        "hash": result.hash,
        "serialized": result.serialization_result.serialized_text,
        "stats": result.serialization_result.stats.as_dict(),
        "trace": result.debug_session.as_dict(),
    })


@router.post("/fingerprint/compare")
async def compare_signals(request: CompareRequest, settings: Settings = Depends(get_settings)):
    """Explain the differences between two signal documents and their hashes."""
    config = resolve_config(request.options, settings)
    comparison = compare_signal_documents(
        request.first,
        request.second,
        config,
        ignored_properties=request.ignored_properties,
    )
    return json_safe(comparison.as_dict())


@router.post("/serialization/compare")
async def compare_serialization(request: SerializationCompareRequest, settings: Settings = Depends(get_settings)):
    """Serialize one value with the current and the legacy rules."""
    config = resolve_config(request.options, settings)
    return json_safe(compare_serialization_methods(request.value, config).as_dict())


@router.post("/vpn-status")
async def vpn_status(request: VpnStatusRequest):
    """Estimate VPN usage from the geolocated and the client timezone."""
    return get_vpn_status(request.geoip, request.localtime).as_dict()
