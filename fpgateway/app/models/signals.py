"""
Request models for the fingerprint endpoints.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from fpgateway.app.services.c14n import SerializationConfig
from fpgateway.app.services.normalization import MAX_DEPTH_LIMIT


class SerializationOptions(BaseModel):
    """Serialization policy overrides accepted by every endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    enable_normalization: bool = Field(default=True, alias="enableNormalization")
    sort_keys: bool = Field(default=True, alias="sortKeys")
    sort_arrays: bool = Field(default=True, alias="sortArrays")
    max_depth: Optional[int] = Field(default=None, ge=0, le=MAX_DEPTH_LIMIT, alias="maxDepth",
                                     description="Nesting limit (deployment default if omitted)")
    include_nulls: bool = Field(default=True, alias="includeNulls")
    include_undefined: bool = Field(default=True, alias="includeUndefined")
    redact_keys: List[str] = Field(default_factory=list, alias="redactKeys",
                                   description="Property names replaced by [REDACTED] before hashing")

    def to_config(self, default_max_depth: int) -> SerializationConfig:
        options = self.model_dump(by_alias=True)
        if options["maxDepth"] is None:
            options["maxDepth"] = default_max_depth
        return SerializationConfig.from_options(options)


class FingerprintRequest(BaseModel):
    """Request for a composite fingerprint report."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "systemInfo": {
                    "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
                    "platform": "Win32",
                    "timezone": "America/New_York",
                    "languages": ["en-US", "en"],
                    "confidenceScore": 0.85,
                    "bot": {"isBot": False, "signals": [], "confidence": 0},
                },
                "geolocation": {
                    "ipAddress": "203.0.113.7",
                    "city": {"name": "New York"},
                    "country": {"isoCode": "US", "name": "United States"},
                    "location": {"timeZone": "America/New_York"},
                    "traits": {"isAnonymousVpn": False},
                },
            }
        },
    )

    system_info: Dict[str, Any] = Field(..., alias="systemInfo", description="Collected signal document")
    geolocation: Optional[Dict[str, Any]] = Field(default=None, description="Geolocation of the client IP")
    combined_score: Optional[float] = Field(default=None, ge=0, le=1, alias="combinedScore")
    options: Optional[SerializationOptions] = None


class HashRequest(BaseModel):
    """Request for the content hash of a signal document."""
    model_config = ConfigDict(populate_by_name=True)

    system_info: Dict[str, Any] = Field(..., alias="systemInfo")
    options: Optional[SerializationOptions] = None
    debug: bool = Field(default=False, description="Include canonical text and pass statistics")


class CompareRequest(BaseModel):
    """Request to explain the differences between two signal documents."""
    model_config = ConfigDict(populate_by_name=True)

    first: Dict[str, Any]
    second: Dict[str, Any]
    options: Optional[SerializationOptions] = None
    ignored_properties: List[str] = Field(default_factory=list, alias="ignoredProperties")


class SerializationCompareRequest(BaseModel):
    """Request to serialize one value with the current and the legacy rules."""
    model_config = ConfigDict(populate_by_name=True)

    value: Any = None
    options: Optional[SerializationOptions] = None


class VpnStatusRequest(BaseModel):
    geoip: Optional[str] = Field(default=None, description="Timezone of the IP geolocation")
    localtime: Optional[str] = Field(default=None, description="Timezone reported by the client")
