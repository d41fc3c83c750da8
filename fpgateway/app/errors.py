"""
Structured errors for the fingerprint gateway
"""

from typing import Any, Dict, Optional


CONFIG_INVALID = "CONFIG_INVALID"
INVALID_INPUT = "INVALID_INPUT"
UNKNOWN_ERROR = "UNKNOWN_ERROR"


class FingerprintError(Exception):
    """Error carrying a machine-readable code and optional details."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        result = {"code": self.code, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


class HashConfigurationError(FingerprintError):
    """The digest primitive is missing or unusable."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(CONFIG_INVALID, message, details)
