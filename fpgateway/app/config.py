"""
Runtime configuration for the fingerprint gateway

Settings come from environment variables:
- FINGERPRINT_ENV: TEST, DEV, STAGING or PROD (APP_ENV is read as a fallback)
- FINGERPRINT_LOG_LEVEL: overrides the per-environment log level
- FINGERPRINT_MAX_DEPTH: default nesting limit for serialization
"""

import logging
import os
from dataclasses import dataclass

from fpgateway.app.errors import CONFIG_INVALID, FingerprintError
from fpgateway.app.services.c14n import DEFAULT_SERIALIZATION_CONFIG, SerializationConfig
from fpgateway.app.services.normalization import MAX_DEPTH_LIMIT

logger = logging.getLogger(__name__)

ENVIRONMENTS = ("TEST", "DEV", "STAGING", "PROD")
DEFAULT_ENVIRONMENT = "PROD"

_DEFAULT_LOG_LEVELS = {
    "TEST": "DEBUG",
    "DEV": "DEBUG",
    "STAGING": "INFO",
    "PROD": "WARNING",
}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class Settings:
    environment: str = DEFAULT_ENVIRONMENT
    log_level: str = "WARNING"
    max_depth: int = DEFAULT_SERIALIZATION_CONFIG.max_depth

    def serialization_config(self) -> SerializationConfig:
        """Default serialization policy with this deployment's depth limit."""
        return SerializationConfig(max_depth=self.max_depth)


def detect_environment() -> str:
    """
    Current deployment environment.

    Unrecognized values fall back to PROD so a typo never enables
    debug output in production.
    """
    value = os.environ.get("FINGERPRINT_ENV") or os.environ.get("APP_ENV") or ""
    value = value.strip().upper()
    if value in ENVIRONMENTS:
        return value
    if value:
        logger.warning("Unknown environment %r, using %s", value, DEFAULT_ENVIRONMENT)
    return DEFAULT_ENVIRONMENT


def get_settings() -> Settings:
    """
    Build settings from the environment.

    Raises:
        FingerprintError: CONFIG_INVALID if FINGERPRINT_MAX_DEPTH is not an
            integer between 0 and MAX_DEPTH_LIMIT
    """
    environment = detect_environment()
    log_level = os.environ.get("FINGERPRINT_LOG_LEVEL") or _DEFAULT_LOG_LEVELS[environment]

    max_depth = DEFAULT_SERIALIZATION_CONFIG.max_depth
    raw_depth = os.environ.get("FINGERPRINT_MAX_DEPTH")
    if raw_depth:
        try:
            max_depth = int(raw_depth)
        except ValueError:
            max_depth = -1
        if not 0 <= max_depth <= MAX_DEPTH_LIMIT:
            raise FingerprintError(
                CONFIG_INVALID,
                f"FINGERPRINT_MAX_DEPTH must be an integer between 0 and {MAX_DEPTH_LIMIT}",
                {"value": raw_depth},
            )

    return Settings(environment=environment, log_level=log_level.upper(), max_depth=max_depth)


def setup_logging(level: str = "INFO"):
    levelno = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=levelno, format=LOG_FORMAT)
