"""
Content hashing for signal documents

A fingerprint is the SHA-256 digest of the canonical text of a signal
document. No salt, timestamp or random input enters the digest, so the same
logical document always yields the same identifier.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fpgateway.app.errors import HashConfigurationError
from fpgateway.app.services.c14n import SerializationConfig, SerializationResult, serialize
from fpgateway.app.services.normalization import scrub_surrogates
from fpgateway.app.services.trace import DebugSession


HASH_ALGORITHM = "sha256"
HASH_HEX_LENGTH = 64


@dataclass
class HashDebugResult:
    """Hash plus the serialization pass and normalization trace behind it."""
    hash: str
    serialization_result: SerializationResult
    debug_session: DebugSession

    def as_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "debugInfo": {
                "serializationResult": self.serialization_result.as_dict(),
                "session": self.debug_session.as_dict(),
            },
        }


def sha256_hex(data: bytes) -> str:
    """
    Compute SHA-256 hash and return as lowercase hexadecimal string.

    Args:
        data: Raw bytes to hash

    Returns:
        Lowercase hexadecimal SHA-256 hash (64 characters)

    Raises:
        HashConfigurationError: If the SHA-256 implementation is unavailable

    Example:
        >>> sha256_hex(b"hello")
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    try:
        digest = hashlib.new(HASH_ALGORITHM)
    except (ValueError, TypeError) as exc:
        raise HashConfigurationError(
            f"Digest algorithm unavailable: {HASH_ALGORITHM}",
            {"algorithm": HASH_ALGORITHM, "reason": str(exc)},
        ) from exc

    digest.update(data)
    return digest.hexdigest()


def content_hash(text: str) -> str:
    """
    Hash canonical text.

    Args:
        text: Canonical serialized text

    Returns:
        64-character lowercase hex SHA-256 of the UTF-8 encoded text; lone
        surrogates are encoded as U+FFFD
    """
    return sha256_hex(scrub_surrogates(text).encode("utf-8"))


def generate_id(doc: Any, config: Optional[SerializationConfig] = None) -> str:
    """
    Generate the content-addressed identifier of a signal document.

    Args:
        doc: Signal document (any value is accepted)
        config: Serialization policy (default policy if None)

    Returns:
        64-character lowercase hex hash of the document's canonical text

    Example:
        >>> generate_id({"b": 2, "a": 1}) == generate_id({"a": 1, "b": 2})
        True
    """
    return content_hash(serialize(doc, config).serialized_text)


def generate_id_with_debug(
    doc: Any,
    config: Optional[SerializationConfig] = None,
    session: Optional[DebugSession] = None,
) -> HashDebugResult:
    """
    Same hash as generate_id, plus the serialization result and a trace of
    every normalization step.

    Args:
        doc: Signal document
        config: Serialization policy (default policy if None)
        session: Session to record into; a new one is opened and ended
            if None
    """
    owned = session is None
    if owned:
        session = DebugSession()

    result = serialize(doc, config, session)
    digest = content_hash(result.serialized_text)
    if owned:
        session.end()

    return HashDebugResult(
        hash=digest,
        serialization_result=result,
        debug_session=session,
    )
