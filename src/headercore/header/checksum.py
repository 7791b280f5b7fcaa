"""
Body checksum utilities.

The checksum recorded in a header covers the artifact body only, never the
header block itself, so regenerating the header does not invalidate it.  The
body is normalized first (``\\r\\n`` → ``\\n``, surrounding blank space
stripped) so moving the header or re-saving with different line endings
does not count as a content change.
"""

from __future__ import annotations

import hashlib
import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "sha256"

# Fixed-length digests only: shake_* needs an explicit output length.
SUPPORTED_ALGORITHMS = frozenset(
    name for name in hashlib.algorithms_guaranteed if not name.startswith("shake_")
)

_CHECKSUM_RE = re.compile(r"^(?P<algorithm>[a-z0-9_]+):(?P<digest>[0-9a-f]+)$")


def normalize_body(body: str) -> str:
    """Canonical form of an artifact body used for hashing."""
    return body.replace("\r\n", "\n").replace("\r", "\n").strip()


def get_content_checksum(content: str | bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """
    Compute the hex digest of string or bytes content.

    Args:
        content: String or bytes to hash
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Hex digest of the content
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.new(algorithm, content).hexdigest()


def body_checksum(body: str, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Checksum of a body in the serialized ``<algorithm>:<hex>`` form."""
    return f"{algorithm}:{get_content_checksum(normalize_body(body), algorithm)}"


def is_valid_checksum(value: str) -> bool:
    """Whether ``value`` looks like ``<algorithm>:<hex>``."""
    return _CHECKSUM_RE.match(value) is not None


def checksum_matches(recorded: str, body: str) -> bool:
    """Recompute with the recorded algorithm and compare.

    An unsupported or unusable algorithm never matches, so the header is
    treated as stale and regenerated with the configured algorithm.
    """
    m = _CHECKSUM_RE.match(recorded)
    if m is None:
        return False
    algorithm = m.group("algorithm")
    if algorithm not in SUPPORTED_ALGORITHMS:
        logger.debug("Unsupported checksum algorithm '%s'", algorithm)
        return False
    try:
        computed = body_checksum(body, algorithm)
    except ValueError as exc:
        # Listed by hashlib but refused by the crypto backend.
        logger.debug("Checksum algorithm '%s' unusable: %s", algorithm, exc)
        return False
    return computed == recorded
