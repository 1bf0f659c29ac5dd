"""Canonical content hashing.

Every component that derives a content identifier (upload, notarization,
verification) goes through ``hash_content``; a second hashing routine
anywhere would let the two drift apart and break verification.
"""

import hashlib

from docnotary.domain.value_objects import ContentIdentifier

HASH_ALGORITHM = "sha256"


def hash_content(data: bytes | bytearray | memoryview) -> ContentIdentifier:
    """SHA-256 of the raw bytes. Defined for empty input."""
    return ContentIdentifier(hashlib.new(HASH_ALGORITHM, data).digest())
