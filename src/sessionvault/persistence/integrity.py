"""Integrity digests for session archives.

SHA-256 over the exact archive bytes, rendered as 64 lowercase hex
characters. The digest always covers the full reassembled archive, never an
individual chunk.
"""

import hashlib
import hmac

DIGEST_HEX_LENGTH = 64


def digest(data: bytes | bytearray | memoryview) -> str:
    """Compute the SHA-256 hex digest of ``data``.

    Example:
        >>> digest(b"")
        'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    return hashlib.sha256(data).hexdigest()


def verify(data: bytes | bytearray | memoryview, expected: str) -> bool:
    """Return True if ``data`` hashes to ``expected`` (constant-time compare).

    A stored checksum that is not plain ASCII can never match and gives False.
    """
    if not expected.isascii():
        return False
    return hmac.compare_digest(digest(data), expected.lower())
