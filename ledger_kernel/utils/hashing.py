"""
Deterministic hashing utilities.

All content hashes in the ledger are SHA-256 over the raw file bytes, hex
encoded.  Statement imports are deduplicated on ``(bank_id, file_hash)``;
invoices on ``content_hash`` alone, across every tenant.
"""

import hashlib


def hash_file_bytes(content: bytes) -> str:
    """
    Compute the SHA-256 content hash of a file.

    Args:
        content: Raw file bytes, exactly as received.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).

    Raises:
        TypeError: If content is not bytes (text must be encoded by the caller
            so that the hash matches the stored file).
    """
    if not isinstance(content, (bytes, bytearray)):
        raise TypeError("hash_file_bytes expects bytes")
    return hashlib.sha256(content).hexdigest()
