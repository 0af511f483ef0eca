from __future__ import annotations

import hashlib
import zlib

from .constants import SHORT_HASH_HEX


def crc32(data: bytes) -> int:
    # Unsigned, as zip headers store it
    return zlib.crc32(data) & 0xFFFFFFFF


def short_hash(data: bytes) -> str:
    """Compact content fingerprint used by listings; not a sidecar digest."""
    return hashlib.blake2s(data, digest_size=SHORT_HASH_HEX // 2).hexdigest()
