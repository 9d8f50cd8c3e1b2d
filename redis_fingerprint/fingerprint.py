"""
Fingerprinting of canonical value sequences.

The digest is BLAKE2b truncated to 8 bytes, computed over the element count
followed by each element's length and bytes. Length prefixes keep element
boundaries in the hash, so ``["ab", "c"]`` and ``["a", "bc"]`` differ.
"""

import hashlib
import struct
from typing import Sequence

DIGEST_SIZE = 8

_LENGTH = struct.Struct(">Q")


def encode_element(element: str) -> bytes:
    """Encode one canonical element, restoring surrogate-escaped raw bytes."""
    return element.encode("utf-8", "surrogateescape")


def digest(sequence: Sequence[str]) -> int:
    """
    Hash a canonical sequence into an unsigned 64-bit integer.

    Args:
        sequence: Canonical form of a value

    Returns:
        Digest in the range ``[0, 2**64)``
    """
    hasher = hashlib.blake2b(digest_size=DIGEST_SIZE)
    hasher.update(_LENGTH.pack(len(sequence)))
    for element in sequence:
        data = encode_element(element)
        hasher.update(_LENGTH.pack(len(data)))
        hasher.update(data)
    return int.from_bytes(hasher.digest(), "big")


def format_digest(value: int) -> str:
    """Lowercase hexadecimal, no padding, as written to the log."""
    return f"{value:x}"
