"""Data models for key fingerprints.

This module provides the type tags reported by the store and the Record
written to the fingerprint log.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .fingerprint import format_digest


class TypeTag(str, Enum):
    """Data-structure kind of a key, spelled the way the store reports it."""

    STRING = "string"
    LIST = "list"
    SET = "set"
    HASH = "hash"
    ZSET = "zset"
    NONE = "none"

    @classmethod
    def from_store(cls, type_name: str) -> Optional["TypeTag"]:
        """Map a store type name to a tag, or None when it is not supported."""
        try:
            return cls(type_name)
        except ValueError:
            return None


@dataclass(frozen=True)
class Record:
    """Fingerprint of one key.

    Attributes:
        key: Key as enumerated from the store
        type_tag: Type detected at fetch time
        digest: 64-bit fingerprint of the canonical value
    """

    key: str
    type_tag: TypeTag
    digest: int

    def format_line(self) -> str:
        """Render the log line: ``<key> <type>: <hex digest>``."""
        return f"{self.key} {self.type_tag.value}: {format_digest(self.digest)}\n"

    def to_bytes(self) -> bytes:
        """Encode the log line, restoring the original bytes of non-UTF-8 keys."""
        return self.format_line().encode("utf-8", "surrogateescape")
