"""Maps digest algorithm names to their checksum command contract."""

import hashlib
from typing import Tuple

from .domain import DIGEST_TYPES, ChecksumCommand
from .exceptions import UnsupportedDigestError


class DigestTypeRegistry:
    """The recognized digest algorithms and their verification commands."""

    supported: Tuple[str, ...] = DIGEST_TYPES

    @classmethod
    def normalize(cls, digest_type: str) -> str:
        """Returns the canonical name of a digest type.

        Raises:
            UnsupportedDigestError: If the type is not recognized.
        """
        normalized = (digest_type or "").strip().lower()
        if normalized not in cls.supported:
            raise UnsupportedDigestError(
                f"Unsupported digest type {digest_type!r}; expected one of "
                f"{', '.join(cls.supported)}"
            )
        return normalized

    @classmethod
    def command_for(cls, digest_type: str, name: str) -> ChecksumCommand:
        return ChecksumCommand(digest_type=cls.normalize(digest_type), name=name)

    @classmethod
    def new_hash(cls, digest_type: str):
        """A fresh hashlib object for the digest type."""
        return hashlib.new(cls.normalize(digest_type))
