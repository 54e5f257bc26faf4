"""Shared TOTP secret value object."""

import base64
import binascii
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Secret:
    """Raw shared secret. Rendered as unpadded Base32 for authenticator apps."""

    raw: bytes = field(repr=False)

    @property
    def base32(self) -> str:
        """Base32 form without padding, as used in provisioning URIs."""
        return base64.b32encode(self.raw).decode("ascii").rstrip("=")

    @property
    def manual_entry_key(self) -> str:
        """Base32 form split into groups of four for manual transcription."""
        value = self.base32
        return " ".join(value[i : i + 4] for i in range(0, len(value), 4))

    @property
    def bits(self) -> int:
        return len(self.raw) * 8

    @classmethod
    def from_base32(cls, value: str) -> "Secret":
        """
        Parse a Base32 secret as typed by a user or stored by another system.

        Spaces and hyphens are ignored, case does not matter and padding is
        optional.

        Raises:
            ValueError: If the value is not valid Base32
        """
        cleaned = value.replace(" ", "").replace("-", "").upper().rstrip("=")
        if not cleaned:
            raise ValueError("Secret is empty")
        padded = cleaned + "=" * (-len(cleaned) % 8)
        try:
            return cls(raw=base64.b32decode(padded))
        except binascii.Error as e:
            raise ValueError("Secret is not valid Base32") from e

    def __str__(self) -> str:
        return "Secret(<redacted>)"
