"""Content identifier - fixed-width fingerprint of document bytes."""

from dataclasses import dataclass

HEX_PREFIX = "0x"
IDENTIFIER_SIZE = 32


@dataclass(frozen=True)
class ContentIdentifier:
    """SHA-256 digest of a document (32 bytes).

    Equality is on the raw digest, so textual casing or prefix differences
    never matter once parsed. The canonical text form is ``0x`` followed by
    64 lowercase hex digits.
    """

    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, bytes):
            object.__setattr__(self, "value", bytes(self.value))
        if len(self.value) != IDENTIFIER_SIZE:
            raise ValueError("Content identifier must be 32 bytes")

    @classmethod
    def from_hex(cls, text: str) -> "ContentIdentifier":
        """Parse hex text, with or without a 0x prefix, in any letter case."""
        raw = text.strip()
        if raw[:2].lower() == HEX_PREFIX:
            raw = raw[2:]
        if len(raw) != IDENTIFIER_SIZE * 2:
            raise ValueError(
                f"Content identifier must be {IDENTIFIER_SIZE * 2} hex digits, got {len(raw)}"
            )
        try:
            return cls(bytes.fromhex(raw))
        except ValueError as e:
            raise ValueError(f"Content identifier is not valid hex: {text!r}") from e

    def to_hex(self, prefixed: bool = True) -> str:
        digits = self.value.hex()
        return HEX_PREFIX + digits if prefixed else digits

    def __str__(self) -> str:
        return self.to_hex()
