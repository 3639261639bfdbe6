"""
BIP44 derivation paths for Polkadot-family accounts on a Ledger device.
"""
import re
import struct
from dataclasses import dataclass

HARDENED = 0x80000000
PURPOSE = 44
COIN_TYPE = 354

_SEGMENT_RE = re.compile(r"^(\d+)('?)$")


@dataclass(frozen=True)
class DerivationPath:
    """
    A ``m/44'/354'/account'/change'/address_index'`` path.

    The same instance must be used for address derivation and signing;
    the device derives the key again for every request.
    """
    account: int = 0
    change: int = 0
    address_index: int = 0
    purpose: int = PURPOSE
    coin_type: int = COIN_TYPE
    harden_index: bool = True

    def __post_init__(self):
        for name in ("purpose", "coin_type", "account", "change", "address_index"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
            if value < 0 or value >= HARDENED:
                raise ValueError(f"{name} out of range: {value}")

    @property
    def segments(self):
        return (self.purpose, self.coin_type, self.account, self.change, self.address_index)

    def indexes(self):
        """Return the five path components with the hardened bit applied."""
        values = [segment | HARDENED for segment in self.segments[:4]]
        leaf = self.address_index
        values.append(leaf | HARDENED if self.harden_index else leaf)
        return values

    def to_bytes(self) -> bytes:
        """Serialize as five little-endian uint32 values, as the device expects."""
        return struct.pack("<5I", *self.indexes())

    def __str__(self) -> str:
        parts = [f"{segment}'" for segment in self.segments[:4]]
        parts.append(f"{self.address_index}'" if self.harden_index else str(self.address_index))
        return "m/" + "/".join(parts)

    @classmethod
    def parse(cls, path: str) -> "DerivationPath":
        """
        Parse a path string such as ``m/44'/354'/0'/0'/4'``.

        Raises:
            ValueError: If the path is not a five-segment path with hardened
                purpose, coin type, account and change
        """
        parts = path.strip().split("/")
        if len(parts) != 6 or parts[0] != "m":
            raise ValueError(f"Invalid derivation path: {path}")
        values = []
        hardened = []
        for part in parts[1:]:
            match = _SEGMENT_RE.match(part)
            if not match:
                raise ValueError(f"Invalid derivation path segment '{part}' in {path}")
            values.append(int(match.group(1)))
            hardened.append(bool(match.group(2)))
        if not all(hardened[:4]):
            raise ValueError(f"All segments except the address index must be hardened: {path}")
        return cls(
            purpose=values[0],
            coin_type=values[1],
            account=values[2],
            change=values[3],
            address_index=values[4],
            harden_index=hardened[4],
        )
