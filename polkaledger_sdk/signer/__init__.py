"""
Signer interfaces for the PolkaLedger SDK.
"""
from dataclasses import dataclass
from typing import Protocol

from polkaledger_sdk.derivation import DerivationPath


@dataclass(frozen=True)
class DerivedAddress:
    """
    Account derived by a signer.

    Attributes:
        address: SS58 address in the requested format
        public_key: Raw public key the address encodes
    """
    address: str
    public_key: bytes


class Signer(Protocol):
    """Protocol for external signers"""

    def get_address(self, path: DerivationPath, address_prefix: int) -> DerivedAddress:
        """Derive the account for ``path``"""
        ...

    def sign(self, path: DerivationPath, payload: bytes) -> bytes:
        """Sign ``payload`` with the key at ``path`` and return the signature"""
        ...


__all__ = ["DerivedAddress", "Signer"]
