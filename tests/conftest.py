"""
Pytest fixtures for the PolkaLedger SDK tests.
"""
import hashlib
import threading
from typing import List, Optional

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from scalecodec.utils.ss58 import ss58_encode

from polkaledger_sdk.config import NetworkRegistry
from polkaledger_sdk.derivation import DerivationPath
from polkaledger_sdk.exceptions import SignerUnavailableError, UserRejectedError
from polkaledger_sdk.models import (
    CallPayload, ChainState, NetworkProfile, SigningContext, StatusEvent, StatusKind,
)
from polkaledger_sdk.signer import DerivedAddress

# Constants for testing
TEST_DIGEST = bytes(range(32))
TEST_GENESIS = bytes(32)
TEST_RECIPIENT = "15yiimjp4dMoR2kDYCqL53R9ugtnpAqfosV9M7nhKK1YTGP9"
TEST_AMOUNT = 3_720_000_000_000
# Balances.transfer_keep_alive(dest=Id(0x11..), value=...) shaped bytes
TEST_CALL_DATA = bytes.fromhex("0503") + b"\x00" + b"\x11" * 32 + bytes.fromhex("0700a0fe5e6203")

POLKADOT = NetworkProfile(
    name="polkadot",
    chain_id="dot",
    rpc_endpoint="wss://rpc.example.com",
    address_prefix=0,
    metadata_url="https://meta.example.com/polkadot",
)
KUSAMA = NetworkProfile(
    name="kusama",
    chain_id="ksm",
    rpc_endpoint="wss://ksm.example.com",
    address_prefix=2,
    metadata_url="https://meta.example.com/kusama",
)


class FakeDevice:
    """Signer backed by in-memory ed25519 keys, one per derivation path"""

    def __init__(self, reject: bool = False, unavailable: bool = False):
        self.reject = reject
        self.unavailable = unavailable
        self.sign_calls: List[bytes] = []
        self.address_calls: List[DerivationPath] = []
        self._keys = {}
        self._lock = threading.Lock()

    def _key(self, path: DerivationPath) -> Ed25519PrivateKey:
        if path not in self._keys:
            seed = hashlib.sha256(str(path).encode()).digest()
            self._keys[path] = Ed25519PrivateKey.from_private_bytes(seed)
        return self._keys[path]

    def public_key(self, path: DerivationPath) -> bytes:
        return self._key(path).public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    def get_address(self, path: DerivationPath, address_prefix: int) -> DerivedAddress:
        if self.unavailable:
            raise SignerUnavailableError("No device")
        with self._lock:
            self.address_calls.append(path)
            public_key = self.public_key(path)
        return DerivedAddress(address=ss58_encode(public_key, ss58_format=address_prefix), public_key=public_key)

    def sign(self, path: DerivationPath, payload: bytes) -> bytes:
        with self._lock:
            self.sign_calls.append(payload)
        if self.reject:
            raise UserRejectedError("Transaction rejected on device during sign")
        message = hashlib.blake2b(payload, digest_size=32).digest() if len(payload) > 256 else payload
        # ed25519 MultiSignature variant
        return b"\x00" + self._key(path).sign(message)


class FakeChain:
    """Chain client replaying a scripted list of status events"""

    def __init__(
        self,
        events: Optional[List[StatusEvent]] = None,
        nonce: int = 0,
        error: Optional[Exception] = None,
    ):
        self.events = events if events is not None else [
            StatusEvent(kind=StatusKind.READY),
            StatusEvent(kind=StatusKind.IN_BLOCK, detail="0x" + "ab" * 32),
            StatusEvent(kind=StatusKind.FINALIZED, detail="0x" + "ab" * 32),
        ]
        self.nonce = nonce
        self.error = error
        self.submitted = []

    def get_sequence_number(self, address: str) -> int:
        if self.error:
            raise self.error
        return self.nonce

    def get_chain_state(self) -> ChainState:
        return ChainState(
            genesis_hash=TEST_GENESIS,
            block_hash=TEST_GENESIS,
            transaction_version=1,
            spec_version=1,
            runtime_version={"specName": "polkadot", "specVersion": 1, "transactionVersion": 1},
            extrinsic_version=4,
        )

    def submit(self, transaction, on_status) -> None:
        self.submitted.append(transaction)
        for event in self.events:
            on_status(event)


class FakeMetadata:
    """Metadata service returning a fixed digest"""

    def __init__(self, digest: bytes = TEST_DIGEST, error: Optional[Exception] = None):
        self.digest = digest
        self.error = error
        self.requests: List[str] = []

    def fetch_digest(self, chain_id: str) -> bytes:
        self.requests.append(chain_id)
        if self.error:
            raise self.error
        return self.digest


@pytest.fixture
def registry():
    return NetworkRegistry({"polkadot": POLKADOT, "kusama": KUSAMA})


@pytest.fixture
def path():
    return DerivationPath(account=0, change=0, address_index=4)


@pytest.fixture
def call():
    return CallPayload(data=TEST_CALL_DATA, description="Balances.transfer_keep_alive(test)")


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def metadata():
    return FakeMetadata()


@pytest.fixture
def signing_context(device, path):
    """Fixture context: zero genesis, nonce 0, versions 1/1, extrinsic v4, mode 1"""
    public_key = device.public_key(path)
    return SigningContext(
        sender_address=ss58_encode(public_key, ss58_format=0),
        sender_public_key=public_key,
        nonce=0,
        genesis_hash=TEST_GENESIS,
        block_hash=TEST_GENESIS,
        transaction_version=1,
        spec_version=1,
        runtime_version={"specVersion": 1, "transactionVersion": 1},
        extrinsic_version=4,
        mode=1,
        metadata_digest=TEST_DIGEST,
    )
