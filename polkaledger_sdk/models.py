"""
Data models for the PolkaLedger SDK.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class OrchestratorState(str, Enum):
    """Lifecycle states of a single signing run."""
    IDLE = "Idle"
    ADDRESS_DERIVED = "AddressDerived"
    CONTEXT_RESOLVED = "ContextResolved"
    PAYLOAD_BUILT = "PayloadBuilt"
    SIGNED = "Signed"
    TRANSACTION_ASSEMBLED = "TransactionAssembled"
    SUBMITTED = "Submitted"
    FINALIZED = "Finalized"
    REJECTED = "Rejected"
    TIMED_OUT = "TimedOut"


class StatusKind(str, Enum):
    """Transaction pool status reported by ``author_submitAndWatchExtrinsic``."""
    READY = "ready"
    FUTURE = "future"
    BROADCAST = "broadcast"
    IN_BLOCK = "inBlock"
    RETRACTED = "retracted"
    FINALIZED = "finalized"
    FINALITY_TIMEOUT = "finalityTimeout"
    USURPED = "usurped"
    DROPPED = "dropped"
    INVALID = "invalid"
    ERROR = "error"


TERMINAL_FAILURES = frozenset({
    StatusKind.DROPPED,
    StatusKind.INVALID,
    StatusKind.USURPED,
    StatusKind.FINALITY_TIMEOUT,
    StatusKind.ERROR,
})


class NetworkProfile(BaseModel):
    """Static description of a supported network"""
    name: str
    chain_id: str
    rpc_endpoint: str
    address_prefix: int = Field(..., ge=0, le=255)
    metadata_url: str

    class Config:
        frozen = True


class CallPayload(BaseModel):
    """Encoded call bytes plus a description used in logs"""
    data: bytes
    description: str

    class Config:
        frozen = True

    @property
    def hex(self) -> str:
        return "0x" + self.data.hex()


class ChainState(BaseModel):
    """Chain values needed for the signed extensions"""
    genesis_hash: bytes
    block_hash: bytes
    transaction_version: int
    spec_version: int
    runtime_version: Dict[str, Any]
    extrinsic_version: int


class SigningContext(BaseModel):
    """
    Everything captured from the chain, the device and the metadata
    service for one signing run.

    Fields are optional so that an incomplete context can be represented
    and rejected by the payload builder with ``MalformedContextError``.
    """
    sender_address: Optional[str] = None
    sender_public_key: Optional[bytes] = None
    nonce: Optional[int] = None
    genesis_hash: Optional[bytes] = None
    block_hash: Optional[bytes] = None
    transaction_version: Optional[int] = None
    spec_version: Optional[int] = None
    runtime_version: Optional[Dict[str, Any]] = None
    extrinsic_version: Optional[int] = None
    mode: Optional[int] = None
    metadata_digest: Optional[bytes] = None
    tip: int = 0

    @classmethod
    def from_parts(
        cls,
        sender_address: str,
        sender_public_key: bytes,
        nonce: int,
        chain_state: ChainState,
        metadata_digest: bytes,
        mode: int = 1,
    ) -> "SigningContext":
        return cls(
            sender_address=sender_address,
            sender_public_key=sender_public_key,
            nonce=nonce,
            genesis_hash=chain_state.genesis_hash,
            block_hash=chain_state.block_hash,
            transaction_version=chain_state.transaction_version,
            spec_version=chain_state.spec_version,
            runtime_version=chain_state.runtime_version,
            extrinsic_version=chain_state.extrinsic_version,
            mode=mode,
            metadata_digest=metadata_digest,
        )


class UnsignedPayload(BaseModel):
    """
    Signing payload produced by the payload builder.

    ``data`` is the full encoding; when ``length_prefixed`` is set the call
    carries its compact length and ``data`` starts with that prefix.
    ``extra`` and ``additional_signed`` are kept separately so the signed
    transaction can reuse exactly the bytes that were signed.
    """
    data: bytes
    call: bytes
    extra: bytes
    additional_signed: bytes
    length_prefixed: bool = True

    class Config:
        frozen = True

    @property
    def hex(self) -> str:
        return "0x" + self.data.hex()


class SignedTransaction(BaseModel):
    """Broadcastable signed extrinsic and the envelope it was built from"""
    sender_address: str
    sender_public_key: bytes
    signature: bytes
    era: bytes
    nonce: int
    tip: int
    mode: int
    metadata_digest: Optional[bytes]
    spec_version: int
    transaction_version: int
    genesis_hash: bytes
    block_hash: bytes
    call: bytes
    encoded: bytes

    class Config:
        frozen = True

    @property
    def hex(self) -> str:
        return "0x" + self.encoded.hex()

    def to_human(self) -> Dict[str, Any]:
        return {
            "signer": self.sender_address,
            "signature": "0x" + self.signature.hex(),
            "era": "0x" + self.era.hex(),
            "nonce": self.nonce,
            "tip": self.tip,
            "mode": self.mode,
            "metadataHash": "0x" + self.metadata_digest.hex() if self.metadata_digest else None,
            "method": "0x" + self.call.hex(),
        }


class StatusEvent(BaseModel):
    """One lifecycle event of a submitted transaction"""
    kind: StatusKind
    detail: Optional[Any] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind == StatusKind.FINALIZED or self.kind in TERMINAL_FAILURES

    @property
    def is_failure(self) -> bool:
        return self.kind in TERMINAL_FAILURES

    @classmethod
    def from_rpc(cls, result: Union[str, Dict[str, Any]]) -> "StatusEvent":
        """
        Parse a transaction status as sent by the node.

        Simple states arrive as plain strings (``"ready"``), states with data
        as single-key objects (``{"inBlock": "0x.."}``).
        """
        if isinstance(result, str):
            try:
                return cls(kind=StatusKind(result))
            except ValueError:
                return cls(kind=StatusKind.ERROR, detail=f"Unknown status: {result}")
        if isinstance(result, dict) and len(result) == 1:
            key, value = next(iter(result.items()))
            try:
                return cls(kind=StatusKind(key), detail=value)
            except ValueError:
                pass
        return cls(kind=StatusKind.ERROR, detail=f"Unknown status: {result!r}")


class SubmissionResult(BaseModel):
    """Outcome of a run that reached finalization"""
    state: OrchestratorState
    transaction: SignedTransaction
    block_hash: Optional[str] = None
    events: List[StatusEvent] = Field(default_factory=list)
