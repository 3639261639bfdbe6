"""
PolkaLedger SDK - sign Polkadot-family transactions on a Ledger device.
"""
from .version import __version__
from .config import NetworkConfig, NetworkRegistry
from .derivation import DerivationPath
from .models import (
    CallPayload, NetworkProfile, OrchestratorState, SignedTransaction,
    SigningContext, StatusEvent, StatusKind, SubmissionResult, UnsignedPayload,
)
from .exceptions import (
    PolkaLedgerError, UnknownNetworkError, SignerUnavailableError, DerivationError,
    ChainUnreachableError, MetadataServiceError, MalformedContextError,
    UserRejectedError, SignerTimeoutError, SubmissionRejectedError, SubmissionTimeoutError,
)
from .payload import assemble_signed_transaction, build_unsigned_payload, strip_length_prefix
from .metadata import DigestFetcher, MetadataService
from .chain import ChainClient, SubstrateChainClient
from .signer import DerivedAddress, Signer
from .orchestrator import SigningOrchestrator

__all__ = [
    "__version__",
    "NetworkConfig",
    "NetworkRegistry",
    "DerivationPath",
    "CallPayload",
    "NetworkProfile",
    "OrchestratorState",
    "SignedTransaction",
    "SigningContext",
    "StatusEvent",
    "StatusKind",
    "SubmissionResult",
    "UnsignedPayload",
    "PolkaLedgerError",
    "UnknownNetworkError",
    "SignerUnavailableError",
    "DerivationError",
    "ChainUnreachableError",
    "MetadataServiceError",
    "MalformedContextError",
    "UserRejectedError",
    "SignerTimeoutError",
    "SubmissionRejectedError",
    "SubmissionTimeoutError",
    "assemble_signed_transaction",
    "build_unsigned_payload",
    "strip_length_prefix",
    "DigestFetcher",
    "MetadataService",
    "ChainClient",
    "SubstrateChainClient",
    "DerivedAddress",
    "Signer",
    "SigningOrchestrator",
]
