"""
Exceptions for the PolkaLedger SDK.

Every error aborts the current signing run. Errors raised by the
orchestrator carry the state they occurred in and the values gathered
up to that point, so a caller can decide whether to retry.
"""
from typing import Any, Dict, Optional

from .models import OrchestratorState, StatusEvent

# States after which a retry must start over, since the signature is bound
# to the exact payload it was produced for.
_SIGNED_STATES = frozenset({
    OrchestratorState.SIGNED,
    OrchestratorState.TRANSACTION_ASSEMBLED,
    OrchestratorState.SUBMITTED,
    OrchestratorState.FINALIZED,
    OrchestratorState.REJECTED,
    OrchestratorState.TIMED_OUT,
})


class PolkaLedgerError(Exception):
    """Base exception for all PolkaLedger SDK errors."""

    def __init__(
        self,
        message: str,
        state: Optional[OrchestratorState] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.state = state
        self.context = dict(context or {})

    @property
    def resumable(self) -> bool:
        """True when no signature has been produced yet."""
        return self.state is not None and self.state not in _SIGNED_STATES

    def __str__(self) -> str:
        message = super().__str__()
        if self.state is not None:
            return f"{message} (state: {self.state.value})"
        return message


class UnknownNetworkError(PolkaLedgerError):
    """Raised when a network name is not in the registry."""
    pass


class SignerUnavailableError(PolkaLedgerError):
    """Raised when the signing device cannot be reached or the app is not open."""
    pass


class DerivationError(PolkaLedgerError):
    """Raised when the device rejects a derivation path or returns an inconsistent address."""
    pass


class ChainUnreachableError(PolkaLedgerError):
    """Raised when the chain RPC endpoint fails or cannot be reached."""
    pass


class MetadataServiceError(PolkaLedgerError):
    """Raised when the metadata service fails or returns an invalid response."""
    pass


class MalformedContextError(PolkaLedgerError):
    """Raised when the signing context is incomplete or inconsistent."""
    pass


class UserRejectedError(PolkaLedgerError):
    """Raised when the user declines the transaction on the device."""
    pass


class SignerTimeoutError(PolkaLedgerError):
    """Raised when the device does not answer in time."""
    pass


class SubmissionRejectedError(PolkaLedgerError):
    """Raised when the transaction pool reports a terminal failure."""

    def __init__(
        self,
        message: str,
        event: Optional[StatusEvent] = None,
        state: Optional[OrchestratorState] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, state=state, context=context)
        self.event = event


class SubmissionTimeoutError(PolkaLedgerError):
    """
    Raised when no terminal status arrived before the deadline.

    The submission itself is not cancelled; the transaction may still be
    included later.
    """
    pass
