"""
SigningOrchestrator - drives one transaction from address derivation to
finalization.
"""
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

from .chain import ChainClient
from .config import DEFAULT_SUBMISSION_TIMEOUT
from .derivation import DerivationPath
from .exceptions import (
    MalformedContextError, PolkaLedgerError, SubmissionRejectedError, SubmissionTimeoutError,
)
from .metadata import DigestFetcher
from .models import (
    CallPayload, ChainState, NetworkProfile, OrchestratorState, SignedTransaction,
    SigningContext, StatusEvent, StatusKind, SubmissionResult, UnsignedPayload,
)
from .payload import (
    MODE_ENABLED, assemble_signed_transaction, build_unsigned_payload,
    payload_to_human, strip_length_prefix,
)
from .signer import DerivedAddress, Signer
from .subscription import StatusSubscription


class SigningOrchestrator:
    """
    Builds, signs and submits a single transaction.

    Each step depends on the output of the previous one, except the chain
    state and metadata digest lookups, which run concurrently. Any error
    aborts the run; nothing is retried. Errors are re-raised with the state
    they occurred in and the values gathered so far.

    The chain client and signer belong to the caller and are never closed
    here.

    Args:
        network: Profile of the target network
        chain: Chain client used for queries and submission
        metadata: Metadata service used for the digest lookup
        signer: External signer holding the account key
        submission_timeout: Seconds to wait for a terminal status
        mode: Signing mode (1 binds the metadata digest into the payload)
        logger: Optional logger instance
    """

    def __init__(
        self,
        network: NetworkProfile,
        chain: ChainClient,
        metadata: DigestFetcher,
        signer: Signer,
        submission_timeout: float = DEFAULT_SUBMISSION_TIMEOUT,
        mode: int = MODE_ENABLED,
        logger: Optional[logging.Logger] = None,
    ):
        self.network = network
        self.chain = chain
        self.metadata = metadata
        self.signer = signer
        self.submission_timeout = submission_timeout
        self.mode = mode
        self.logger = logger or logging.getLogger(__name__)

        self.state = OrchestratorState.IDLE
        self.trace: Dict[str, Any] = {}
        self._run_lock = threading.Lock()

    def _advance(self, state: OrchestratorState) -> None:
        self.logger.debug(f"State {self.state.value} -> {state.value}")
        self.state = state

    def _record(self, key: str, value: Any) -> None:
        if isinstance(value, bytes):
            value = "0x" + value.hex()
        self.trace[key] = value

    def run(self, call: CallPayload, path: DerivationPath) -> SubmissionResult:
        """
        Sign and submit ``call`` with the account at ``path``.

        Args:
            call: Encoded call to submit
            path: Derivation path of the sending account

        Returns:
            Result of a finalized submission

        Raises:
            PolkaLedgerError: Any taxonomy error, with ``state`` and
                ``context`` describing where the run stopped
        """
        with self._run_lock:
            self.state = OrchestratorState.IDLE
            self.trace = {"network": self.network.name, "call": call.description}
            try:
                return self._run(call, path)
            except PolkaLedgerError as e:
                if e.state is None:
                    e.state = self.state
                e.context = {**self.trace, **e.context}
                self.logger.error(f"Run aborted in state {e.state.value}: {e}")
                raise

    def _run(self, call: CallPayload, path: DerivationPath) -> SubmissionResult:
        self.logger.info(f"Call: {call.description}")
        self.logger.info(f"Call data: {call.hex}")

        sender = self.derive_address(path)
        ctx = self.resolve_context(sender)
        payload = self.build_payload(ctx, call)
        signature = self.sign_payload(path, payload)
        transaction = self.assemble(ctx, call, payload, signature)
        subscription = self.submit(transaction)
        return self.await_outcome(transaction, subscription)

    def derive_address(self, path: DerivationPath) -> DerivedAddress:
        self._record("derivation_path", str(path))
        self.logger.info(f"Derivation path: {path}")
        sender = self.signer.get_address(path, self.network.address_prefix)
        self._record("sender_address", sender.address)
        self.logger.info(f"Sender address: {sender.address}")
        self._advance(OrchestratorState.ADDRESS_DERIVED)
        return sender

    def _fetch_chain(self, address: str) -> Tuple[int, ChainState]:
        nonce = self.chain.get_sequence_number(address)
        return nonce, self.chain.get_chain_state()

    def resolve_context(self, sender: DerivedAddress) -> SigningContext:
        """
        Fetch the nonce, chain state and metadata digest.

        Both lookups run concurrently and both must succeed; the first
        error is raised once both have finished.
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="polkaledger-ctx") as pool:
            chain_future = pool.submit(self._fetch_chain, sender.address)
            digest_future = pool.submit(self.metadata.fetch_digest, self.network.chain_id)
            errors = [f.exception() for f in (chain_future, digest_future)]
        for error in errors:
            if error is not None:
                raise error

        nonce, chain_state = chain_future.result()
        digest = digest_future.result()
        self._record("nonce", nonce)
        self._record("spec_version", chain_state.spec_version)
        self._record("transaction_version", chain_state.transaction_version)
        self._record("genesis_hash", chain_state.genesis_hash)
        self._record("metadata_digest", digest)
        self.logger.info(f"Nonce: {nonce}")
        self.logger.info(f"Metadata hash: {digest.hex()}")

        ctx = SigningContext.from_parts(
            sender_address=sender.address,
            sender_public_key=sender.public_key,
            nonce=nonce,
            chain_state=chain_state,
            metadata_digest=digest,
            mode=self.mode,
        )
        self._advance(OrchestratorState.CONTEXT_RESOLVED)
        return ctx

    def build_payload(self, ctx: SigningContext, call: CallPayload) -> UnsignedPayload:
        payload = build_unsigned_payload(ctx, call)
        self._record("unsigned_payload", payload.data)
        self.logger.info(f"Payload to sign[hex]: {payload.hex}")
        self.logger.info(f"Payload to sign[human]: {json.dumps(payload_to_human(ctx, call))}")
        self._advance(OrchestratorState.PAYLOAD_BUILT)
        return payload

    def sign_payload(self, path: DerivationPath, payload: UnsignedPayload) -> bytes:
        device_bytes = strip_length_prefix(payload)
        self.logger.info(f"Payload sent to device[hex]: 0x{device_bytes.hex()}")
        signature = self.signer.sign(path, device_bytes)
        self._record("signature", signature)
        self.logger.info(f"Signature: 0x{signature.hex()}")
        self._advance(OrchestratorState.SIGNED)
        return signature

    def assemble(
        self,
        ctx: SigningContext,
        call: CallPayload,
        payload: UnsignedPayload,
        signature: bytes,
    ) -> SignedTransaction:
        if self.state != OrchestratorState.SIGNED:
            raise MalformedContextError(f"Cannot assemble a transaction in state {self.state.value}")
        transaction = assemble_signed_transaction(ctx, call, payload, signature)
        self._record("signed_transaction", transaction.encoded)
        self.logger.info(f"Signed tx to broadcast[hex]: {transaction.hex}")
        self.logger.info(f"Signed tx to broadcast[human]: {json.dumps(transaction.to_human())}")
        self._advance(OrchestratorState.TRANSACTION_ASSEMBLED)
        return transaction

    def submit(self, transaction: SignedTransaction) -> StatusSubscription:
        """
        Hand the transaction to the chain client on a background thread.

        The thread is a daemon and is left running if the wait times out,
        so the transaction can still be included.
        """
        subscription = StatusSubscription()

        def _submit():
            try:
                self.chain.submit(transaction, subscription.push)
            except PolkaLedgerError as e:
                subscription.push(StatusEvent(kind=StatusKind.ERROR, detail=str(e)))
            except Exception as e:
                self.logger.exception("Submission crashed")
                subscription.push(StatusEvent(kind=StatusKind.ERROR, detail=f"{type(e).__name__}: {e}"))

        thread = threading.Thread(target=_submit, name="polkaledger-submit", daemon=True)
        thread.start()
        self._advance(OrchestratorState.SUBMITTED)
        return subscription

    def await_outcome(
        self,
        transaction: SignedTransaction,
        subscription: StatusSubscription,
    ) -> SubmissionResult:
        """
        Consume status events until finalization, a terminal failure, or
        the submission timeout.
        """
        events: List[StatusEvent] = []
        block_hash = None
        try:
            for event in subscription.events(self.submission_timeout):
                events.append(event)
                self.logger.info(f"Tx status: {json.dumps(event.model_dump(mode='json'))}")
                if event.kind in (StatusKind.IN_BLOCK, StatusKind.FINALIZED):
                    block_hash = event.detail
                if event.is_failure:
                    self._advance(OrchestratorState.REJECTED)
                    raise SubmissionRejectedError(
                        f"Transaction {event.kind.value}: {event.detail}",
                        event=event,
                        state=OrchestratorState.REJECTED,
                    )
        except TimeoutError:
            self._advance(OrchestratorState.TIMED_OUT)
            raise SubmissionTimeoutError(
                f"No finalization within {self.submission_timeout}s; the transaction may still be included",
                state=OrchestratorState.TIMED_OUT,
                context={"events": [e.kind.value for e in events]},
            )

        self._advance(OrchestratorState.FINALIZED)
        self.logger.info(f"Finalized in block {block_hash}")
        return SubmissionResult(
            state=OrchestratorState.FINALIZED,
            transaction=transaction,
            block_hash=block_hash,
            events=events,
        )
