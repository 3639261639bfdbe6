"""
Chain client adapter.

Wraps ``substrateinterface.SubstrateInterface`` behind the small set of
operations the orchestrator needs.
"""
import logging
from typing import Any, Callable, Dict, Optional, Protocol

from substrateinterface import SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException
from websocket import WebSocketException

from .exceptions import ChainUnreachableError
from .models import CallPayload, ChainState, NetworkProfile, SignedTransaction, StatusEvent, StatusKind

DEFAULT_EXTRINSIC_VERSION = 4

StatusCallback = Callable[[StatusEvent], None]

# Errors raised by the websocket connection when the node cannot be reached
_CONNECTION_ERRORS = (WebSocketException, ConnectionError, OSError)


class ChainClient(Protocol):
    """Operations the orchestrator needs from a chain connection"""

    def get_sequence_number(self, address: str) -> int:
        ...

    def get_chain_state(self) -> ChainState:
        ...

    def submit(self, transaction: SignedTransaction, on_status: StatusCallback) -> None:
        ...


def _hex_to_bytes(value: str) -> bytes:
    if value.startswith("0x"):
        value = value[2:]
    return bytes.fromhex(value)


class SubstrateChainClient:
    """
    Chain client backed by a substrate websocket connection.

    The connection is opened lazily and owned by this object, not by the
    orchestrator.

    Args:
        url: Websocket RPC endpoint
        ss58_format: Address format of the network
        substrate: Existing connection to use instead of opening one
        extrinsic_version: Extrinsic format version of the runtime
        logger: Optional logger instance
    """

    def __init__(
        self,
        url: str,
        ss58_format: int = 42,
        substrate: Optional[SubstrateInterface] = None,
        extrinsic_version: int = DEFAULT_EXTRINSIC_VERSION,
        logger: Optional[logging.Logger] = None,
    ):
        self.url = url
        self.ss58_format = ss58_format
        self.extrinsic_version = extrinsic_version
        self.logger = logger or logging.getLogger(__name__)
        self._substrate = substrate

    @classmethod
    def from_profile(cls, profile: NetworkProfile, **kwargs) -> "SubstrateChainClient":
        return cls(url=profile.rpc_endpoint, ss58_format=profile.address_prefix, **kwargs)

    @property
    def substrate(self) -> SubstrateInterface:
        if self._substrate is None:
            self.logger.debug(f"Connecting to {self.url}")
            try:
                self._substrate = SubstrateInterface(url=self.url, ss58_format=self.ss58_format)
            except _CONNECTION_ERRORS as e:
                raise ChainUnreachableError(f"Cannot connect to {self.url}: {str(e)}") from e
        return self._substrate

    def close(self) -> None:
        if self._substrate is not None:
            self._substrate.close()
            self._substrate = None

    def __enter__(self) -> "SubstrateChainClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _rpc(self, method: str, params: list) -> Any:
        try:
            response = self.substrate.rpc_request(method, params)
        except SubstrateRequestException as e:
            raise ChainUnreachableError(f"RPC {method} failed: {str(e)}") from e
        except _CONNECTION_ERRORS as e:
            raise ChainUnreachableError(f"RPC {method} failed: {str(e)}") from e
        if "result" not in response:
            raise ChainUnreachableError(f"RPC {method} returned no result: {response}")
        return response["result"]

    def get_sequence_number(self, address: str) -> int:
        """
        Get the next nonce of an account.

        Raises:
            ChainUnreachableError: If the query fails
        """
        try:
            return int(self.substrate.get_account_nonce(address))
        except (SubstrateRequestException, *_CONNECTION_ERRORS) as e:
            raise ChainUnreachableError(f"Failed to fetch nonce of {address}: {str(e)}") from e

    def get_chain_state(self) -> ChainState:
        """
        Get the genesis hash and runtime version.

        The block hash equals the genesis hash since transactions are
        immortal.

        Raises:
            ChainUnreachableError: If a query fails or returns unexpected data
        """
        genesis_hash = self._rpc("chain_getBlockHash", [0])
        runtime_version = self._rpc("state_getRuntimeVersion", [])
        if not genesis_hash or not isinstance(runtime_version, dict):
            raise ChainUnreachableError(
                f"Unexpected chain state: genesis={genesis_hash!r} runtime={runtime_version!r}"
            )
        try:
            genesis = _hex_to_bytes(genesis_hash)
            return ChainState(
                genesis_hash=genesis,
                block_hash=genesis,
                spec_version=runtime_version["specVersion"],
                transaction_version=runtime_version["transactionVersion"],
                runtime_version=runtime_version,
                extrinsic_version=self.extrinsic_version,
            )
        except (KeyError, ValueError) as e:
            raise ChainUnreachableError(f"Unexpected chain state: {str(e)}") from e

    def compose_call(self, module: str, function: str, params: Dict[str, Any]) -> CallPayload:
        """
        Encode a call with the runtime metadata of the connected chain.

        Raises:
            ChainUnreachableError: If the metadata cannot be loaded
            ValueError: If the call or its parameters are not valid for the runtime
        """
        try:
            call = self.substrate.compose_call(
                call_module=module,
                call_function=function,
                call_params=params,
            )
        except (SubstrateRequestException, *_CONNECTION_ERRORS) as e:
            raise ChainUnreachableError(f"Failed to compose {module}.{function}: {str(e)}") from e
        return CallPayload(
            data=bytes(call.data.data),
            description=f"{module}.{function}({', '.join(f'{k}={v}' for k, v in params.items())})",
        )

    def submit(self, transaction: SignedTransaction, on_status: StatusCallback) -> None:
        """
        Submit a signed transaction and report status updates until a
        terminal one arrives.

        Node-side rejections (e.g. an invalid signature) are reported as an
        ``error`` status event rather than raised.

        Raises:
            ChainUnreachableError: If the connection fails
        """
        def handler(message, update_nr, subscription_id):
            event = StatusEvent.from_rpc(message["params"]["result"])
            self.logger.debug(f"Status update #{update_nr} on {subscription_id}: {event.kind.value}")
            on_status(event)
            if event.is_terminal:
                return event
            return None

        try:
            self.substrate.rpc_request(
                "author_submitAndWatchExtrinsic",
                [transaction.hex],
                result_handler=handler,
            )
        except SubstrateRequestException as e:
            self.logger.error(f"Node rejected transaction: {e}")
            on_status(StatusEvent(kind=StatusKind.ERROR, detail=str(e)))
        except _CONNECTION_ERRORS as e:
            raise ChainUnreachableError(f"Submission failed: {str(e)}") from e
