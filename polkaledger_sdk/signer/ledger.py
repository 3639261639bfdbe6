"""
Ledger signer for the Polkadot generic app.

Talks to the device with APDUs over ``ledgercomm``. The generic app decodes
transactions with a metadata proof, which is fetched from the metadata
service and appended to the payload before it is streamed to the device.
"""
import logging
import struct
import threading
from typing import Optional, Tuple

from ledgercomm import Transport
from scalecodec.utils.ss58 import ss58_decode

from polkaledger_sdk.derivation import DerivationPath
from polkaledger_sdk.exceptions import (
    DerivationError, MalformedContextError, PolkaLedgerError,
    SignerTimeoutError, SignerUnavailableError, UserRejectedError,
)
from polkaledger_sdk.metadata import MetadataService
from polkaledger_sdk.signer import DerivedAddress

CLA = 0xF9
INS_GET_ADDR = 0x01
INS_SIGN = 0x02

P1_INIT = 0x00
P1_ADD = 0x01
P1_LAST = 0x02
P1_NO_CONFIRM = 0x00
SCHEME_ED25519 = 0x00

CHUNK_SIZE = 250
PUBLIC_KEY_LENGTH = 32

SW_OK = 0x9000
SW_REJECTED = 0x6986
SW_LOCKED = 0x5515
SW_DATA_INVALID = (0x6984, 0x6A80)
SW_APP_NOT_OPEN = (0x6E00, 0x6E01, 0x6D00, 0x6511)


def _status_error(sw: int, operation: str) -> PolkaLedgerError:
    """Translate a device status word into an SDK error."""
    if sw == SW_REJECTED:
        return UserRejectedError(f"Transaction rejected on device during {operation}")
    if sw in SW_DATA_INVALID:
        if operation == "get_address":
            return DerivationError(f"Device rejected derivation path (status 0x{sw:04X})")
        return MalformedContextError(f"Device could not parse the payload (status 0x{sw:04X})")
    if sw == SW_LOCKED:
        return SignerUnavailableError("Device is locked")
    if sw in SW_APP_NOT_OPEN:
        return SignerUnavailableError(f"Polkadot app is not open on the device (status 0x{sw:04X})")
    return SignerUnavailableError(f"Device returned status 0x{sw:04X} during {operation}")


class LedgerSigner:
    """
    Signer backed by a Ledger device running the Polkadot generic app.

    Requests are serialized: the device handles one command sequence at a
    time, so a single instance can be shared between threads.

    Args:
        chain_id: Chain identifier used when fetching metadata proofs
        metadata_service: Client for the metadata proof endpoint
        transport: Open transport to use instead of opening a HID connection
        logger: Optional logger instance
    """

    def __init__(
        self,
        chain_id: str,
        metadata_service: MetadataService,
        transport: Optional[Transport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.chain_id = chain_id
        self.metadata_service = metadata_service
        self.logger = logger or logging.getLogger(__name__)
        self._transport = transport
        self._lock = threading.Lock()

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            try:
                self._transport = Transport(interface="hid", debug=False)
            except Exception as e:
                raise SignerUnavailableError(f"Cannot open Ledger device: {str(e)}") from e
        return self._transport

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def __enter__(self) -> "LedgerSigner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _exchange(self, ins: int, p1: int, p2: int, cdata: bytes, operation: str) -> bytes:
        try:
            sw, response = self.transport.exchange(cla=CLA, ins=ins, p1=p1, p2=p2, cdata=cdata)
        except TimeoutError as e:
            raise SignerTimeoutError(f"Device did not answer during {operation}") from e
        except OSError as e:
            raise SignerUnavailableError(f"Device communication failed during {operation}: {str(e)}") from e
        if sw != SW_OK:
            raise _status_error(sw, operation)
        return bytes(response)

    def get_address(self, path: DerivationPath, address_prefix: int) -> DerivedAddress:
        """
        Derive the address for ``path`` without confirmation on the device.

        Raises:
            SignerUnavailableError: If the device or app is not available
            DerivationError: If the device rejects the path or returns an
                address that does not match the public key
        """
        cdata = path.to_bytes() + struct.pack("<H", address_prefix)
        with self._lock:
            response = self._exchange(INS_GET_ADDR, P1_NO_CONFIRM, SCHEME_ED25519, cdata, "get_address")

        public_key, address = self._parse_address(response)
        try:
            decoded = bytes.fromhex(ss58_decode(address, valid_ss58_format=address_prefix))
        except ValueError as e:
            raise DerivationError(f"Device returned an invalid address '{address}': {str(e)}") from e
        if decoded != public_key:
            raise DerivationError(f"Address {address} does not encode the returned public key")
        return DerivedAddress(address=address, public_key=public_key)

    @staticmethod
    def _parse_address(response: bytes) -> Tuple[bytes, str]:
        if len(response) <= PUBLIC_KEY_LENGTH:
            raise DerivationError(f"Short address response from device ({len(response)} bytes)")
        public_key = response[:PUBLIC_KEY_LENGTH]
        try:
            address = response[PUBLIC_KEY_LENGTH:].decode("ascii").rstrip("\x00")
        except UnicodeDecodeError as e:
            raise DerivationError(f"Device returned a non-ASCII address: {str(e)}") from e
        return public_key, address

    def sign(self, path: DerivationPath, payload: bytes) -> bytes:
        """
        Sign a payload on the device.

        The payload is sent with its length and the metadata proof:
        ``u16 LE length || payload || proof``. The returned signature is
        prefixed with the key type byte.

        Raises:
            MetadataServiceError: If the metadata proof cannot be fetched
            UserRejectedError: If the user declines on the device
            SignerTimeoutError: If the device does not answer
            SignerUnavailableError: If the device or app is not available
        """
        proof = self.metadata_service.fetch_proof(self.chain_id, payload)
        blob = struct.pack("<H", len(payload)) + payload + proof
        chunks = [blob[i:i + CHUNK_SIZE] for i in range(0, len(blob), CHUNK_SIZE)]
        self.logger.debug(f"Signing {len(payload)} byte payload with {len(proof)} byte proof in {len(chunks)} chunks")

        with self._lock:
            self._exchange(INS_SIGN, P1_INIT, SCHEME_ED25519, path.to_bytes(), "sign")
            response = b""
            for i, chunk in enumerate(chunks):
                p1 = P1_LAST if i == len(chunks) - 1 else P1_ADD
                response = self._exchange(INS_SIGN, p1, SCHEME_ED25519, chunk, "sign")

        if not response:
            raise SignerUnavailableError("Device returned an empty signature")
        return response
