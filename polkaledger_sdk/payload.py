"""
Signing payload and signed extrinsic encoding.

The signing payload must be byte-identical to what the runtime rebuilds
when it checks the signature. For extrinsic version 4 with the
``CheckMetadataHash`` extension that is::

    call
    ++ era ++ Compact<nonce> ++ Compact<tip> ++ mode          (extra)
    ++ spec_version ++ transaction_version
    ++ genesis_hash ++ block_hash ++ Option<metadata_hash>    (additional signed)

A mistake here is not caught locally: the device signs whatever it gets
and the node answers with an invalid signature error.
"""
import logging
from typing import Any, Dict, Optional

from scalecodec.base import RuntimeConfigurationObject
from scalecodec.type_registry import load_type_registry_preset
from scalecodec.utils.ss58 import ss58_decode

from .exceptions import MalformedContextError
from .models import CallPayload, SignedTransaction, SigningContext, UnsignedPayload

logger = logging.getLogger(__name__)

SUPPORTED_EXTRINSIC_VERSION = 4
SIGNED_FLAG = 0x80
DIGEST_LENGTH = 32
HASH_LENGTH = 32
IMMORTAL_ERA = "00"
MODE_DISABLED = 0
MODE_ENABLED = 1
# MultiAddress::Id
ADDRESS_ID_VARIANT = b"\x00"

_REQUIRED_FIELDS = (
    "nonce",
    "genesis_hash",
    "block_hash",
    "transaction_version",
    "spec_version",
    "runtime_version",
    "extrinsic_version",
    "mode",
)

_runtime_config: Optional[RuntimeConfigurationObject] = None


def _scale_config() -> RuntimeConfigurationObject:
    global _runtime_config
    if _runtime_config is None:
        config = RuntimeConfigurationObject()
        config.update_type_registry(load_type_registry_preset("core"))
        _runtime_config = config
    return _runtime_config


def scale_encode(type_string: str, value: Any) -> bytes:
    """Encode a single value with the SCALE codec."""
    scale_obj = _scale_config().create_scale_object(type_string)
    return bytes(scale_obj.encode(value).data)


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


def _validate_context(ctx: SigningContext) -> None:
    missing = [name for name in _REQUIRED_FIELDS if getattr(ctx, name) is None]
    if missing:
        raise MalformedContextError(f"Signing context missing required fields: {', '.join(missing)}")

    if ctx.extrinsic_version != SUPPORTED_EXTRINSIC_VERSION:
        raise MalformedContextError(
            f"Unsupported extrinsic version {ctx.extrinsic_version} (expected {SUPPORTED_EXTRINSIC_VERSION})"
        )
    for name in ("genesis_hash", "block_hash"):
        value = getattr(ctx, name)
        if len(value) != HASH_LENGTH:
            raise MalformedContextError(f"{name} must be {HASH_LENGTH} bytes, got {len(value)}")
    if ctx.mode not in (MODE_DISABLED, MODE_ENABLED):
        raise MalformedContextError(f"Unknown signing mode: {ctx.mode}")
    if ctx.mode == MODE_ENABLED:
        if ctx.metadata_digest is None:
            raise MalformedContextError("Signing mode 1 requires a metadata digest")
        if len(ctx.metadata_digest) != DIGEST_LENGTH:
            raise MalformedContextError(
                f"Metadata digest must be {DIGEST_LENGTH} bytes, got {len(ctx.metadata_digest)}"
            )
    if ctx.nonce < 0 or ctx.tip < 0:
        raise MalformedContextError("Nonce and tip must be non-negative")

    # The runtime version descriptor and the individual fields come from the
    # same node query; a mismatch means they were mixed from two snapshots.
    for key, value in (("specVersion", ctx.spec_version), ("transactionVersion", ctx.transaction_version)):
        reported = ctx.runtime_version.get(key)
        if reported is not None and reported != value:
            raise MalformedContextError(
                f"Runtime version {key}={reported} does not match signing context value {value}"
            )


def encode_extra(ctx: SigningContext) -> bytes:
    """Encode the signed extension values that travel inside the extrinsic."""
    return (
        scale_encode("Era", IMMORTAL_ERA)
        + scale_encode("Compact<u64>", ctx.nonce)
        + scale_encode("Compact<u128>", ctx.tip)
        + scale_encode("u8", ctx.mode)
    )


def encode_additional_signed(ctx: SigningContext) -> bytes:
    """Encode the implicit values that are signed but never transmitted."""
    digest = _hex(ctx.metadata_digest) if ctx.mode == MODE_ENABLED else None
    return (
        scale_encode("u32", ctx.spec_version)
        + scale_encode("u32", ctx.transaction_version)
        + scale_encode("H256", _hex(ctx.genesis_hash))
        + scale_encode("H256", _hex(ctx.block_hash))
        + scale_encode("Option<H256>", digest)
    )


def build_unsigned_payload(
    ctx: SigningContext,
    call: CallPayload,
    length_prefixed: bool = True,
) -> UnsignedPayload:
    """
    Assemble the signing payload for a call.

    Args:
        ctx: Signing context captured for this run
        call: Encoded call
        length_prefixed: Whether the call is written with its compact length
            prefix, which has to be removed with ``strip_length_prefix``
            before the bytes are handed to the device

    Returns:
        The unsigned payload

    Raises:
        MalformedContextError: If the context is incomplete or inconsistent
    """
    _validate_context(ctx)
    if not call.data:
        raise MalformedContextError("Call payload is empty")

    extra = encode_extra(ctx)
    additional = encode_additional_signed(ctx)
    method = call.data
    if length_prefixed:
        method = scale_encode("Compact<u32>", len(call.data)) + call.data

    return UnsignedPayload(
        data=method + extra + additional,
        call=call.data,
        extra=extra,
        additional_signed=additional,
        length_prefixed=length_prefixed,
    )


def strip_length_prefix(payload: UnsignedPayload) -> bytes:
    """
    Return the bytes to send to the device.

    The device app does not accept the call length prefix, so exactly one
    leading byte is removed when the payload carries one. Calls of 64 bytes
    or more need a multi-byte prefix, which this rule does not cover.

    Raises:
        MalformedContextError: If the prefix is not a single-byte compact
            matching the call length
    """
    if not payload.length_prefixed:
        return payload.data
    expected = scale_encode("Compact<u32>", len(payload.call))
    if len(expected) != 1:
        raise MalformedContextError(
            f"Call of {len(payload.call)} bytes has a {len(expected)}-byte length prefix; "
            "only single-byte prefixes can be stripped"
        )
    if payload.data[:1] != expected:
        raise MalformedContextError(
            f"Payload does not start with the call length prefix {expected.hex()}"
        )
    return payload.data[1:]


def assemble_signed_transaction(
    ctx: SigningContext,
    call: CallPayload,
    payload: UnsignedPayload,
    signature: bytes,
) -> SignedTransaction:
    """
    Combine the signer, signature and call into a version 4 extrinsic.

    The extension values are taken from ``payload`` so that the transaction
    carries exactly the bytes that were signed. ``signature`` is used as
    returned by the device, which already prefixes the key type.

    Raises:
        MalformedContextError: If called without a derived signer, a
            signature, or with a payload built for another call
    """
    if not ctx.sender_address or not ctx.sender_public_key:
        raise MalformedContextError("Cannot assemble a transaction without a derived sender")
    if not signature:
        raise MalformedContextError("Cannot assemble a transaction without a signature")
    if payload.call != call.data:
        raise MalformedContextError("Payload was built for a different call")
    if payload.extra != encode_extra(ctx):
        raise MalformedContextError("Payload was built for a different signing context")

    body = (
        bytes([SIGNED_FLAG | ctx.extrinsic_version])
        + ADDRESS_ID_VARIANT
        + ctx.sender_public_key
        + signature
        + payload.extra
        + call.data
    )
    encoded = scale_encode("Compact<u32>", len(body)) + body

    return SignedTransaction(
        sender_address=ctx.sender_address,
        sender_public_key=ctx.sender_public_key,
        signature=signature,
        era=scale_encode("Era", IMMORTAL_ERA),
        nonce=ctx.nonce,
        tip=ctx.tip,
        mode=ctx.mode,
        metadata_digest=ctx.metadata_digest if ctx.mode == MODE_ENABLED else None,
        spec_version=ctx.spec_version,
        transaction_version=ctx.transaction_version,
        genesis_hash=ctx.genesis_hash,
        block_hash=ctx.block_hash,
        call=call.data,
        encoded=encoded,
    )


def public_key_from_address(address: str) -> bytes:
    """Decode the public key of an SS58 address."""
    return bytes.fromhex(ss58_decode(address))


def payload_to_human(ctx: SigningContext, call: CallPayload) -> Dict[str, Any]:
    """Readable form of the values that went into a signing payload."""
    return {
        "method": call.description,
        "methodHex": call.hex,
        "era": "0x" + IMMORTAL_ERA,
        "nonce": ctx.nonce,
        "tip": ctx.tip,
        "mode": ctx.mode,
        "specVersion": ctx.spec_version,
        "transactionVersion": ctx.transaction_version,
        "genesisHash": _hex(ctx.genesis_hash) if ctx.genesis_hash else None,
        "blockHash": _hex(ctx.block_hash) if ctx.block_hash else None,
        "metadataHash": _hex(ctx.metadata_digest) if ctx.metadata_digest else None,
    }
