"""
Builders for the supported calls.
"""
from scalecodec.utils.ss58 import ss58_decode

from .chain import SubstrateChainClient
from .models import CallPayload


def _validate_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"Amount must be a positive integer in planck, got {amount!r}")


def transfer_call(chain: SubstrateChainClient, recipient: str, amount: int) -> CallPayload:
    """
    Build ``Balances.transfer_keep_alive``.

    Raises:
        ValueError: If the recipient is not an address of the connected
            network or the amount is not positive
    """
    _validate_amount(amount)
    try:
        ss58_decode(recipient, valid_ss58_format=chain.ss58_format)
    except ValueError as e:
        raise ValueError(f"Invalid recipient address '{recipient}': {str(e)}") from e
    return chain.compose_call("Balances", "transfer_keep_alive", {"dest": recipient, "value": amount})


def bond_extra_call(chain: SubstrateChainClient, amount: int) -> CallPayload:
    """Build ``Staking.bond_extra`` to add ``amount`` to an existing bond."""
    _validate_amount(amount)
    return chain.compose_call("Staking", "bond_extra", {"max_additional": amount})
