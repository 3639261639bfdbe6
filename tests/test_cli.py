"""
Tests for the command line interface.
"""
from unittest.mock import MagicMock, patch

import pytest

from polkaledger_sdk import cli
from polkaledger_sdk.derivation import DerivationPath
from polkaledger_sdk.exceptions import (
    SubmissionRejectedError, SubmissionTimeoutError, UserRejectedError,
)
from polkaledger_sdk.models import CallPayload, OrchestratorState
from tests.conftest import TEST_AMOUNT, TEST_RECIPIENT

TRANSFER_ARGS = [
    "transfer", "--network", "polkadot", "--account-type", "0", "--address-index", "4",
    "--recipient", TEST_RECIPIENT, "--amount", str(TEST_AMOUNT),
]
BOND_ARGS = ["bond", "--network", "kusama", "--address-index", "1", "--amount", "1000"]


@pytest.fixture
def patched():
    """Replace the device, chain and orchestrator with mocks"""
    with patch.object(cli, "LedgerSigner") as MockSigner, \
            patch.object(cli, "SubstrateChainClient") as MockChain, \
            patch.object(cli, "transfer_call") as mock_transfer, \
            patch.object(cli, "bond_extra_call") as mock_bond, \
            patch.object(cli, "SigningOrchestrator") as MockOrchestrator:
        mock_transfer.return_value = CallPayload(data=b"\x05\x03", description="transfer")
        mock_bond.return_value = CallPayload(data=b"\x07\x01", description="bond")
        orchestrator = MockOrchestrator.return_value
        orchestrator.run.return_value = MagicMock(state=OrchestratorState.FINALIZED, block_hash="0xaa")
        yield {
            "signer": MockSigner.return_value,
            "chain": MockChain.from_profile.return_value,
            "transfer": mock_transfer,
            "bond": mock_bond,
            "orchestrator": orchestrator,
            "Orchestrator": MockOrchestrator,
        }


def test_transfer_finalized(patched):
    assert cli.main(TRANSFER_ARGS) == cli.EXIT_OK

    patched["transfer"].assert_called_once_with(patched["chain"], TEST_RECIPIENT, TEST_AMOUNT)
    call, path = patched["orchestrator"].run.call_args.args
    assert path == DerivationPath(account=0, address_index=4)
    assert str(path) == "m/44'/354'/0'/0'/4'"
    profile = patched["Orchestrator"].call_args.kwargs["network"]
    assert profile.chain_id == "dot"
    patched["signer"].close.assert_called_once()
    patched["chain"].close.assert_called_once()


def test_bond_uses_kusama(patched):
    assert cli.main(BOND_ARGS) == cli.EXIT_OK
    patched["bond"].assert_called_once_with(patched["chain"], 1000)
    profile = patched["Orchestrator"].call_args.kwargs["network"]
    assert profile.address_prefix == 2


def test_unknown_network(patched):
    args = list(BOND_ARGS)
    args[2] = "unknown"
    assert cli.main(args) == cli.EXIT_FAILURE
    patched["orchestrator"].run.assert_not_called()


@pytest.mark.parametrize("error,code", [
    (UserRejectedError("declined"), cli.EXIT_FAILURE),
    (SubmissionRejectedError("invalid"), cli.EXIT_FAILURE),
    (SubmissionTimeoutError("slow"), cli.EXIT_TIMEOUT),
])
def test_failures_exit_non_zero(patched, error, code):
    patched["orchestrator"].run.side_effect = error
    assert cli.main(TRANSFER_ARGS) == code
    patched["signer"].close.assert_called_once()


def test_invalid_recipient(patched):
    patched["transfer"].side_effect = ValueError("Invalid recipient address")
    assert cli.main(TRANSFER_ARGS) == cli.EXIT_FAILURE


def test_negative_address_index(patched):
    args = list(BOND_ARGS)
    args[4] = "-1"
    assert cli.main(args) == cli.EXIT_FAILURE


def test_rpc_override(patched):
    cli.main(TRANSFER_ARGS + ["--rpc-url", "wss://local.example.com"])
    profile = patched["Orchestrator"].call_args.kwargs["network"]
    assert profile.rpc_endpoint == "wss://local.example.com"


def test_missing_subcommand():
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])
    assert exc_info.value.code != 0
