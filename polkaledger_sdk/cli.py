"""
Command line interface: sign a transfer or a bond top-up on a Ledger
device and submit it.

    polkaledger transfer --network polkadot --account-type 0 --address-index 4 \\
        --recipient 15yiimjp4dMoR2kDYCqL53R9ugtnpAqfosV9M7nhKK1YTGP9 --amount 3720000000000
"""
import argparse
import logging
import sys
from typing import List, Optional

from .calls import bond_extra_call, transfer_call
from .chain import SubstrateChainClient
from .config import DEFAULT_SUBMISSION_TIMEOUT, NetworkConfig
from .derivation import DerivationPath
from .exceptions import PolkaLedgerError, SubmissionTimeoutError
from .metadata import MetadataService
from .orchestrator import SigningOrchestrator
from .signer.ledger import LedgerSigner
from .version import __version__

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_TIMEOUT = 2

logger = logging.getLogger("polkaledger")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--network", required=True, help="Network name (e.g., polkadot, kusama)")
    parser.add_argument("--account-type", type=int, default=0, help="Account segment of the derivation path")
    parser.add_argument("--address-index", type=int, required=True, help="Address index of the derivation path")
    parser.add_argument("--rpc-url", help="Override the network RPC endpoint")
    parser.add_argument("--metadata-url", help="Override the metadata service URL")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_SUBMISSION_TIMEOUT,
        help="Seconds to wait for finalization (default: %(default)s)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polkaledger",
        description="Sign a transaction on a Ledger device and submit it.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    transfer = subparsers.add_parser("transfer", help="Transfer funds (Balances.transfer_keep_alive)")
    _add_common_arguments(transfer)
    transfer.add_argument("--recipient", required=True, help="Recipient SS58 address")
    transfer.add_argument("--amount", type=int, required=True, help="Amount in planck")

    bond = subparsers.add_parser("bond", help="Add to an existing bond (Staking.bond_extra)")
    _add_common_arguments(bond)
    bond.add_argument("--amount", type=int, required=True, help="Amount in planck")

    return parser


def run(args: argparse.Namespace) -> int:
    """Execute a parsed command and return the process exit code."""
    try:
        profile = NetworkConfig.get_profile(args.network, args.rpc_url, args.metadata_url)
        path = DerivationPath(account=args.account_type, address_index=args.address_index)
    except (PolkaLedgerError, ValueError) as e:
        logger.error(str(e))
        return EXIT_FAILURE

    metadata = MetadataService(profile.metadata_url)
    chain = SubstrateChainClient.from_profile(profile)
    signer = LedgerSigner(profile.chain_id, metadata)
    try:
        if args.command == "transfer":
            call = transfer_call(chain, args.recipient, args.amount)
        else:
            call = bond_extra_call(chain, args.amount)

        orchestrator = SigningOrchestrator(
            network=profile,
            chain=chain,
            metadata=metadata,
            signer=signer,
            submission_timeout=args.timeout,
        )
        result = orchestrator.run(call, path)
    except SubmissionTimeoutError as e:
        logger.error(str(e))
        return EXIT_TIMEOUT
    except (PolkaLedgerError, ValueError) as e:
        logger.error(str(e))
        return EXIT_FAILURE
    finally:
        signer.close()
        chain.close()

    logger.info(f"Finalized in block {result.block_hash}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
