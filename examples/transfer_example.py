#!/usr/bin/env python3
"""
Example of signing a Polkadot transfer on a Ledger device.
"""
import logging
import os

from polkaledger_sdk import (
    DerivationPath,
    MetadataService,
    NetworkConfig,
    SigningOrchestrator,
    SubstrateChainClient,
    PolkaLedgerError,
)
from polkaledger_sdk.calls import transfer_call
from polkaledger_sdk.signer.ledger import LedgerSigner


def main():
    """
    Demonstrate a transfer signed with the Polkadot Ledger app.

    This example shows how to:
    1. Load a network profile
    2. Compose a Balances.transfer_keep_alive call
    3. Sign it on the device with a metadata proof
    4. Submit it and wait for finalization
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    RECIPIENT = os.environ.get("RECIPIENT")
    AMOUNT = int(os.environ.get("AMOUNT", "10000000000"))
    NETWORK = os.environ.get("NETWORK", "polkadot")

    if not RECIPIENT:
        print("ERROR: RECIPIENT environment variable is required")
        return

    print("Available networks:")
    for network_name in NetworkConfig.load_networks().keys():
        print(f"  - {network_name}")
    print()

    profile = NetworkConfig.get_profile(NETWORK)
    metadata = MetadataService(profile.metadata_url, retry_count=2)
    path = DerivationPath(account=0, address_index=0)
    print(f"Signing with {path} on {profile.name}")

    with SubstrateChainClient.from_profile(profile) as chain, \
            LedgerSigner(profile.chain_id, metadata) as signer:
        try:
            call = transfer_call(chain, RECIPIENT, AMOUNT)
            orchestrator = SigningOrchestrator(
                network=profile,
                chain=chain,
                metadata=metadata,
                signer=signer,
            )
            result = orchestrator.run(call, path)
            print(f"Finalized in block {result.block_hash}")
            print(f"Transaction: {result.transaction.hex}")
        except PolkaLedgerError as e:
            print(f"Error: {e}")
            if e.resumable:
                print("Nothing was signed, it is safe to retry")


if __name__ == "__main__":
    main()
