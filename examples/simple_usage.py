#!/usr/bin/env python3
"""
Simple example of using the EthLayer SDK.
"""
import os

from ethlayer_sdk import EthLayerClient, EthLayerError, ServiceConfig


def main():
    """
    Demonstrate basic read-only usage of the EthLayerClient.

    This example shows how to:
    1. Initialize the client from the environment
    2. Read balances and blocks on the default network
    3. Read the same data from another network per call
    """
    if not os.environ.get("ALCHEMY_API_KEY"):
        print("ERROR: ALCHEMY_API_KEY environment variable is required")
        return

    client = EthLayerClient(config=ServiceConfig.from_env())
    address = os.environ.get("ADDRESS", "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045")

    try:
        print(f"Latest block: {client.get_block_number()}")
        print(f"Balance of {address}: {client.get_balance(address)} ETH")

        fees = client.get_fee_data()
        print(f"Gas price: {fees['gasPrice']} gwei, max fee: {fees['maxFeePerGas']} gwei")

        # Any call can target another network by name or RPC URL
        print(f"Balance on Polygon: {client.get_balance(address, network='Polygon PoS')} POL")

        block = client.get_block_details()
        print(f"Block {block['number']} has {len(block['transactions'])} transactions")

    except EthLayerError as e:
        print(f"Request failed ({e.kind.value}): {e.message}")


if __name__ == "__main__":
    main()
