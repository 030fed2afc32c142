#!/usr/bin/env python3
"""
Example of reading and transferring tokens with the EthLayer SDK.
"""
import os

from ethlayer_sdk import EthLayerClient, TokenError, TokenErrorCode

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
ENS_REGISTRAR = "0x57f1887a8BF19b14fC0dF6Fd9B2acc9Af147eA85"


def main():
    """
    Demonstrate the token adapters.

    This example shows how to:
    1. Read ERC20 token information and balances
    2. List the ERC721 tokens an address holds
    3. Transfer ERC20 tokens when a private key is configured
    """
    client = EthLayerClient()
    owner = os.environ.get("ADDRESS", "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045")

    info = client.get_erc20_token_info(USDC)
    print(f"{info.name} ({info.symbol}), {info.decimals} decimals, supply {info.total_supply}")
    print(f"Balance: {client.get_erc20_balance(USDC, owner)} {info.symbol}")

    for token in client.get_erc721_tokens_of_owner(ENS_REGISTRAR, owner)[:5]:
        print(f"  ENS token {token.token_id}")

    recipient = os.environ.get("RECIPIENT")
    if client.get_wallet_info() is None or not recipient:
        print("Set PRIVATE_KEY and RECIPIENT to send a transfer")
        return

    try:
        outcome = client.transfer_erc20(USDC, recipient, "0.01")
        print(f"Transfer sent: {outcome.hash}")
    except TokenError as e:
        if e.code == TokenErrorCode.INSUFFICIENT_BALANCE:
            print(f"Not enough {info.symbol}: {e.message}")
        else:
            raise


if __name__ == "__main__":
    main()
