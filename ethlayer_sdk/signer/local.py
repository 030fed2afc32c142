"""
Private-key signer backed by eth_account.
"""
from typing import Any, Dict

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3


class LocalSigner:
    """
    Signs locally with a hex private key. The key never leaves this object
    and is never rendered by ``repr``.

    Args:
        priv_key: Hex private key, with or without the 0x prefix

    Raises:
        ValueError: If the key is not a valid secp256k1 private key
    """

    def __init__(self, priv_key: str):
        self._account = Account.from_key(priv_key)
        self.address = self._account.address

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign a fully populated transaction dict"""
        tx = dict(transaction_dict)
        sender = tx.pop("from", None)
        if sender is not None and sender.lower() != self.address.lower():
            raise ValueError(f"Transaction sender {sender} does not match signer {self.address}")
        return self._account.sign_transaction(tx)

    def sign_message(self, message: str) -> str:
        signed = self._account.sign_message(encode_defunct(text=message))
        return Web3.to_hex(signed.signature)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address!r})"
