"""
Signers for the EthLayer SDK.
"""
from typing import Any, Dict, Protocol

from .local import LocalSigner


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object exposing ``raw_transaction``"""
        ...

    def sign_message(self, message: str) -> str:
        """Sign a text message (EIP-191) and return the 0x signature"""
        ...


__all__ = ["Signer", "LocalSigner"]
