"""
Signer resolution and per-call signer binding.
"""
import logging
from typing import Any, Dict, Optional, Union

from web3 import Web3

from ..config import PRIVATE_KEY_ENV, ServiceConfig
from ..exceptions import MissingCredentialError, ValidationError
from ..models import TransactionOutcome
from ..provider import ConnectionHandle, NetworkResolver
from . import Signer
from .local import LocalSigner

logger = logging.getLogger(__name__)

FEE_FIELDS = ("gasPrice", "maxFeePerGas", "maxPriorityFeePerGas")


def as_signer(value: Union[str, Signer]) -> Signer:
    """
    Turn a hex private key into a LocalSigner; pass Signer objects through.

    Raises:
        ValidationError: If a string is not a valid private key
    """
    if isinstance(value, str):
        try:
            return LocalSigner(value)
        except (ValueError, TypeError) as e:
            # The key itself is never echoed
            raise ValidationError("Invalid input format: private key is not a valid 32-byte hex key") from e
    if not hasattr(value, "address") or not callable(getattr(value, "sign_transaction", None)):
        raise ValidationError(
            f"Invalid input format: signer must be a private key or expose address and sign_transaction, "
            f"got {type(value).__name__}"
        )
    return value


class BoundSigner:
    """
    A signer bound to one connection for the duration of one call.

    Attributes:
        signer: The underlying signer
        handle: The connection transactions are populated against and sent to
    """

    def __init__(self, signer: Signer, handle: ConnectionHandle):
        self.signer = signer
        self.handle = handle

    @property
    def address(self) -> str:
        return self.signer.address

    @property
    def w3(self) -> Web3:
        return self.handle.w3

    def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        """Estimate gas for a transaction sent from this signer"""
        tx = {k: v for k, v in transaction.items() if k not in ("gas", "nonce", "chainId")}
        tx["from"] = self.address
        return int(self.w3.eth.estimate_gas(tx))

    def populate_transaction(self, transaction: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fill the fields a transaction needs before signing.

        ``from`` and ``chainId`` are always set. The nonce comes from the
        pending transaction count, fees from the node when no fee field is
        given, and the gas limit from an estimate when absent.
        """
        tx = dict(transaction)
        tx["from"] = self.address
        tx["chainId"] = self.handle.chain_id
        tx.setdefault("value", 0)

        if tx.get("nonce") is None:
            tx["nonce"] = self.w3.eth.get_transaction_count(self.address, "pending")

        if not any(tx.get(field) is not None for field in FEE_FIELDS):
            tx["gasPrice"] = self.w3.eth.gas_price
        elif tx.get("maxFeePerGas") is not None and tx.get("maxPriorityFeePerGas") is None:
            tx["maxPriorityFeePerGas"] = min(self.w3.eth.max_priority_fee, tx["maxFeePerGas"])
        elif tx.get("maxPriorityFeePerGas") is not None and tx.get("maxFeePerGas") is None:
            base_fee = self.w3.eth.get_block("latest").get("baseFeePerGas", 0)
            tx["maxFeePerGas"] = 2 * base_fee + tx["maxPriorityFeePerGas"]
        tx = {k: v for k, v in tx.items() if v is not None}

        if tx.get("gas") is None:
            tx["gas"] = self.estimate_gas(tx)
        return tx

    def send_transaction(self, transaction: Dict[str, Any]) -> TransactionOutcome:
        """
        Populate, sign locally and broadcast a transaction.

        Returns once the node has accepted the transaction; confirmation is
        not awaited.
        """
        tx = self.populate_transaction(transaction)
        signed = self.signer.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Transaction sent: {hash_hex}")
        return outcome_from_transaction(hash_hex, tx)

    def sign_message(self, message: str) -> str:
        """Sign a text message (EIP-191 personal message)"""
        return self.signer.sign_message(message)

    def __repr__(self) -> str:
        return f"BoundSigner(address={self.address!r}, network={self.handle.network!r})"


def outcome_from_transaction(tx_hash: str, tx: Dict[str, Any]) -> TransactionOutcome:
    """Echo the broadcast fields of a populated transaction. Amounts are wei strings."""
    def _str(key: str) -> Optional[str]:
        value = tx.get(key)
        return None if value is None else str(value)

    data = tx.get("data")
    if isinstance(data, (bytes, bytearray)):
        data = Web3.to_hex(data)
    return TransactionOutcome(
        hash=tx_hash,
        from_address=tx.get("from"),
        to=tx.get("to"),
        value=str(tx.get("value", 0)),
        nonce=tx.get("nonce"),
        gas_limit=_str("gas"),
        gas_price=_str("gasPrice"),
        max_fee_per_gas=_str("maxFeePerGas"),
        max_priority_fee_per_gas=_str("maxPriorityFeePerGas"),
        data=data,
        chain_id=tx.get("chainId"),
    )


class SignerResolver:
    """
    Chooses the signer for an operation.

    Precedence: explicit override, then the instance signer set on the
    config, then ``config.private_key``.
    """

    def __init__(self, config: ServiceConfig, networks: NetworkResolver):
        self.config = config
        self.networks = networks

    def default_signer(self, override: Optional[Union[str, Signer]] = None) -> Signer:
        """
        Pick the signer without binding it to a network.

        Raises:
            MissingCredentialError: If no signer or private key is configured
        """
        for candidate in (override, self.config.signer, self.config.private_key):
            if candidate:
                return as_signer(candidate)
        raise MissingCredentialError(
            f"Missing {PRIVATE_KEY_ENV}: a private key or signer is required for this operation",
            config_key=PRIVATE_KEY_ENV,
        )

    def resolve(
        self,
        override: Optional[Union[str, Signer]] = None,
        identifier: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> BoundSigner:
        """
        Resolve a signer and bind it to the connection for ``identifier``.

        Raises:
            MissingCredentialError: If no signer or private key is configured
            NetworkError: If the network cannot be resolved
        """
        signer = self.default_signer(override)
        handle = self.networks.resolve(identifier, chain_id)
        return BoundSigner(signer, handle)
