"""
Transaction orchestration: read-only contract calls, state-changing contract
calls, native transfers, raw broadcasts and message signing.

Every operation validates its inputs before opening a connection and
reports failures through ``normalize_error``.
"""
import logging
from typing import Any, Dict, Optional, Sequence, Union

from web3 import Web3

from .abi import ABI, decode_output, encode_call, find_function, is_payable, is_read_only, parse_abi
from .exceptions import ValidationError, WrongCallKindError
from .models import TransactionOutcome, TransactionRequest, TxOverrides
from .normalizer import normalize_error, to_serializable
from .provider import NetworkResolver
from .signer import Signer
from .signer.resolver import SignerResolver
from .units import parse_ether, parse_gwei
from .validation import validate_address, validate_block_tag, validate_hex_data

logger = logging.getLogger(__name__)

AbiInput = Union[str, ABI]
SignerInput = Optional[Union[str, Signer]]


def apply_overrides(tx: Dict[str, Any], overrides: Optional[Union[TxOverrides, Dict[str, Any]]]) -> Dict[str, Any]:
    """
    Merge gas and nonce overrides into a transaction dict.

    Fee overrides are gwei decimal strings. An override ``value`` is ignored;
    the transaction value is always the one computed by the caller.

    Raises:
        pydantic.ValidationError: If the overrides are malformed or mix
            gasPrice with EIP-1559 fee fields
    """
    if overrides is None:
        return tx
    if not isinstance(overrides, TxOverrides):
        overrides = TxOverrides.model_validate(overrides)

    merged = dict(tx)
    if overrides.gas_limit is not None:
        merged["gas"] = overrides.gas_limit
    if overrides.nonce is not None:
        merged["nonce"] = overrides.nonce
    if overrides.gas_price is not None:
        merged["gasPrice"] = parse_gwei(overrides.gas_price)
    if overrides.max_fee_per_gas is not None:
        merged["maxFeePerGas"] = parse_gwei(overrides.max_fee_per_gas)
    if overrides.max_priority_fee_per_gas is not None:
        merged["maxPriorityFeePerGas"] = parse_gwei(overrides.max_priority_fee_per_gas)
    if overrides.value is not None:
        logger.debug("Ignoring value in transaction overrides; using the operation amount")
    return merged


def _request_details(request: Any) -> Dict[str, Any]:
    """The caller-facing fields of a transaction request, for error details"""
    if isinstance(request, TransactionRequest):
        request = request.model_dump(exclude_none=True)
    if not isinstance(request, dict):
        return {"request": request}
    return {k: request[k] for k in ("to", "value", "data") if request.get(k) is not None}


class TransactionOrchestrator:
    """
    Builds, signs and submits transactions.

    Args:
        networks: Resolver for network identifiers
        signers: Resolver for signing credentials
    """

    def __init__(self, networks: NetworkResolver, signers: SignerResolver):
        self.networks = networks
        self.signers = signers

    def _prepare(self, address: str, abi: AbiInput, method: str, args: Optional[Sequence[Any]]):
        address = Web3.to_checksum_address(validate_address(address, "contractAddress"))
        entries = parse_abi(abi)
        fn = find_function(entries, method, args)
        data = encode_call(fn, args)
        return address, fn, data

    def call(
        self,
        address: str,
        abi: AbiInput,
        method: str,
        args: Optional[Sequence[Any]] = None,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        block: Optional[Union[int, str]] = None,
    ) -> Any:
        """
        Call a view or pure function and return its serialized outputs.

        Raises:
            ValidationError: If the address, ABI, method or arguments are invalid
            WrongCallKindError: If the function changes state
            ProviderError: If the node rejects the call
        """
        try:
            address, fn, data = self._prepare(address, abi, method, args)
            block = validate_block_tag(block, "block")
            if not is_read_only(fn):
                raise WrongCallKindError(
                    f"Use send_contract_transaction for state-changing function: {fn['name']}"
                )
            handle = self.networks.resolve(network, chain_id)
            raw = handle.w3.eth.call({"to": address, "data": data}, "latest" if block is None else block)
            return to_serializable(decode_output(fn, raw))
        except Exception as e:
            normalize_error(e, "call contract method", {"contractAddress": address, "method": method, "args": args})

    def send_with_estimate(
        self,
        address: str,
        abi: AbiInput,
        method: str,
        args: Optional[Sequence[Any]] = None,
        value: str = "0",
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        """
        Estimate gas for a contract call, then send it with that gas limit.

        Args:
            value: Native amount to attach, as a decimal string in ether
        """
        try:
            address, fn, data = self._prepare(address, abi, method, args)
            tx = {"to": address, "data": data, "value": self._value(fn, value)}
            bound = self.signers.resolve(signer, network, chain_id)
            tx["gas"] = bound.estimate_gas(tx)
            logger.debug(f"Estimated gas for {fn['name']}: {tx['gas']}")
            return bound.send_transaction(tx)
        except Exception as e:
            normalize_error(
                e, "send contract transaction with gas estimate",
                {"contractAddress": address, "method": method, "args": args, "value": value},
            )

    def send_contract_transaction(
        self,
        address: str,
        abi: AbiInput,
        method: str,
        args: Optional[Sequence[Any]] = None,
        value: str = "0",
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        overrides: Optional[Union[TxOverrides, Dict[str, Any]]] = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        """
        Send a state-changing contract call with optional gas overrides.

        ``value`` always comes from the ``value`` argument, even when the
        overrides carry one.
        """
        try:
            address, fn, data = self._prepare(address, abi, method, args)
            tx = {"to": address, "data": data}
            tx = apply_overrides(tx, overrides)
            tx["value"] = self._value(fn, value)
            bound = self.signers.resolve(signer, network, chain_id)
            return bound.send_transaction(tx)
        except Exception as e:
            normalize_error(
                e, "send contract transaction",
                {"contractAddress": address, "method": method, "args": args, "value": value},
            )

    def send_raw_transaction(
        self,
        signed_tx: str,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> TransactionOutcome:
        """
        Broadcast an already-signed transaction unchanged.

        The node's rejection reason is preserved on ``ProviderError.provider_reason``.
        """
        try:
            payload = validate_hex_data(signed_tx, "signedTransaction")
            if payload == "0x":
                raise ValidationError("Invalid input format: signedTransaction is empty")
            handle = self.networks.resolve(network, chain_id)
            tx_hash = handle.w3.eth.send_raw_transaction(payload)
            hash_hex = Web3.to_hex(tx_hash)
            logger.info(f"Raw transaction sent: {hash_hex}")
            return TransactionOutcome(hash=hash_hex)
        except Exception as e:
            normalize_error(e, "send raw transaction", {"signedTransaction": signed_tx})

    def create_transaction(self, request: Union[TransactionRequest, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Build an unsigned transaction dict from a request. No network access.

        Amounts are converted to wei; the result is JSON-safe.
        """
        try:
            return to_serializable(self._build(request))
        except Exception as e:
            normalize_error(e, "create transaction", _request_details(request))

    def estimate_gas(
        self,
        request: Union[TransactionRequest, Dict[str, Any]],
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> int:
        """Estimate the gas a transaction would use"""
        try:
            tx = self._build(request)
            handle = self.networks.resolve(network, chain_id)
            fields = {k: v for k, v in tx.items() if k in ("to", "value", "data", "from")}
            return int(handle.w3.eth.estimate_gas(fields))
        except Exception as e:
            normalize_error(e, "estimate gas", _request_details(request))

    def send_transaction(
        self,
        request: Union[TransactionRequest, Dict[str, Any]],
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        """
        Send a native value transfer (optionally with call data).

        Args:
            request: Recipient, ether amount and optional gas options
            signer: Per-call signer or private key, taking precedence over
                the configured one
        """
        try:
            tx = self._build(request)
            bound = self.signers.resolve(signer, network, chain_id)
            return bound.send_transaction(tx)
        except Exception as e:
            normalize_error(e, "send transaction", _request_details(request))

    def sign_message(self, message: str, signer: SignerInput = None) -> str:
        """Sign a text message (EIP-191) with the resolved signer"""
        try:
            if not isinstance(message, str):
                raise ValidationError("Invalid input format: message must be a string")
            return self.signers.default_signer(signer).sign_message(message)
        except Exception as e:
            normalize_error(e, "sign message", {"message": message})

    def _build(self, request: Union[TransactionRequest, Dict[str, Any]]) -> Dict[str, Any]:
        if not isinstance(request, TransactionRequest):
            request = TransactionRequest.model_validate(request)
        tx: Dict[str, Any] = {
            "to": Web3.to_checksum_address(request.to),
            "value": parse_ether(request.value),
        }
        if request.data:
            tx["data"] = request.data
        tx = apply_overrides(tx, request.model_dump(exclude={"to", "value", "data"}, exclude_none=True))
        tx["value"] = parse_ether(request.value)
        return tx

    @staticmethod
    def _value(fn: Dict[str, Any], value: Optional[str]) -> int:
        wei = parse_ether(value if value is not None else "0")
        if wei and not is_payable(fn):
            raise ValidationError(
                f"Invalid input format: function {fn['name']} is not payable but value {value} was given"
            )
        return wei
