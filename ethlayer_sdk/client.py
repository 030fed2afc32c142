"""
EthLayerClient - Main client for EVM network access.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from web3 import Web3
from web3.exceptions import BlockNotFound, TransactionNotFound

from .abi import ABI
from .config import ServiceConfig
from .events import EventLogQuery, Topic
from .exceptions import GenericError
from .models import (
    CollectionInfo,
    FungibleInfo,
    NetworkDescriptor,
    OwnedToken,
    TokenMetadata,
    TransactionOutcome,
    TransactionRequest,
    TxOverrides,
    WalletInfo,
)
from .normalizer import normalize_error, to_serializable
from .provider import ConnectionHandle, NetworkResolver
from .signer import Signer
from .signer.resolver import SignerResolver, as_signer
from .tokens import ERC20Adapter, ERC721Adapter, ERC1155Adapter, MetadataFetcher
from .transactions import TransactionOrchestrator
from .units import ETHER_DECIMALS, GWEI_DECIMALS
from .units import format_units as _format_units
from .units import parse_units as _parse_units
from .validation import TX_HASH_PATTERN, validate_address, validate_block_tag, validate_tx_hash

Network = Optional[Union[str, Web3, ConnectionHandle]]
Overrides = Optional[Union[TxOverrides, Dict[str, Any]]]
SignerInput = Optional[Union[str, Signer]]


class EthLayerClient:
    """
    Client for reading from and transacting on EVM networks.

    Every operation takes an optional ``network`` (a network name such as
    "mainnet" or "Polygon PoS", an http(s) RPC URL, or a Web3 instance) and
    an optional ``chain_id`` hint. Without a network the client's provider
    (see ``set_provider``) or ``config.default_network`` is used.

    To use this client for writes you'll need either a private key
    (``PRIVATE_KEY`` / ``config.private_key``) or a custom signer.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        provider: Network = None,
        signer: SignerInput = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the EthLayerClient

        Args:
            config: Service configuration (defaults to ``ServiceConfig.from_env()``)
            provider: Default network for this client
            signer: Default signer or hex private key for this client
            logger: Optional logger instance to use for debug/info logging
        """
        self.config = config or ServiceConfig.from_env()
        self.logger = logger or logging.getLogger(__name__)

        self.networks = NetworkResolver(self.config)
        self.signers = SignerResolver(self.config, self.networks)
        self.transactions = TransactionOrchestrator(self.networks, self.signers)
        self.events = EventLogQuery(self.networks)
        self.metadata = MetadataFetcher(self.config)
        self.erc20 = ERC20Adapter(self.networks, self.signers, self.transactions, self.metadata)
        self.erc721 = ERC721Adapter(self.networks, self.signers, self.transactions, self.metadata)
        self.erc1155 = ERC1155Adapter(self.networks, self.signers, self.transactions, self.metadata)

        if provider is not None:
            self.set_provider(provider)
        if signer is not None:
            self.set_signer(signer)

    # Instance defaults

    def set_provider(self, provider: Network) -> None:
        """
        Set the default network of this client. ``None`` restores
        ``config.default_network``. Not safe under concurrent use.

        The identifier is checked now and stored; every later call resolves
        it into its own connection.
        """
        try:
            if provider is None:
                self.config.provider = None
                return
            handle = self.networks.resolve(provider)
            self.config.provider = provider
            self.logger.debug(f"Default provider set to {handle!r}")
        except Exception as e:
            normalize_error(e, "set provider")

    def set_signer(self, signer: SignerInput) -> None:
        """
        Set the default signer of this client. ``None`` falls back to
        ``config.private_key``. Not safe under concurrent use.
        """
        try:
            self.config.signer = None if signer is None else as_signer(signer)
        except Exception as e:
            normalize_error(e, "set signer")

    def get_wallet_info(self, signer: SignerInput = None) -> Optional[WalletInfo]:
        """Address of the signer that writes would use, or None if none is configured"""
        if signer is None and self.config.signer is None and not self.config.private_key:
            return None
        try:
            return WalletInfo(address=self.signers.default_signer(signer).address)
        except Exception as e:
            normalize_error(e, "get wallet info")

    # Networks and chain reads

    def get_supported_networks(self) -> List[NetworkDescriptor]:
        """List supported networks, marking the current default"""
        try:
            return self.networks.supported_networks()
        except Exception as e:
            normalize_error(e, "get supported networks")

    def _checksum(self, address: str, field: str = "address") -> str:
        return Web3.to_checksum_address(validate_address(address, field))

    def get_balance(self, address: str, network: Network = None, chain_id: Optional[int] = None) -> str:
        """Native balance of ``address`` in ether"""
        try:
            checksum = self._checksum(address)
            handle = self.networks.resolve(network, chain_id)
            return _format_units(handle.w3.eth.get_balance(checksum), ETHER_DECIMALS)
        except Exception as e:
            normalize_error(e, "fetch balance", {"address": address})

    def get_transaction_count(
        self,
        address: str,
        block: Optional[Union[int, str]] = None,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> int:
        """Number of transactions sent from ``address`` (its next nonce)"""
        try:
            checksum = self._checksum(address)
            block = validate_block_tag(block, "blockTag")
            handle = self.networks.resolve(network, chain_id)
            return int(handle.w3.eth.get_transaction_count(checksum, block if block is not None else "latest"))
        except Exception as e:
            normalize_error(e, "fetch transaction count", {"address": address})

    def get_block_number(self, network: Network = None, chain_id: Optional[int] = None) -> int:
        """Latest block number"""
        try:
            handle = self.networks.resolve(network, chain_id)
            return int(handle.w3.eth.block_number)
        except Exception as e:
            normalize_error(e, "get block number")

    def _block_id(self, block: Optional[Union[int, str]]) -> Union[int, str]:
        if isinstance(block, str) and re.match(TX_HASH_PATTERN, block):
            return block
        checked = validate_block_tag(block, "blockTag")
        return "latest" if checked is None else checked

    def get_block_details(
        self,
        block: Optional[Union[int, str]] = None,
        full_transactions: bool = False,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        A block by number, tag or hash, or None if the node does not know it.

        Returns:
            The block as JSON-safe values (integers as decimal strings)
        """
        try:
            block_id = self._block_id(block)
            handle = self.networks.resolve(network, chain_id)
            try:
                return to_serializable(handle.w3.eth.get_block(block_id, full_transactions))
            except BlockNotFound:
                return None
        except Exception as e:
            normalize_error(e, "get block details", {"blockTag": block})

    def get_transaction_details(
        self, tx_hash: str, network: Network = None, chain_id: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        """A transaction by hash, or None if the node does not know it"""
        try:
            validate_tx_hash(tx_hash)
            handle = self.networks.resolve(network, chain_id)
            try:
                return to_serializable(handle.w3.eth.get_transaction(tx_hash))
            except TransactionNotFound:
                return None
        except Exception as e:
            normalize_error(e, "get transaction details", {"txHash": tx_hash})

    def get_transactions_by_block(
        self,
        block: Optional[Union[int, str]] = None,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """All transactions of a block, in block order"""
        try:
            block_id = self._block_id(block)
            handle = self.networks.resolve(network, chain_id)
            try:
                found = handle.w3.eth.get_block(block_id, True)
            except BlockNotFound as e:
                raise GenericError(f"Block {block_id} not found") from e
            return to_serializable(list(found.get("transactions", [])))
        except Exception as e:
            normalize_error(e, "get transactions by block", {"blockTag": block})

    def get_chain_id_from_transaction(
        self, tx_hash: str, network: Network = None, chain_id: Optional[int] = None
    ) -> int:
        """Chain ID recorded in a transaction (the connection's chain ID for legacy transactions)"""
        try:
            validate_tx_hash(tx_hash)
            handle = self.networks.resolve(network, chain_id)
            try:
                tx = handle.w3.eth.get_transaction(tx_hash)
            except TransactionNotFound as e:
                raise GenericError(f"Transaction {tx_hash} not found") from e
            recorded = tx.get("chainId")
            return int(recorded, 16) if isinstance(recorded, str) else int(recorded or handle.chain_id)
        except Exception as e:
            normalize_error(e, "get chain ID from transaction", {"txHash": tx_hash})

    def get_gas_price(self, network: Network = None, chain_id: Optional[int] = None) -> str:
        """Current gas price in gwei"""
        try:
            handle = self.networks.resolve(network, chain_id)
            return _format_units(handle.w3.eth.gas_price, GWEI_DECIMALS)
        except Exception as e:
            normalize_error(e, "get gas price")

    def get_fee_data(self, network: Network = None, chain_id: Optional[int] = None) -> Dict[str, Optional[str]]:
        """
        Current fee data in gwei.

        ``maxFeePerGas`` is twice the latest base fee plus the priority fee;
        both EIP-1559 fields are None on networks without a base fee.
        """
        try:
            handle = self.networks.resolve(network, chain_id)
            gas_price = handle.w3.eth.gas_price
            base_fee = handle.w3.eth.get_block("latest").get("baseFeePerGas")
            fee_data: Dict[str, Optional[str]] = {
                "gasPrice": _format_units(gas_price, GWEI_DECIMALS),
                "maxFeePerGas": None,
                "maxPriorityFeePerGas": None,
            }
            if base_fee is not None:
                priority = handle.w3.eth.max_priority_fee
                fee_data["maxFeePerGas"] = _format_units(2 * base_fee + priority, GWEI_DECIMALS)
                fee_data["maxPriorityFeePerGas"] = _format_units(priority, GWEI_DECIMALS)
            return fee_data
        except Exception as e:
            normalize_error(e, "get fee data")

    def get_contract_code(self, address: str, network: Network = None, chain_id: Optional[int] = None) -> str:
        """Deployed bytecode at ``address`` ("0x" for accounts without code)"""
        try:
            checksum = self._checksum(address)
            handle = self.networks.resolve(network, chain_id)
            return Web3.to_hex(handle.w3.eth.get_code(checksum))
        except Exception as e:
            normalize_error(e, "get contract code", {"address": address})

    def lookup_address(self, address: str, network: Network = None, chain_id: Optional[int] = None) -> Optional[str]:
        """Reverse ENS lookup; None if the address has no primary name"""
        try:
            checksum = self._checksum(address)
            handle = self.networks.resolve(network, chain_id)
            return handle.w3.ens.name(checksum)
        except Exception as e:
            normalize_error(e, "look up ENS name for address", {"address": address})

    def resolve_name(self, name: str, network: Network = None, chain_id: Optional[int] = None) -> Optional[str]:
        """Resolve an ENS name to an address; None if it is not set"""
        try:
            if not isinstance(name, str) or "." not in name:
                raise GenericError(f"Invalid ENS name: {name!r}")
            handle = self.networks.resolve(network, chain_id)
            return handle.w3.ens.address(name)
        except Exception as e:
            normalize_error(e, "resolve ENS name", {"name": name})

    # Unit conversion

    def format_ether(self, wei: Union[int, str]) -> str:
        try:
            return _format_units(wei, ETHER_DECIMALS)
        except Exception as e:
            normalize_error(e, "format ether", {"wei": wei})

    def parse_ether(self, ether: str) -> int:
        try:
            return _parse_units(ether, ETHER_DECIMALS)
        except Exception as e:
            normalize_error(e, "parse ether", {"ether": ether})

    def format_units(self, value: Union[int, str], unit: Union[int, str]) -> str:
        try:
            return _format_units(value, unit)
        except Exception as e:
            normalize_error(e, "format units", {"value": value, "unit": unit})

    def parse_units(self, value: str, unit: Union[int, str]) -> int:
        try:
            return _parse_units(value, unit)
        except Exception as e:
            normalize_error(e, "parse units", {"value": value, "unit": unit})

    # Transactions

    def send_transaction(
        self,
        to: str,
        value: str,
        data: Optional[str] = None,
        options: Overrides = None,
        network: Network = None,
        chain_id: Optional[int] = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        """
        Send ``value`` ether to ``to``.

        Args:
            options: Gas options (gasLimit, gasPrice or maxFeePerGas and
                maxPriorityFeePerGas in gwei, nonce)
            signer: Per-call signer or private key
        """
        request: Dict[str, Any] = {"to": to, "value": value}
        if data is not None:
            request["data"] = data
        if options:
            fields = options.model_dump(exclude_none=True) if isinstance(options, TxOverrides) else dict(options)
            fields.pop("value", None)
            request.update(fields)
        return self.transactions.send_transaction(request, network, chain_id, signer)

    def send_transaction_request(
        self,
        request: Union[TransactionRequest, Dict[str, Any]],
        network: Network = None,
        chain_id: Optional[int] = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.transactions.send_transaction(request, network, chain_id, signer)

    def create_transaction(self, to: str, value: str, data: Optional[str] = None) -> Dict[str, Any]:
        """Unsigned transaction dict with the value in wei"""
        request: Dict[str, Any] = {"to": to, "value": value}
        if data is not None:
            request["data"] = data
        return self.transactions.create_transaction(request)

    def estimate_gas(
        self,
        to: str,
        value: str = "0",
        data: Optional[str] = None,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> int:
        request: Dict[str, Any] = {"to": to, "value": value}
        if data is not None:
            request["data"] = data
        return self.transactions.estimate_gas(request, network, chain_id)

    def sign_message(self, message: str, signer: SignerInput = None) -> str:
        return self.transactions.sign_message(message, signer)

    def send_raw_transaction(
        self, signed_transaction: str, network: Network = None, chain_id: Optional[int] = None
    ) -> TransactionOutcome:
        return self.transactions.send_raw_transaction(signed_transaction, network, chain_id)

    def call_contract_method(
        self,
        contract_address: str,
        abi: Union[str, ABI],
        method: str,
        args: Optional[Sequence[Any]] = None,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> Any:
        return self.transactions.call(contract_address, abi, method, args, network, chain_id)

    def send_contract_transaction(
        self,
        contract_address: str,
        abi: Union[str, ABI],
        method: str,
        args: Optional[Sequence[Any]] = None,
        value: str = "0",
        network: Network = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.transactions.send_contract_transaction(
            contract_address, abi, method, args, value, network, chain_id, overrides, signer
        )

    def send_contract_transaction_with_estimate(
        self,
        contract_address: str,
        abi: Union[str, ABI],
        method: str,
        args: Optional[Sequence[Any]] = None,
        value: str = "0",
        network: Network = None,
        chain_id: Optional[int] = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.transactions.send_with_estimate(
            contract_address, abi, method, args, value, network, chain_id, signer
        )

    # Logs

    def query_logs(
        self,
        address: Optional[str] = None,
        topics: Optional[Sequence[Topic]] = None,
        from_block: Optional[Union[int, str]] = None,
        to_block: Optional[Union[int, str]] = None,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return self.events.query_logs(address, topics, from_block, to_block, network, chain_id)

    def get_contract_events(
        self,
        contract_address: str,
        abi: Union[str, ABI],
        event_name: Optional[str] = None,
        topics: Optional[Sequence[Topic]] = None,
        from_block: Optional[Union[int, str]] = None,
        to_block: Optional[Union[int, str]] = None,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return self.events.contract_events(
            contract_address, abi, event_name, topics, from_block, to_block, network, chain_id
        )

    # ERC20

    def get_erc20_token_info(
        self, token_address: str, network: Network = None, chain_id: Optional[int] = None
    ) -> FungibleInfo:
        return self.erc20.get_token_info(token_address, network, chain_id)

    def get_erc20_balance(
        self, token_address: str, owner_address: str, network: Network = None, chain_id: Optional[int] = None
    ) -> str:
        return self.erc20.get_balance(token_address, owner_address, network, chain_id)

    def get_erc20_allowance(
        self,
        token_address: str,
        owner_address: str,
        spender_address: str,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> str:
        return self.erc20.get_allowance(token_address, owner_address, spender_address, network, chain_id)

    def transfer_erc20(
        self,
        token_address: str,
        recipient_address: str,
        amount: str,
        network: Network = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.erc20.transfer(token_address, recipient_address, amount, network, chain_id, overrides, signer)

    def approve_erc20(
        self,
        token_address: str,
        spender_address: str,
        amount: str,
        network: Network = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.erc20.approve(token_address, spender_address, amount, network, chain_id, overrides, signer)

    def transfer_from_erc20(
        self,
        token_address: str,
        sender_address: str,
        recipient_address: str,
        amount: str,
        network: Network = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.erc20.transfer_from(
            token_address, sender_address, recipient_address, amount, network, chain_id, overrides, signer
        )

    # ERC721

    def get_erc721_collection_info(
        self, contract_address: str, network: Network = None, chain_id: Optional[int] = None
    ) -> CollectionInfo:
        return self.erc721.get_collection_info(contract_address, network, chain_id)

    def get_erc721_owner(
        self, contract_address: str, token_id: Any, network: Network = None, chain_id: Optional[int] = None
    ) -> str:
        return self.erc721.owner_of(contract_address, token_id, network, chain_id)

    def get_erc721_metadata(
        self, contract_address: str, token_id: Any, network: Network = None, chain_id: Optional[int] = None
    ) -> TokenMetadata:
        return self.erc721.get_metadata(contract_address, token_id, network, chain_id)

    def get_erc721_tokens_of_owner(
        self,
        contract_address: str,
        owner_address: str,
        include_metadata: bool = False,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> List[OwnedToken]:
        return self.erc721.get_user_tokens(contract_address, owner_address, include_metadata, network, chain_id)

    def transfer_erc721(
        self,
        contract_address: str,
        to_address: str,
        token_id: Any,
        network: Network = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.erc721.transfer(contract_address, to_address, token_id, network, chain_id, overrides, signer)

    def safe_transfer_erc721(
        self,
        contract_address: str,
        to_address: str,
        token_id: Any,
        data: str = "0x",
        network: Network = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.erc721.safe_transfer(
            contract_address, to_address, token_id, data, network, chain_id, overrides, signer
        )

    # ERC1155

    def get_erc1155_balance(
        self,
        contract_address: str,
        owner_address: str,
        token_id: Any,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> str:
        return self.erc1155.balance_of(contract_address, owner_address, token_id, network, chain_id)

    def get_erc1155_batch_balances(
        self,
        contract_address: str,
        owner_addresses: Sequence[str],
        token_ids: Sequence[Any],
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> List[str]:
        return self.erc1155.batch_balance_of(contract_address, owner_addresses, token_ids, network, chain_id)

    def get_erc1155_metadata(
        self, contract_address: str, token_id: Any, network: Network = None, chain_id: Optional[int] = None
    ) -> TokenMetadata:
        return self.erc1155.get_metadata(contract_address, token_id, network, chain_id)

    def get_erc1155_tokens_of_owner(
        self,
        contract_address: str,
        owner_address: str,
        token_ids: Optional[Sequence[Any]] = None,
        include_metadata: bool = False,
        network: Network = None,
        chain_id: Optional[int] = None,
    ) -> List[OwnedToken]:
        return self.erc1155.get_user_tokens(
            contract_address, owner_address, token_ids, include_metadata, network, chain_id
        )

    def safe_transfer_erc1155(
        self,
        contract_address: str,
        from_address: str,
        to_address: str,
        token_id: Any,
        amount: str,
        data: str = "0x",
        network: Network = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.erc1155.safe_transfer_from(
            contract_address, from_address, to_address, token_id, amount, data, network, chain_id, overrides, signer
        )

    def safe_batch_transfer_erc1155(
        self,
        contract_address: str,
        from_address: str,
        to_address: str,
        token_ids: Sequence[Any],
        amounts: Sequence[str],
        data: str = "0x",
        network: Network = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: SignerInput = None,
    ) -> TransactionOutcome:
        return self.erc1155.safe_batch_transfer_from(
            contract_address, from_address, to_address, token_ids, amounts, data,
            network, chain_id, overrides, signer,
        )
