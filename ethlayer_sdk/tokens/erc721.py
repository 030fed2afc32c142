"""
ERC721 non-fungible token adapter.
"""
import logging
from typing import Any, List, Optional

from eth_abi.exceptions import DecodingError
from web3 import Web3
from web3.exceptions import ContractLogicError

from ..abi import decode_log, event_topic, find_event
from ..exceptions import TokenError, TokenErrorCode
from ..models import CollectionInfo, OwnedToken, TokenMetadata, TransactionOutcome
from ..normalizer import normalize_error
from ..provider import ConnectionHandle
from ..validation import validate_address, validate_hex_data, validate_token_id
from .abis import ERC165_INTERFACE_ID_ERC721_ENUMERABLE, ERC721_ABI
from .base import Overrides, TokenAdapter

logger = logging.getLogger(__name__)


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte log topic"""
    return "0x" + "0" * 24 + address[2:].lower()


class ERC721Adapter(TokenAdapter):
    """Reads, enumerates and transfers ERC721 tokens."""

    ABI = ERC721_ABI

    def supports_interface(self, handle: ConnectionHandle, address: str, interface_id: str) -> bool:
        """ERC165 check; contracts without ERC165 report False"""
        try:
            return bool(self._read(handle, address, "supportsInterface", [interface_id]))
        except (ContractLogicError, TokenError):
            return False

    def get_collection_info(
        self,
        contract_address: str,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> CollectionInfo:
        """Name, symbol and, when the contract exposes it, total supply"""
        try:
            validate_address(contract_address, "contractAddress")
            handle = self.networks.resolve(network, chain_id)
            self._require_contract(handle, contract_address)
            try:
                total_supply = str(self._read(handle, contract_address, "totalSupply"))
            except (ContractLogicError, TokenError):
                total_supply = None
            return CollectionInfo(
                address=contract_address,
                name=self._read(handle, contract_address, "name"),
                symbol=self._read(handle, contract_address, "symbol"),
                total_supply=total_supply,
            )
        except Exception as e:
            normalize_error(e, "get ERC721 collection info", {"contractAddress": contract_address})

    def _owner_of(self, handle: ConnectionHandle, contract_address: str, token_id: int) -> str:
        try:
            return self._read(handle, contract_address, "ownerOf", [token_id])
        except ContractLogicError as e:
            raise TokenError(
                f"Token {token_id} does not exist",
                TokenErrorCode.NOT_FOUND,
                token_address=contract_address,
            ) from e

    def owner_of(
        self,
        contract_address: str,
        token_id: Any,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> str:
        """
        Current owner of a token.

        Raises:
            TokenError: NOT_FOUND if the token does not exist
        """
        try:
            validate_address(contract_address, "contractAddress")
            token_id = validate_token_id(token_id)
            handle = self.networks.resolve(network, chain_id)
            return self._owner_of(handle, contract_address, token_id)
        except Exception as e:
            normalize_error(e, "get ERC721 owner", {"contractAddress": contract_address, "tokenId": token_id})

    def _token_uri(self, handle: ConnectionHandle, contract_address: str, token_id: int) -> str:
        try:
            return self._read(handle, contract_address, "tokenURI", [token_id])
        except ContractLogicError as e:
            raise TokenError(
                f"Token {token_id} does not exist",
                TokenErrorCode.NOT_FOUND,
                token_address=contract_address,
            ) from e

    def get_metadata(
        self,
        contract_address: str,
        token_id: Any,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> TokenMetadata:
        """
        Resolve ``tokenURI`` and load the metadata document.

        Raises:
            TokenError: NOT_FOUND for a missing token, METADATA_ERROR if the
                document cannot be loaded
        """
        try:
            validate_address(contract_address, "contractAddress")
            token_id = validate_token_id(token_id)
            handle = self.networks.resolve(network, chain_id)
            uri = self._token_uri(handle, contract_address, token_id)
            return self.metadata.fetch(uri, token_address=contract_address)
        except Exception as e:
            normalize_error(e, "get ERC721 metadata", {"contractAddress": contract_address, "tokenId": token_id})

    def get_user_tokens(
        self,
        contract_address: str,
        owner_address: str,
        include_metadata: bool = False,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> List[OwnedToken]:
        """
        Tokens held by ``owner_address``.

        Enumerable contracts are walked with ``tokenOfOwnerByIndex``. Other
        contracts are scanned through incoming Transfer logs over the last
        ``log_scan_block_range`` blocks, keeping tokens the owner still holds.
        At most ``max_owned_tokens`` tokens are returned.
        """
        try:
            validate_address(contract_address, "contractAddress")
            validate_address(owner_address, "ownerAddress")
            handle = self.networks.resolve(network, chain_id)
            limit = self.networks.config.max_owned_tokens

            balance = int(self._read(handle, contract_address, "balanceOf", [owner_address]))
            if balance == 0:
                return []

            if self.supports_interface(handle, contract_address, ERC165_INTERFACE_ID_ERC721_ENUMERABLE):
                token_ids = [
                    int(self._read(handle, contract_address, "tokenOfOwnerByIndex", [owner_address, index]))
                    for index in range(min(balance, limit))
                ]
            else:
                token_ids = self._scan_owned(handle, contract_address, owner_address, min(balance, limit))

            tokens = []
            for token_id in token_ids:
                token = OwnedToken(token_id=str(token_id))
                if include_metadata:
                    token.token_uri, token.metadata = self._try_metadata(handle, contract_address, token_id)
                tokens.append(token)
            return tokens
        except Exception as e:
            normalize_error(
                e, "get ERC721 tokens of owner", {"contractAddress": contract_address, "ownerAddress": owner_address}
            )

    def _scan_owned(self, handle: ConnectionHandle, contract_address: str, owner_address: str, limit: int) -> List[int]:
        transfer = find_event(self.ABI, "Transfer")
        head = handle.w3.eth.block_number
        from_block = max(0, head - self.networks.config.log_scan_block_range)
        logger.debug(
            f"Scanning Transfer logs of {contract_address} from block {from_block} to {head}"
        )
        logs = handle.w3.eth.get_logs({
            "address": Web3.to_checksum_address(contract_address),
            "topics": [event_topic(transfer), None, address_topic(owner_address)],
            "fromBlock": from_block,
            "toBlock": head,
        })

        owned: List[int] = []
        seen = set()
        # Newest transfers first
        for log in reversed(logs):
            try:
                token_id = int(decode_log(transfer, log["topics"], log.get("data"))["tokenId"])
            except (ValueError, DecodingError):
                continue
            if token_id in seen:
                continue
            seen.add(token_id)
            try:
                current = self._owner_of(handle, contract_address, token_id)
            except TokenError:
                continue
            if current.lower() == owner_address.lower():
                owned.append(token_id)
                if len(owned) >= limit:
                    break
        return owned

    def _try_metadata(self, handle: ConnectionHandle, contract_address: str, token_id: int):
        try:
            uri = self._token_uri(handle, contract_address, token_id)
        except TokenError as e:
            logger.warning(f"No token URI for token {token_id}: {e.message}")
            return None, None
        try:
            return uri, self.metadata.fetch(uri, token_address=contract_address)
        except TokenError as e:
            logger.warning(f"Metadata unavailable for token {token_id}: {e.message}")
            return uri, None

    def _check_owner(self, handle: ConnectionHandle, contract_address: str, token_id: int, holder: str) -> None:
        owner = self._owner_of(handle, contract_address, token_id)
        if owner.lower() != holder.lower():
            raise TokenError(
                f"{holder} does not own token {token_id}",
                TokenErrorCode.INSUFFICIENT_BALANCE,
                token_address=contract_address,
                details={"owner": owner},
            )

    def transfer(
        self,
        contract_address: str,
        to_address: str,
        token_id: Any,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: Optional[Any] = None,
    ) -> TransactionOutcome:
        """
        Transfer a token owned by the signer with ``transferFrom``.

        Raises:
            TokenError: NOT_FOUND for a missing token, INSUFFICIENT_BALANCE if
                the signer does not own it, TRANSFER_FAILED if the send fails
        """
        try:
            validate_address(contract_address, "contractAddress")
            validate_address(to_address, "toAddress")
            token_id = validate_token_id(token_id)
            sender = self.signers.default_signer(signer).address
            handle = self.networks.resolve(network, chain_id)
            self._check_owner(handle, contract_address, token_id, sender)
            return self._send(
                contract_address, "transferFrom", [sender, to_address, token_id], handle, None, overrides, signer
            )
        except Exception as e:
            normalize_error(
                e, "transfer ERC721 NFT",
                {"contractAddress": contract_address, "toAddress": to_address, "tokenId": token_id},
            )

    def safe_transfer(
        self,
        contract_address: str,
        to_address: str,
        token_id: Any,
        data: str = "0x",
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: Optional[Any] = None,
    ) -> TransactionOutcome:
        """Transfer with ``safeTransferFrom``, which checks that a contract recipient accepts the token"""
        try:
            validate_address(contract_address, "contractAddress")
            validate_address(to_address, "toAddress")
            token_id = validate_token_id(token_id)
            data = validate_hex_data(data or "0x")
            sender = self.signers.default_signer(signer).address
            handle = self.networks.resolve(network, chain_id)
            self._check_owner(handle, contract_address, token_id, sender)
            return self._send(
                contract_address, "safeTransferFrom(address,address,uint256,bytes)",
                [sender, to_address, token_id, data], handle, None, overrides, signer,
            )
        except Exception as e:
            normalize_error(
                e, "safe transfer ERC721 NFT",
                {"contractAddress": contract_address, "toAddress": to_address, "tokenId": token_id},
            )
