"""
ERC1155 multi-token adapter.

Amounts are whole-unit decimal strings (precision 0).
"""
import logging
from typing import Any, List, Optional, Sequence

from eth_abi.exceptions import DecodingError
from web3 import Web3

from ..abi import decode_log, event_topic, find_event
from ..exceptions import TokenError, TokenErrorCode, ValidationError
from ..models import OwnedToken, TokenMetadata, TransactionOutcome
from ..normalizer import normalize_error
from ..provider import ConnectionHandle
from ..units import parse_units
from ..validation import (
    validate_address,
    validate_addresses,
    validate_amount,
    validate_hex_data,
    validate_token_id,
)
from .abis import ERC1155_ABI
from .base import Overrides, TokenAdapter
from .erc721 import address_topic
from .metadata import substitute_id

logger = logging.getLogger(__name__)

AMOUNT_PRECISION = 0


def _check_lengths(left: Sequence[Any], right: Sequence[Any], left_name: str, right_name: str) -> None:
    if len(left) != len(right):
        raise ValidationError(
            f"Invalid input format: {left_name} and {right_name} must have the same length "
            f"({len(left)} != {len(right)})"
        )


class ERC1155Adapter(TokenAdapter):
    """Reads and transfers ERC1155 tokens."""

    ABI = ERC1155_ABI

    def balance_of(
        self,
        contract_address: str,
        owner_address: str,
        token_id: Any,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> str:
        """Balance of one token id held by ``owner_address``"""
        try:
            validate_address(contract_address, "contractAddress")
            validate_address(owner_address, "ownerAddress")
            token_id = validate_token_id(token_id)
            handle = self.networks.resolve(network, chain_id)
            return str(self._read(handle, contract_address, "balanceOf", [owner_address, token_id]))
        except Exception as e:
            normalize_error(
                e, "get ERC1155 balance",
                {"contractAddress": contract_address, "ownerAddress": owner_address, "tokenId": token_id},
            )

    def _batch_balances(
        self, handle: ConnectionHandle, contract_address: str, owners: List[str], token_ids: List[int]
    ) -> List[int]:
        if not owners:
            return []
        balances = self._read(handle, contract_address, "balanceOfBatch", [owners, token_ids])
        return [int(b) for b in balances]

    def batch_balance_of(
        self,
        contract_address: str,
        owner_addresses: Sequence[str],
        token_ids: Sequence[Any],
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> List[str]:
        """
        Balances for (owner, token id) pairs, in input order.

        Raises:
            ValidationError: If the lists differ in length or an item is
                malformed (the item index is named), before any network call
        """
        try:
            validate_address(contract_address, "contractAddress")
            owners = validate_addresses(owner_addresses, "ownerAddresses")
            ids = [validate_token_id(t, f"tokenIds[{i}]") for i, t in enumerate(token_ids)]
            _check_lengths(owners, ids, "ownerAddresses", "tokenIds")
            if not owners:
                return []
            handle = self.networks.resolve(network, chain_id)
            return [str(b) for b in self._batch_balances(handle, contract_address, owners, ids)]
        except Exception as e:
            normalize_error(
                e, "get ERC1155 batch balances",
                {"contractAddress": contract_address, "ownerAddresses": owner_addresses, "tokenIds": token_ids},
            )

    def _uri(self, handle: ConnectionHandle, contract_address: str, token_id: int) -> str:
        return substitute_id(self._read(handle, contract_address, "uri", [token_id]), token_id)

    def get_metadata(
        self,
        contract_address: str,
        token_id: Any,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> TokenMetadata:
        """Resolve ``uri(id)`` (with ``{id}`` substitution) and load the metadata document"""
        try:
            validate_address(contract_address, "contractAddress")
            token_id = validate_token_id(token_id)
            handle = self.networks.resolve(network, chain_id)
            return self.metadata.fetch(self._uri(handle, contract_address, token_id), token_address=contract_address)
        except Exception as e:
            normalize_error(e, "get ERC1155 metadata", {"contractAddress": contract_address, "tokenId": token_id})

    def get_user_tokens(
        self,
        contract_address: str,
        owner_address: str,
        token_ids: Optional[Sequence[Any]] = None,
        include_metadata: bool = False,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> List[OwnedToken]:
        """
        Tokens with a non-zero balance for ``owner_address``.

        With ``token_ids`` only those ids are checked. Without them, candidate
        ids come from incoming TransferSingle and TransferBatch logs over the
        last ``log_scan_block_range`` blocks. At most ``max_owned_tokens``
        tokens are returned.
        """
        try:
            validate_address(contract_address, "contractAddress")
            validate_address(owner_address, "ownerAddress")
            if token_ids is not None:
                ids = [validate_token_id(t, f"tokenIds[{i}]") for i, t in enumerate(token_ids)]
            handle = self.networks.resolve(network, chain_id)
            if token_ids is None:
                ids = self._scan_candidates(handle, contract_address, owner_address)

            balances = self._batch_balances(handle, contract_address, [owner_address] * len(ids), ids)
            tokens = []
            for token_id, balance in zip(ids, balances):
                if balance == 0:
                    continue
                token = OwnedToken(token_id=str(token_id), balance=str(balance))
                if include_metadata:
                    token.token_uri, token.metadata = self._try_metadata(handle, contract_address, token_id)
                tokens.append(token)
                if len(tokens) >= self.networks.config.max_owned_tokens:
                    break
            return tokens
        except Exception as e:
            normalize_error(
                e, "get ERC1155 tokens of owner",
                {"contractAddress": contract_address, "ownerAddress": owner_address},
            )

    def _scan_candidates(self, handle: ConnectionHandle, contract_address: str, owner_address: str) -> List[int]:
        single = find_event(self.ABI, "TransferSingle")
        batch = find_event(self.ABI, "TransferBatch")
        head = handle.w3.eth.block_number
        from_block = max(0, head - self.networks.config.log_scan_block_range)
        logs = handle.w3.eth.get_logs({
            "address": Web3.to_checksum_address(contract_address),
            "topics": [[event_topic(single), event_topic(batch)], None, None, address_topic(owner_address)],
            "fromBlock": from_block,
            "toBlock": head,
        })

        candidates: List[int] = []
        for log in logs:
            first = Web3.to_hex(log["topics"][0]) if log.get("topics") else None
            event = single if first == event_topic(single) else batch
            try:
                args = decode_log(event, log["topics"], log.get("data"))
            except (ValueError, DecodingError):
                continue
            ids = [args["id"]] if event is single else args["ids"]
            for token_id in ids:
                if int(token_id) not in candidates:
                    candidates.append(int(token_id))
        return candidates

    def _try_metadata(self, handle: ConnectionHandle, contract_address: str, token_id: int):
        uri = None
        try:
            uri = self._uri(handle, contract_address, token_id)
            return uri, self.metadata.fetch(uri, token_address=contract_address)
        except TokenError as e:
            logger.warning(f"Metadata unavailable for token {token_id}: {e.message}")
            return uri, None

    def _check_balances(
        self, handle: ConnectionHandle, contract_address: str, holder: str, ids: List[int], amounts: List[int]
    ) -> None:
        balances = self._batch_balances(handle, contract_address, [holder] * len(ids), ids)
        for token_id, amount, balance in zip(ids, amounts, balances):
            if balance < amount:
                raise TokenError(
                    f"Insufficient balance of token {token_id}: {holder} holds {balance}, {amount} requested",
                    TokenErrorCode.INSUFFICIENT_BALANCE,
                    token_address=contract_address,
                    details={"tokenId": str(token_id), "balance": str(balance), "required": str(amount)},
                )

    def safe_transfer_from(
        self,
        contract_address: str,
        from_address: str,
        to_address: str,
        token_id: Any,
        amount: str,
        data: str = "0x",
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: Optional[Any] = None,
    ) -> TransactionOutcome:
        """
        Transfer ``amount`` of one token id.

        Raises:
            TokenError: INSUFFICIENT_BALANCE before broadcasting,
                TRANSFER_FAILED if the send fails
        """
        try:
            validate_address(contract_address, "contractAddress")
            validate_address(from_address, "fromAddress")
            validate_address(to_address, "toAddress")
            token_id = validate_token_id(token_id)
            wanted = parse_units(amount, AMOUNT_PRECISION)
            data = validate_hex_data(data or "0x")
            self.signers.default_signer(signer)
            handle = self.networks.resolve(network, chain_id)
            self._check_balances(handle, contract_address, from_address, [token_id], [wanted])
            return self._send(
                contract_address, "safeTransferFrom",
                [from_address, to_address, token_id, wanted, data], handle, None, overrides, signer,
            )
        except Exception as e:
            normalize_error(
                e, "safe transfer ERC1155 tokens",
                {
                    "contractAddress": contract_address,
                    "fromAddress": from_address,
                    "toAddress": to_address,
                    "tokenId": token_id,
                    "amount": amount,
                },
            )

    def safe_batch_transfer_from(
        self,
        contract_address: str,
        from_address: str,
        to_address: str,
        token_ids: Sequence[Any],
        amounts: Sequence[str],
        data: str = "0x",
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: Optional[Any] = None,
    ) -> TransactionOutcome:
        """
        Transfer several token ids in one transaction.

        Raises:
            ValidationError: If ``token_ids`` and ``amounts`` differ in length
                (before any network call)
            TokenError: INSUFFICIENT_BALANCE before broadcasting,
                TRANSFER_FAILED if the send fails
        """
        try:
            validate_address(contract_address, "contractAddress")
            validate_address(from_address, "fromAddress")
            validate_address(to_address, "toAddress")
            _check_lengths(token_ids, amounts, "tokenIds", "amounts")
            if not token_ids:
                raise ValidationError("Invalid input format: tokenIds must not be empty")
            ids = [validate_token_id(t, f"tokenIds[{i}]") for i, t in enumerate(token_ids)]
            wanted = [
                parse_units(validate_amount(a, f"amounts[{i}]"), AMOUNT_PRECISION) for i, a in enumerate(amounts)
            ]
            data = validate_hex_data(data or "0x")
            self.signers.default_signer(signer)
            handle = self.networks.resolve(network, chain_id)
            self._check_balances(handle, contract_address, from_address, ids, wanted)
            return self._send(
                contract_address, "safeBatchTransferFrom",
                [from_address, to_address, ids, wanted, data], handle, None, overrides, signer,
            )
        except Exception as e:
            normalize_error(
                e, "safe batch transfer ERC1155 tokens",
                {
                    "contractAddress": contract_address,
                    "fromAddress": from_address,
                    "toAddress": to_address,
                    "tokenIds": token_ids,
                    "amounts": amounts,
                },
            )
