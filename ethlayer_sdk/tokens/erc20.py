"""
ERC20 fungible token adapter.
"""
import logging
from typing import Any, Optional

from ..exceptions import TokenError, TokenErrorCode
from ..models import FungibleInfo, TransactionOutcome
from ..normalizer import normalize_error
from ..provider import ConnectionHandle
from ..units import MAX_DECIMALS, format_units, parse_units
from ..validation import validate_address
from .abis import ERC20_ABI
from .base import Overrides, TokenAdapter

logger = logging.getLogger(__name__)


class ERC20Adapter(TokenAdapter):
    """
    Reads and transfers ERC20 tokens.

    Amounts are decimal strings in token units and are converted with the
    token's own ``decimals``.
    """

    ABI = ERC20_ABI

    def _decimals(self, handle: ConnectionHandle, token_address: str) -> int:
        decimals = int(self._read(handle, token_address, "decimals"))
        if decimals > MAX_DECIMALS:
            raise TokenError(
                f"Token declares {decimals} decimals; at most {MAX_DECIMALS} are supported",
                TokenErrorCode.INVALID_TOKEN,
                token_address=token_address,
                details={"decimals": str(decimals)},
            )
        return decimals

    def get_token_info(
        self,
        token_address: str,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> FungibleInfo:
        """
        Read name, symbol, decimals and total supply.

        Raises:
            TokenError: INVALID_TOKEN if the address is not an ERC20 contract
        """
        try:
            validate_address(token_address, "tokenAddress")
            handle = self.networks.resolve(network, chain_id)
            self._require_contract(handle, token_address)
            decimals = self._decimals(handle, token_address)
            return FungibleInfo(
                address=token_address,
                name=self._read(handle, token_address, "name"),
                symbol=self._read(handle, token_address, "symbol"),
                decimals=decimals,
                total_supply=format_units(self._read(handle, token_address, "totalSupply"), decimals),
            )
        except Exception as e:
            normalize_error(e, "get ERC20 token info", {"tokenAddress": token_address})

    def get_balance(
        self,
        token_address: str,
        owner_address: str,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> str:
        """Balance of ``owner_address`` in token units"""
        try:
            validate_address(token_address, "tokenAddress")
            validate_address(owner_address, "ownerAddress")
            handle = self.networks.resolve(network, chain_id)
            balance = self._read(handle, token_address, "balanceOf", [owner_address])
            return format_units(balance, self._decimals(handle, token_address))
        except Exception as e:
            normalize_error(e, "get ERC20 balance", {"tokenAddress": token_address, "ownerAddress": owner_address})

    def get_allowance(
        self,
        token_address: str,
        owner_address: str,
        spender_address: str,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> str:
        """Amount ``spender_address`` may move on behalf of ``owner_address``, in token units"""
        try:
            validate_address(token_address, "tokenAddress")
            validate_address(owner_address, "ownerAddress")
            validate_address(spender_address, "spenderAddress")
            handle = self.networks.resolve(network, chain_id)
            allowance = self._read(handle, token_address, "allowance", [owner_address, spender_address])
            return format_units(allowance, self._decimals(handle, token_address))
        except Exception as e:
            normalize_error(
                e, "get ERC20 allowance",
                {"tokenAddress": token_address, "ownerAddress": owner_address, "spenderAddress": spender_address},
            )

    def _check_balance(self, handle: ConnectionHandle, token_address: str, holder: str, wanted: int, amount: str) -> None:
        balance = int(self._read(handle, token_address, "balanceOf", [holder]))
        if balance < wanted:
            raise TokenError(
                f"Insufficient token balance: {holder} holds {balance} base units, {amount} requested",
                TokenErrorCode.INSUFFICIENT_BALANCE,
                token_address=token_address,
                details={"balance": str(balance), "required": str(wanted)},
            )

    def transfer(
        self,
        token_address: str,
        recipient_address: str,
        amount: str,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: Optional[Any] = None,
    ) -> TransactionOutcome:
        """
        Transfer tokens from the signer to ``recipient_address``.

        Raises:
            TokenError: INSUFFICIENT_BALANCE before broadcasting if the signer
                holds less than ``amount``; TRANSFER_FAILED if the send fails
        """
        try:
            validate_address(token_address, "tokenAddress")
            validate_address(recipient_address, "recipientAddress")
            sender = self.signers.default_signer(signer).address
            handle = self.networks.resolve(network, chain_id)
            wanted = parse_units(amount, self._decimals(handle, token_address))
            self._check_balance(handle, token_address, sender, wanted, amount)
            return self._send(
                token_address, "transfer", [recipient_address, wanted], handle, None, overrides, signer
            )
        except Exception as e:
            normalize_error(
                e, "transfer ERC20 tokens",
                {"tokenAddress": token_address, "recipientAddress": recipient_address, "amount": amount},
            )

    def approve(
        self,
        token_address: str,
        spender_address: str,
        amount: str,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: Optional[Any] = None,
    ) -> TransactionOutcome:
        """Allow ``spender_address`` to move up to ``amount`` of the signer's tokens"""
        try:
            validate_address(token_address, "tokenAddress")
            validate_address(spender_address, "spenderAddress")
            self.signers.default_signer(signer)
            handle = self.networks.resolve(network, chain_id)
            wanted = parse_units(amount, self._decimals(handle, token_address))
            return self._send(
                token_address, "approve", [spender_address, wanted], handle, None, overrides, signer
            )
        except Exception as e:
            normalize_error(
                e, "approve ERC20 tokens",
                {"tokenAddress": token_address, "spenderAddress": spender_address, "amount": amount},
            )

    def transfer_from(
        self,
        token_address: str,
        sender_address: str,
        recipient_address: str,
        amount: str,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
        overrides: Overrides = None,
        signer: Optional[Any] = None,
    ) -> TransactionOutcome:
        """
        Move tokens from ``sender_address`` using the signer's allowance.

        Raises:
            TokenError: INSUFFICIENT_ALLOWANCE or INSUFFICIENT_BALANCE before
                broadcasting; TRANSFER_FAILED if the send fails
        """
        try:
            validate_address(token_address, "tokenAddress")
            validate_address(sender_address, "senderAddress")
            validate_address(recipient_address, "recipientAddress")
            spender = self.signers.default_signer(signer).address
            handle = self.networks.resolve(network, chain_id)
            wanted = parse_units(amount, self._decimals(handle, token_address))

            allowance = int(self._read(handle, token_address, "allowance", [sender_address, spender]))
            if allowance < wanted:
                raise TokenError(
                    f"Insufficient allowance: {spender} may spend {allowance} base units of "
                    f"{sender_address}, {amount} requested",
                    TokenErrorCode.INSUFFICIENT_ALLOWANCE,
                    token_address=token_address,
                    details={"allowance": str(allowance), "required": str(wanted)},
                )
            self._check_balance(handle, token_address, sender_address, wanted, amount)
            return self._send(
                token_address, "transferFrom", [sender_address, recipient_address, wanted],
                handle, None, overrides, signer,
            )
        except Exception as e:
            normalize_error(
                e, "transfer ERC20 tokens from sender",
                {
                    "tokenAddress": token_address,
                    "senderAddress": sender_address,
                    "recipientAddress": recipient_address,
                    "amount": amount,
                },
            )
