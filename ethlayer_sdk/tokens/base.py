"""
Shared plumbing for the token standard adapters.
"""
import logging
from typing import Any, Dict, Optional, Sequence, Union

from eth_abi.exceptions import DecodingError
from web3 import Web3

from ..abi import ABI, decode_output, encode_call, find_function
from ..exceptions import GenericError, ProviderError, TokenError, TokenErrorCode
from ..models import TransactionOutcome, TxOverrides
from ..provider import ConnectionHandle, NetworkResolver
from ..signer.resolver import SignerResolver
from ..transactions import TransactionOrchestrator
from .metadata import MetadataFetcher

logger = logging.getLogger(__name__)

Overrides = Optional[Union[TxOverrides, Dict[str, Any]]]


class TokenAdapter:
    """
    Base class for the ERC20, ERC721 and ERC1155 adapters.

    Reads go straight to ``eth_call`` on one resolved connection so that a
    multi-field read uses a single handle. Writes go through the
    TransactionOrchestrator.
    """

    ABI: ABI = []

    def __init__(
        self,
        networks: NetworkResolver,
        signers: SignerResolver,
        transactions: TransactionOrchestrator,
        metadata: Optional[MetadataFetcher] = None,
    ):
        self.networks = networks
        self.signers = signers
        self.transactions = transactions
        self.metadata = metadata

    def _read(self, handle: ConnectionHandle, address: str, method: str, args: Sequence[Any] = ()) -> Any:
        """
        Call a view function of the token ABI.

        Raises:
            TokenError: INVALID_TOKEN if the contract returns data that does not
                decode as the standard output (e.g. no contract at the address)
        """
        fn = find_function(self.ABI, method, args)
        raw = handle.w3.eth.call({"to": Web3.to_checksum_address(address), "data": encode_call(fn, args)})
        try:
            return decode_output(fn, raw)
        except DecodingError as e:
            raise TokenError(
                f"Contract at {address} returned an invalid response to {method}",
                TokenErrorCode.INVALID_TOKEN,
                token_address=address,
            ) from e

    def _require_contract(self, handle: ConnectionHandle, address: str) -> None:
        """
        Raises:
            TokenError: INVALID_TOKEN if no code is deployed at ``address``
        """
        code = handle.w3.eth.get_code(Web3.to_checksum_address(address))
        if not code:
            raise TokenError(
                f"No contract deployed at {address}", TokenErrorCode.INVALID_TOKEN, token_address=address
            )

    def _send(
        self,
        address: str,
        method: str,
        args: Sequence[Any],
        network: Optional[Any],
        chain_id: Optional[int],
        overrides: Overrides,
        signer: Optional[Any],
    ) -> TransactionOutcome:
        """
        Send a token write. Node and signing failures become TokenError
        TRANSFER_FAILED; validation and credential errors pass through.
        """
        try:
            return self.transactions.send_contract_transaction(
                address, self.ABI, method, list(args), "0",
                network=network, chain_id=chain_id, overrides=overrides, signer=signer,
            )
        except (ProviderError, GenericError) as e:
            raise TokenError(
                f"Token {method} failed: {e.message}",
                TokenErrorCode.TRANSFER_FAILED,
                token_address=address,
                details=e.details,
            ) from e
