"""
Data models for the EthLayer SDK.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .validation import ADDRESS_PATTERN, AMOUNT_PATTERN, HEX_DATA_PATTERN


class NativeCurrency(BaseModel):
    """Native currency of a network"""
    name: str
    symbol: str
    decimals: int = 18


class NetworkDescriptor(BaseModel):
    """A supported network as reported to callers"""
    name: str
    chain_id: Optional[int] = Field(None, alias="chainId")
    is_testnet: bool = Field(False, alias="isTestnet")
    is_default: bool = Field(False, alias="isDefault")
    native_currency: Optional[NativeCurrency] = Field(None, alias="nativeCurrency")

    model_config = ConfigDict(populate_by_name=True)


class TxOverrides(BaseModel):
    """
    Gas and nonce overrides for a state-changing call.

    Fee fields are gwei decimal strings. ``value`` is accepted so callers can
    pass a full transaction dict, but it is always recomputed from the amount
    given to the operation.
    """
    gas_limit: Optional[int] = Field(None, alias="gasLimit", ge=0)
    gas_price: Optional[str] = Field(None, alias="gasPrice", pattern=AMOUNT_PATTERN)
    max_fee_per_gas: Optional[str] = Field(None, alias="maxFeePerGas", pattern=AMOUNT_PATTERN)
    max_priority_fee_per_gas: Optional[str] = Field(
        None, alias="maxPriorityFeePerGas", pattern=AMOUNT_PATTERN
    )
    nonce: Optional[int] = Field(None, ge=0)
    value: Optional[Any] = None

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("gas_price", "max_fee_per_gas", "max_priority_fee_per_gas", mode="before")
    @classmethod
    def _gwei_text(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @model_validator(mode="after")
    def _check_fee_model(self) -> "TxOverrides":
        if self.gas_price is not None and (
            self.max_fee_per_gas is not None or self.max_priority_fee_per_gas is not None
        ):
            raise ValueError("gasPrice cannot be combined with maxFeePerGas or maxPriorityFeePerGas")
        return self


class TransactionRequest(TxOverrides):
    """A native value transfer, optionally carrying call data"""
    to: str = Field(..., pattern=ADDRESS_PATTERN)
    value: str = Field("0", pattern=AMOUNT_PATTERN)
    data: Optional[str] = Field(None, pattern=HEX_DATA_PATTERN)


class TransactionOutcome(BaseModel):
    """A broadcast transaction. Confirmation is not tracked."""
    hash: str
    from_address: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    value: str = "0"
    nonce: Optional[int] = None
    gas_limit: Optional[str] = Field(None, alias="gasLimit")
    gas_price: Optional[str] = Field(None, alias="gasPrice")
    max_fee_per_gas: Optional[str] = Field(None, alias="maxFeePerGas")
    max_priority_fee_per_gas: Optional[str] = Field(None, alias="maxPriorityFeePerGas")
    data: Optional[str] = None
    chain_id: Optional[int] = Field(None, alias="chainId")

    model_config = ConfigDict(populate_by_name=True)


class FungibleInfo(BaseModel):
    """ERC20 token descriptor"""
    address: str
    name: str
    symbol: str
    decimals: int
    total_supply: str = Field(..., alias="totalSupply")

    model_config = ConfigDict(populate_by_name=True)


class CollectionInfo(BaseModel):
    """ERC721 collection descriptor"""
    address: str
    name: str
    symbol: str
    total_supply: Optional[str] = Field(None, alias="totalSupply")

    model_config = ConfigDict(populate_by_name=True)


class TokenMetadata(BaseModel):
    """Off-chain token metadata document. Unknown fields are preserved."""
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    attributes: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    @field_validator("attributes", mode="before")
    @classmethod
    def _attributes_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, dict):
            return [{"trait_type": k, "value": val} for k, val in v.items()]
        return v


class OwnedToken(BaseModel):
    """A token held by an owner"""
    token_id: str = Field(..., alias="tokenId")
    balance: Optional[str] = None
    token_uri: Optional[str] = Field(None, alias="tokenURI")
    metadata: Optional[TokenMetadata] = None

    model_config = ConfigDict(populate_by_name=True)


class WalletInfo(BaseModel):
    """Address of the configured signer"""
    address: str
