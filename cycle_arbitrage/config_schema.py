"""
Configuration schema validation using Pydantic
"""

from typing import Annotated, List, Literal, Optional, Union

import base58
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def validate_mint_address(value: str) -> str:
    """Require a base58 string decoding to a 32-byte key."""
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise ValueError(f"Mint {value!r} is not valid base58: {e}") from e
    if len(raw) != 32:
        raise ValueError(f"Mint {value!r} decodes to {len(raw)} bytes, expected 32")
    return value


class CamelModel(BaseModel):
    """Accepts both snake_case names and the camelCase keys of pool exports."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenDefinition(CamelModel):
    """One side of a venue"""

    mint: str
    decimals: int = Field(ge=0, le=18, description="Decimal scale of the mint")
    symbol: str = ""

    @field_validator("mint")
    @classmethod
    def validate_mint(cls, v):
        return validate_mint_address(v)


class FeeFraction(CamelModel):
    """Fee as numerator/denominator"""

    numerator: int = Field(ge=0, default=0)
    denominator: int = Field(ge=0, default=1)

    @model_validator(mode="after")
    def validate_fraction(self):
        if self.numerator > 0 and self.denominator == 0:
            raise ValueError("Fee denominator cannot be zero")
        if self.numerator > self.denominator:
            raise ValueError("Fee numerator cannot exceed denominator")
        return self


class AmmFees(CamelModel):
    """AMM fee schedule: trade fee on input, owner fee on output"""

    trade_fee: FeeFraction = Field(default_factory=FeeFraction)
    owner_trade_fee: FeeFraction = Field(default_factory=FeeFraction)


class AmmDefinition(CamelModel):
    """Constant-product or stable-curve pool"""

    kind: Literal["amm"]
    address: str = Field(min_length=1)
    token_a: TokenDefinition
    token_b: TokenDefinition
    vault_a: str = Field(min_length=1, description="Token account holding token_a")
    vault_b: str = Field(min_length=1, description="Token account holding token_b")
    fees: AmmFees = Field(default_factory=AmmFees)
    curve_type: int = Field(ge=0, default=0)
    amp: Optional[int] = Field(ge=1, default=None)
    reserve_a: Optional[int] = Field(ge=0, default=None)
    reserve_b: Optional[int] = Field(ge=0, default=None)

    @model_validator(mode="after")
    def validate_reserves(self):
        if (self.reserve_a is None) != (self.reserve_b is None):
            raise ValueError("reserve_a and reserve_b must be given together")
        return self


class OrderDefinition(CamelModel):
    """Resting order in lot units"""

    price: int = Field(ge=1)
    quantity: int = Field(ge=1)
    order_id: int = Field(ge=0, lt=2**128)


class OrderBookDefinition(CamelModel):
    """Central limit order book market"""

    kind: Literal["order_book"]
    address: str = Field(min_length=1, description="Market account")
    bids: str = Field(min_length=1, description="Bids account")
    asks: str = Field(min_length=1, description="Asks account")
    base_token: TokenDefinition
    quote_token: TokenDefinition
    base_lot_size: int = Field(ge=1, default=1)
    quote_lot_size: int = Field(ge=1, default=1)
    taker_bps: int = Field(ge=0, le=10000, default=22)
    maker_rebate_bps: int = Field(ge=0, le=10000, default=3)
    initial_bids: List[OrderDefinition] = Field(default_factory=list)
    initial_asks: List[OrderDefinition] = Field(default_factory=list)


VenueDefinition = Annotated[
    Union[AmmDefinition, OrderBookDefinition], Field(discriminator="kind")
]


class SearchSettings(CamelModel):
    """Cycle search and halving policy"""

    start_mint: str
    notional: int = Field(ge=1, default=1_000_000, description="Fallback notional")
    max_hops: int = Field(ge=2, le=6, default=3)
    max_halvings: int = Field(ge=1, le=64, default=4)
    min_swap_amount: int = Field(ge=0, default=1_000_000)
    fee_pct: float = Field(ge=0, le=100, default=0, description="Process fee in %")
    min_profit_bps: float = Field(ge=0, default=0)

    @field_validator("start_mint")
    @classmethod
    def validate_start_mint(cls, v):
        return validate_mint_address(v)


class ScanConfig(CamelModel):
    """Complete scan configuration"""

    search: SearchSettings
    venue_files: List[str] = Field(default_factory=list)
    venues: List[VenueDefinition] = Field(default_factory=list)
    owner_token_account: Optional[str] = None
    accounts_snapshot: Optional[str] = None
    refresh_interval_sec: float = Field(ge=0, default=5.0)

    @model_validator(mode="after")
    def validate_venue_sources(self):
        if not self.venue_files and not self.venues:
            raise ValueError("At least one of venue_files or venues is required")
        return self
