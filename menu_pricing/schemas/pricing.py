"""Pydantic schemas for channels, pricing config, and channel pricing results."""
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from menu_pricing.services.money import Money, Rate


PriceChangeSource = Literal["manual", "target-margin", "target-cmv", "cost-impact"]


# ============================================================================
# Configuration
# ============================================================================


class PricingConfig(BaseModel):
    """Business-wide pricing targets, passed explicitly into every computation."""

    model_config = ConfigDict(from_attributes=True)

    target_margin_rate: float = Field(..., ge=0, lt=1, description="Target contribution margin, fraction of price")
    target_cmv_rate: float = Field(..., gt=0, lt=1, description="Target cost of goods, fraction of net revenue")
    average_tax_rate: float = Field(..., ge=0, lt=1, description="Tax remitted, fraction of price")


class PricingConfigResponse(PricingConfig):
    """Pricing config with its origin."""

    is_default: bool = False


class ChannelConfig(BaseModel):
    """A sales channel as seen by the solver."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    commission_rate: float = Field(default=0.0, ge=0, le=1)
    is_counter: bool = False


class ChannelCreate(BaseModel):
    """Schema for creating a sales channel."""

    name: str = Field(..., min_length=1, max_length=50)
    commission_rate: float = Field(default=0.0, ge=0, lt=1)
    is_counter: bool = False
    sort_order: int = 0


class ChannelResponse(ChannelConfig):
    """Sales channel response."""

    is_active: bool = True
    sort_order: int = 0


class ChannelList(BaseModel):
    """Schema for list of channels."""

    channels: list[ChannelResponse]
    count: int


# ============================================================================
# Solver results
# ============================================================================


class PriceMetrics(BaseModel):
    """Backward-mode metrics for a price on one channel."""

    price: Money
    unit_cost: Money
    tax_amount: Money = 0.0
    commission_amount: Money = 0.0
    profit: Money = 0.0
    margin: Rate = 0.0
    cmv_gross: Rate = 0.0
    cmv_net: Rate = 0.0


class ChannelQuote(BaseModel):
    """Result for one channel in a sweep."""

    channel_id: Optional[UUID] = None  # None for a counter with no channel row
    channel_name: str
    commission_rate: Rate
    is_counter: bool = False
    feasible: bool = True
    price: Optional[Money] = None
    metrics: Optional[PriceMetrics] = None
    max_feasible_margin: Optional[Rate] = None  # Set when the target margin is infeasible
    nearest_feasible_cmv: Optional[Rate] = None  # Set when the target CMV is infeasible


class ChannelSweep(BaseModel):
    """The same cost priced across every channel."""

    mode: Literal["margin", "cmv", "price"]
    unit_cost: Money
    tax_rate: Rate
    target: float  # Margin rate, CMV rate, or price depending on mode
    quotes: list[ChannelQuote] = []


class ChannelPriceSuggestion(BaseModel):
    """CMV-target price for one channel compared to the current channel price."""

    channel_id: UUID
    channel_name: str
    commission_rate: Rate
    is_counter: bool = False
    current_price: Money
    ideal_price: Optional[Money] = None
    difference: Money = 0.0
    difference_rate: Rate = 0.0
    current_cmv_net: Rate = 0.0
    feasible: bool = True
    needs_adjustment: bool = False


class ProductChannelSuggestions(BaseModel):
    """Per-channel price suggestions for a product."""

    product_id: UUID
    product_name: str
    unit_cost: Money
    target_cmv_rate: Rate
    channels: list[ChannelPriceSuggestion] = []
    needs_adjustment: bool = False


# ============================================================================
# Applying prices
# ============================================================================


class PriceChangeRequest(BaseModel):
    """Request to apply a new price to a product."""

    new_price: float
    channel_id: Optional[UUID] = Field(None, description="Channel to update; omit for the base (counter) price")
    source: PriceChangeSource = "manual"
    apply_to_all_channels: bool = Field(
        default=False,
        description="Scale every channel price by new_price / current base price",
    )


class PriceChangeRecord(BaseModel):
    """An applied price change (audit row)."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    channel_id: Optional[UUID] = None
    previous_price: Money
    new_price: Money
    source: str
    created_at: datetime


class PriceChangeResponse(BaseModel):
    """All audit rows written by one apply request."""

    changes: list[PriceChangeRecord] = []
