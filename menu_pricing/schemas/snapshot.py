"""The input snapshot every pricing computation runs on."""
from datetime import datetime

from pydantic import BaseModel

from menu_pricing.schemas.analysis import CostHistoryEntry, SalesAggregate
from menu_pricing.schemas.costing import BOMLine, IngredientNode, ProductInput
from menu_pricing.schemas.pricing import ChannelConfig, PricingConfig


class PricingSnapshot(BaseModel):
    """A consistent read of everything the core needs, taken at as_of."""

    as_of: datetime
    config: PricingConfig
    ingredients: list[IngredientNode] = []
    bom_lines: list[BOMLine] = []
    products: list[ProductInput] = []
    channels: list[ChannelConfig] = []
    sales: list[SalesAggregate] = []
    cost_history: list[CostHistoryEntry] = []
