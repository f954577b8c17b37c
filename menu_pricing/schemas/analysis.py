"""Pydantic schemas for menu engineering and cost-change impact analysis."""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from menu_pricing.services.money import Money, Rate


class Quadrant(str, Enum):
    """Menu engineering matrix quadrants."""
    STAR = "star"  # High margin, high volume
    WORKHORSE = "workhorse"  # Low margin, high volume
    PUZZLE = "puzzle"  # High margin, low volume
    DOG = "dog"  # Low margin, low volume


class Health(str, Enum):
    """Health label for a margin or CMV figure."""
    HEALTHY = "healthy"
    ATTENTION = "attention"
    CRITICAL = "critical"


QUADRANT_INFO: dict[Quadrant, dict[str, str]] = {
    Quadrant.STAR: {
        "label": "Stars",
        "description": "High margin + high volume",
        "action": "Keep and feature",
    },
    Quadrant.WORKHORSE: {
        "label": "Workhorses",
        "description": "Low margin + high volume",
        "action": "Raise price",
    },
    Quadrant.PUZZLE: {
        "label": "Puzzles",
        "description": "High margin + low volume",
        "action": "Promote more",
    },
    Quadrant.DOG: {
        "label": "Dogs",
        "description": "Low margin + low volume",
        "action": "Rework or remove",
    },
}


# ============================================================================
# Inputs
# ============================================================================


class SalesAggregate(BaseModel):
    """Sales of one product over the trailing window."""

    product_id: UUID
    quantity_sold: float = Field(default=0, ge=0)
    revenue: float = Field(default=0, ge=0)


class CostHistoryEntry(BaseModel):
    """A recorded change to an ingredient's unit cost."""

    ingredient_id: UUID
    previous_cost: float
    new_cost: float
    timestamp: datetime


# ============================================================================
# Menu engineering
# ============================================================================


class ProductAnalysis(BaseModel):
    """Menu engineering result for one product."""

    product_id: UUID
    name: str
    category: Optional[str] = None
    price: Money
    unit_cost: Money
    profit: Money
    margin_contribution: Rate
    cmv: Rate
    quantity_sold: float = 0
    revenue: Money = 0.0
    quadrant: Quadrant
    margin_health: Health
    cmv_health: Health
    suggested_price: Optional[Money] = None
    suggested_price_feasible: bool = True
    max_feasible_margin: Optional[Rate] = None


class QuadrantSummary(BaseModel):
    """Count of products in one quadrant, with its recommended action."""

    quadrant: Quadrant
    label: str
    description: str
    action: str
    count: int = 0


class MenuSummary(BaseModel):
    """Population-wide figures for a classification run."""

    total_products: int = 0
    median_margin: Rate = 0.0
    median_volume: float = 0
    average_margin: Rate = 0.0
    average_cmv: Rate = 0.0
    critical_count: int = 0
    potential_revenue: Money = 0.0
    quadrants: list[QuadrantSummary] = []
    categories: list[str] = []


class MenuEngineeringResponse(BaseModel):
    """Full menu engineering response."""

    products: list[ProductAnalysis] = []
    summary: MenuSummary = MenuSummary()


# ============================================================================
# Cost-change impact
# ============================================================================


class AffectedIngredient(BaseModel):
    """An ingredient whose cost increase reaches a product."""

    ingredient_id: UUID
    ingredient_name: str
    variation_rate: Rate
    cost_impact: Money


class ChannelPriceChange(BaseModel):
    """Proposed new price on one channel."""

    channel_id: UUID
    channel_name: str
    current_price: Money
    suggested_price: Money


class CostImpactSuggestion(BaseModel):
    """A re-pricing suggestion preserving the product's prior margin."""

    product_id: UUID
    product_name: str
    current_price: Money
    unit_cost: Money
    cost_impact: Money
    prior_cost: Money
    prior_margin: Optional[Rate] = None
    margin_erosion: Rate = 0.0  # cost_impact / current_price
    suggested_price: Money
    price_increase: Money
    scale_factor: float = 1.0
    affected_ingredients: list[AffectedIngredient] = []
    channel_prices: list[ChannelPriceChange] = []


class CostImpactResponse(BaseModel):
    """Cost-change impact report."""

    window_days: int = 60
    suggestions: list[CostImpactSuggestion] = []
    total_cost_impact: Money = 0.0
