"""Pydantic schemas for ingredient cost resolution and product BOM costing."""
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from menu_pricing.services.money import Money, Rate


# ============================================================================
# Graph inputs
# ============================================================================


class IngredientNode(BaseModel):
    """An ingredient as seen by the cost graph."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    unit_of_measure: str = "un"
    unit_cost: float = Field(default=0.0, ge=0, description="Currency per unit; derived when composed")
    is_composed: bool = False
    yield_quantity: float = Field(default=1.0, description="Units produced per batch (composed only)")


class BOMLine(BaseModel):
    """One ingredient line in a product's or composed ingredient's bill of materials."""

    model_config = ConfigDict(from_attributes=True)

    owner_id: UUID
    owner_type: Literal["product", "ingredient"] = "product"
    ingredient_id: UUID
    quantity_per_batch: float = Field(..., gt=0)


class ProductInput(BaseModel):
    """A sellable product with its counter price and channel overrides."""

    id: UUID
    name: str
    category: Optional[str] = None
    base_price: float = Field(default=0.0, ge=0, description="Counter price")
    channel_prices: dict[UUID, float] = Field(default_factory=dict, description="Channel id -> override price")
    yield_quantity: float = Field(default=1.0, description="Units produced per batch")

    def price_for_channel(self, channel_id: UUID | None) -> float:
        """Channel override when present, otherwise the base price."""
        if channel_id is None:
            return self.base_price
        return self.channel_prices.get(channel_id, self.base_price)


# ============================================================================
# Resolution results
# ============================================================================


class DataQualityWarning(BaseModel):
    """A non-fatal data problem found while computing. Never blocks a result."""

    code: str  # 'non_positive_yield', 'missing_ingredient', 'empty_composition'
    message: str
    ingredient_id: Optional[UUID] = None
    owner_id: Optional[UUID] = None


class IngredientCostResolution(BaseModel):
    """Resolved unit cost for every ingredient in the graph."""

    unit_costs: dict[UUID, float] = {}
    resolution_order: list[UUID] = []  # Leaves first
    composed_ids: list[UUID] = []
    warnings: list[DataQualityWarning] = []

    def cost_of(self, ingredient_id: UUID) -> float:
        return self.unit_costs.get(ingredient_id, 0.0)


class ResolvedIngredientCost(BaseModel):
    """Response row for a single resolved ingredient."""

    ingredient_id: UUID
    name: str
    unit_of_measure: str
    is_composed: bool
    stored_unit_cost: Money
    resolved_unit_cost: Money
    changed: bool = False


class IngredientCostsResponse(BaseModel):
    """Resolved costs for the whole ingredient set."""

    ingredients: list[ResolvedIngredientCost] = []
    warnings: list[DataQualityWarning] = []
    persisted: bool = False
    updated_count: int = 0


class BOMValidationRequest(BaseModel):
    """A BOM line the caller wants to save."""

    owner_id: UUID
    owner_type: Literal["product", "ingredient"] = "ingredient"
    ingredient_id: UUID
    quantity_per_batch: float = Field(default=1.0, gt=0)


class BOMValidationResponse(BaseModel):
    """Whether a BOM line can be saved without creating a cycle."""

    valid: bool
    cycle: list[UUID] = []
    detail: Optional[str] = None


# ============================================================================
# Product cost
# ============================================================================


class BOMLineCost(BaseModel):
    """Cost of a single BOM line."""

    ingredient_id: UUID
    ingredient_name: str
    unit_of_measure: str
    is_composed: bool = False
    quantity_per_batch: float
    unit_cost: Money
    line_cost: Money
    share_of_cost: Rate = 0.0


class ProductCost(BaseModel):
    """Batch and per-unit cost of a product."""

    product_id: UUID
    product_name: str
    yield_quantity: float
    lines: list[BOMLineCost] = []
    batch_cost: Money = 0.0
    unit_cost: Money = 0.0
    has_bom: bool = False
    warnings: list[DataQualityWarning] = []
