"""Product cost from its bill of materials.

Uses unit costs already resolved by the cost graph, so composed ingredients
contribute their rolled-up cost.
"""
from typing import Iterable
from uuid import UUID

from menu_pricing.schemas.costing import (
    BOMLine,
    BOMLineCost,
    DataQualityWarning,
    IngredientCostResolution,
    IngredientNode,
    ProductCost,
    ProductInput,
)


def group_product_lines(lines: Iterable[BOMLine]) -> dict[UUID, list[BOMLine]]:
    """Group product-owned BOM lines by product id."""
    grouped: dict[UUID, list[BOMLine]] = {}
    for line in lines:
        if line.owner_type == "product":
            grouped.setdefault(line.owner_id, []).append(line)
    return grouped


def aggregate_product_cost(
    product: ProductInput,
    lines: list[BOMLine],
    resolution: IngredientCostResolution,
    ingredients: dict[UUID, IngredientNode] | None = None,
) -> ProductCost:
    """
    Calculate batch cost and per-unit cost for a product.

    unit_cost = batch_cost / max(yield_quantity, 1)

    A product with no BOM lines has unit_cost 0 and has_bom False; callers
    must leave it out of any view that divides by cost.
    """
    ingredients = ingredients or {}
    line_costs: list[BOMLineCost] = []
    warnings: list[DataQualityWarning] = []
    batch_cost = 0.0

    for line in lines:
        node = ingredients.get(line.ingredient_id)
        if node is None and ingredients:
            warnings.append(DataQualityWarning(
                code="missing_ingredient",
                message=f"'{product.name}' references unknown ingredient {line.ingredient_id}; counted as 0",
                ingredient_id=line.ingredient_id,
                owner_id=product.id,
            ))

        unit_cost = resolution.cost_of(line.ingredient_id)
        line_cost = line.quantity_per_batch * unit_cost
        batch_cost += line_cost

        line_costs.append(BOMLineCost(
            ingredient_id=line.ingredient_id,
            ingredient_name=node.name if node else "Unknown",
            unit_of_measure=node.unit_of_measure if node else "",
            is_composed=node.is_composed if node else False,
            quantity_per_batch=line.quantity_per_batch,
            unit_cost=unit_cost,
            line_cost=line_cost,
        ))

    if batch_cost > 0:
        for lc in line_costs:
            lc.share_of_cost = lc.line_cost / batch_cost

    return ProductCost(
        product_id=product.id,
        product_name=product.name,
        yield_quantity=product.yield_quantity,
        lines=line_costs,
        batch_cost=batch_cost,
        unit_cost=batch_cost / max(product.yield_quantity, 1),
        has_bom=len(lines) > 0,
        warnings=warnings,
    )


def aggregate_all_products(
    products: Iterable[ProductInput],
    lines: Iterable[BOMLine],
    resolution: IngredientCostResolution,
    ingredients: dict[UUID, IngredientNode] | None = None,
) -> dict[UUID, ProductCost]:
    """Cost every product in one pass. Returns {product_id: ProductCost}."""
    grouped = group_product_lines(lines)
    return {
        product.id: aggregate_product_cost(
            product, grouped.get(product.id, []), resolution, ingredients
        )
        for product in products
    }
