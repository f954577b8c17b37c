"""Ingredient cost resolution and BOM line endpoints."""
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from menu_pricing.database import get_db
from menu_pricing.models.ingredient import Ingredient
from menu_pricing.models.product import BOMLine as BOMLineRow, Product
from menu_pricing.schemas.costing import (
    BOMLine,
    BOMValidationRequest,
    BOMValidationResponse,
    IngredientCostResolution,
    IngredientCostsResponse,
    ResolvedIngredientCost,
)
from menu_pricing.services.bom import aggregate_all_products
from menu_pricing.services.cost_graph import find_cycle_for_new_line, resolve_ingredient_costs
from menu_pricing.services.errors import CyclicCompositionError
from menu_pricing.services.snapshot import (
    load_bom_lines,
    load_ingredients,
    load_products,
    persist_composed_costs,
    persist_product_costs,
)

router = APIRouter(prefix="/ingredients", tags=["ingredients"])


def _resolve(ingredients, lines) -> IngredientCostResolution:
    try:
        return resolve_ingredient_costs(ingredients, lines)
    except CyclicCompositionError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "cycle": [str(node) for node in e.cycle]},
        )


def _costs_response(ingredients, resolution, persisted=False, updated_count=0) -> IngredientCostsResponse:
    rows = []
    for ing in ingredients:
        resolved = resolution.cost_of(ing.id)
        rows.append(ResolvedIngredientCost(
            ingredient_id=ing.id,
            name=ing.name,
            unit_of_measure=ing.unit_of_measure,
            is_composed=ing.is_composed,
            stored_unit_cost=ing.unit_cost,
            resolved_unit_cost=resolved,
            changed=round(resolved, 4) != round(ing.unit_cost, 4),
        ))
    return IngredientCostsResponse(
        ingredients=rows,
        warnings=resolution.warnings,
        persisted=persisted,
        updated_count=updated_count,
    )


# ============================================================================
# Cost resolution
# ============================================================================


@router.get("/costs", response_model=IngredientCostsResponse)
def get_ingredient_costs(db: Session = Depends(get_db)):
    """Resolve every ingredient's unit cost without saving anything.

    Composed ingredients whose stored cost is stale come back with changed=True.
    """
    ingredients = load_ingredients(db)
    resolution = _resolve(ingredients, load_bom_lines(db))
    return _costs_response(ingredients, resolution)


@router.post("/costs/recompute", response_model=IngredientCostsResponse)
def recompute_ingredient_costs(db: Session = Depends(get_db)):
    """Resolve and store composed ingredient costs and cached product costs."""
    ingredients = load_ingredients(db)
    lines = load_bom_lines(db)
    resolution = _resolve(ingredients, lines)

    updated = persist_composed_costs(db, resolution)
    nodes = {ing.id: ing for ing in ingredients}
    persist_product_costs(db, aggregate_all_products(load_products(db), lines, resolution, nodes))
    db.commit()

    return _costs_response(ingredients, resolution, persisted=True, updated_count=updated)


# ============================================================================
# BOM lines
# ============================================================================


def _as_line(data: BOMValidationRequest) -> BOMLine:
    return BOMLine(
        owner_id=data.owner_id,
        owner_type=data.owner_type,
        ingredient_id=data.ingredient_id,
        quantity_per_batch=data.quantity_per_batch,
    )


@router.post("/bom/validate", response_model=BOMValidationResponse)
def validate_bom_line(
    data: BOMValidationRequest,
    db: Session = Depends(get_db),
):
    """Check whether a BOM line can be saved without creating a composition cycle."""
    ingredients = load_ingredients(db)
    cycle = find_cycle_for_new_line(ingredients, load_bom_lines(db), _as_line(data))
    if cycle is None:
        return BOMValidationResponse(valid=True)

    names = {ing.id: ing.name for ing in ingredients}
    path = " -> ".join(names.get(node, str(node)) for node in cycle)
    return BOMValidationResponse(valid=False, cycle=cycle, detail=f"Circular composition: {path}")


@router.post("/bom", response_model=BOMLine, status_code=201)
def create_bom_line(
    data: BOMValidationRequest,
    db: Session = Depends(get_db),
):
    """Add an ingredient line to a product or a composed ingredient.

    Adding a line to an ingredient marks it as composed.
    """
    ingredient = db.query(Ingredient).filter(Ingredient.id == data.ingredient_id).first()
    if not ingredient:
        raise HTTPException(status_code=400, detail="Ingredient not found")

    if data.owner_type == "product":
        owner = db.query(Product).filter(Product.id == data.owner_id).first()
        if not owner:
            raise HTTPException(status_code=404, detail="Product not found")
    else:
        owner = db.query(Ingredient).filter(Ingredient.id == data.owner_id).first()
        if not owner:
            raise HTTPException(status_code=404, detail="Ingredient not found")

    existing = (
        db.query(BOMLineRow)
        .filter(
            BOMLineRow.owner_type == data.owner_type,
            BOMLineRow.owner_id == data.owner_id,
            BOMLineRow.ingredient_id == data.ingredient_id,
        )
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="Ingredient already in BOM")

    cycle = find_cycle_for_new_line(load_ingredients(db), load_bom_lines(db), _as_line(data))
    if cycle is not None:
        raise HTTPException(
            status_code=409,
            detail={"message": "Circular composition detected", "cycle": [str(node) for node in cycle]},
        )

    db.add(BOMLineRow(
        owner_type=data.owner_type,
        owner_id=data.owner_id,
        ingredient_id=data.ingredient_id,
        quantity_per_batch=Decimal(str(data.quantity_per_batch)),
    ))
    if data.owner_type == "ingredient":
        owner.is_composed = True
    db.commit()

    return _as_line(data)
