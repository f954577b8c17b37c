"""Menu engineering and cost-change impact reports."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from menu_pricing.config import get_settings
from menu_pricing.database import get_db
from menu_pricing.schemas.analysis import CostImpactResponse, MenuEngineeringResponse
from menu_pricing.schemas.costing import IngredientCostResolution
from menu_pricing.schemas.snapshot import PricingSnapshot
from menu_pricing.services.bom import aggregate_all_products
from menu_pricing.services.cost_graph import resolve_ingredient_costs
from menu_pricing.services.cost_impact import analyze_cost_impact
from menu_pricing.services.errors import CyclicCompositionError
from menu_pricing.services.menu_engineering import classify_menu
from menu_pricing.services.snapshot import load_snapshot

router = APIRouter(prefix="/analysis", tags=["analysis"])


def _resolve(snapshot: PricingSnapshot) -> IngredientCostResolution:
    try:
        return resolve_ingredient_costs(snapshot.ingredients, snapshot.bom_lines)
    except CyclicCompositionError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "cycle": [str(node) for node in e.cycle]},
        )


@router.get("/menu-engineering", response_model=MenuEngineeringResponse)
def get_menu_engineering(
    days: Optional[int] = Query(None, ge=1, le=365, description="Sales window, defaults to SALES_WINDOW_DAYS"),
    db: Session = Depends(get_db),
):
    """Classify every costed product as star, workhorse, puzzle or dog."""
    snapshot = load_snapshot(db, sales_days=days)
    resolution = _resolve(snapshot)
    nodes = {ing.id: ing for ing in snapshot.ingredients}
    product_costs = aggregate_all_products(snapshot.products, snapshot.bom_lines, resolution, nodes)
    return classify_menu(snapshot.products, product_costs, snapshot.sales, snapshot.config)


@router.get("/cost-impact", response_model=CostImpactResponse)
def get_cost_impact(
    days: Optional[int] = Query(None, ge=1, le=365, description="History window, defaults to COST_HISTORY_WINDOW_DAYS"),
    db: Session = Depends(get_db),
):
    """Suggest price increases for products hit by recent ingredient cost increases."""
    snapshot = load_snapshot(db, history_days=days)
    resolution = _resolve(snapshot)
    window_days = days or get_settings().COST_HISTORY_WINDOW_DAYS
    return analyze_cost_impact(
        snapshot.products,
        snapshot.ingredients,
        snapshot.bom_lines,
        resolution,
        snapshot.cost_history,
        snapshot.channels,
        snapshot.config,
        as_of=snapshot.as_of,
        window_days=window_days,
    )
