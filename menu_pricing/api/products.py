"""Product costing and channel pricing endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from menu_pricing.database import get_db
from menu_pricing.schemas.costing import ProductCost, ProductInput
from menu_pricing.schemas.pricing import (
    ChannelQuote,
    ChannelSweep,
    PriceChangeRecord,
    PriceChangeRequest,
    PriceChangeResponse,
    ProductChannelSuggestions,
)
from menu_pricing.services.bom import aggregate_product_cost, group_product_lines
from menu_pricing.services.channel_pricing import (
    price_for_cmv,
    price_for_margin,
    price_metrics,
    suggest_channel_prices,
    sweep_channels,
)
from menu_pricing.services.cost_graph import resolve_ingredient_costs
from menu_pricing.services.errors import (
    CyclicCompositionError,
    InfeasibleCMVError,
    InfeasibleMarginError,
    InvalidCostError,
    InvalidPriceError,
)
from menu_pricing.services.snapshot import (
    apply_price_change,
    apply_scaled_price_change,
    get_pricing_config,
    load_bom_lines,
    load_channels,
    load_ingredients,
    load_product,
)

router = APIRouter(prefix="/products", tags=["products"])


def _get_product(db: Session, product_id: UUID) -> ProductInput:
    try:
        return load_product(db, product_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _product_cost(db: Session, product: ProductInput) -> ProductCost:
    """Cost a product fresh from current leaf ingredient costs."""
    ingredients = load_ingredients(db)
    lines = load_bom_lines(db)
    product_lines = group_product_lines(lines).get(product.id, [])

    try:
        resolution = resolve_ingredient_costs(
            ingredients, lines, only=[line.ingredient_id for line in product_lines]
        )
    except CyclicCompositionError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "cycle": [str(node) for node in e.cycle]},
        )

    nodes = {ing.id: ing for ing in ingredients}
    return aggregate_product_cost(product, product_lines, resolution, nodes)


def _no_cost(product: ProductInput) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=f"Product '{product.name}' has no cost; add BOM lines before pricing it",
    )


# ============================================================================
# Cost
# ============================================================================


@router.get("/{product_id}/cost", response_model=ProductCost)
def get_product_cost(
    product_id: UUID,
    db: Session = Depends(get_db),
):
    """Get the BOM cost breakdown for a product."""
    product = _get_product(db, product_id)
    return _product_cost(db, product)


# ============================================================================
# Channel pricing
# ============================================================================


@router.get("/{product_id}/channels", response_model=ChannelSweep)
def get_channel_sweep(
    product_id: UUID,
    margin: Optional[float] = Query(None, ge=0, lt=1, description="Same margin on every channel"),
    cmv: Optional[float] = Query(None, description="Same net CMV on every channel"),
    price: Optional[float] = Query(None, description="Same price on every channel"),
    db: Session = Depends(get_db),
):
    """Price a product on every active channel.

    With no query parameters the saved target margin is used.
    """
    product = _get_product(db, product_id)
    cost = _product_cost(db, product)
    config = get_pricing_config(db)

    try:
        return sweep_channels(
            cost.unit_cost,
            load_channels(db),
            config,
            margin_rate=margin,
            cmv_rate=cmv,
            price=price,
        )
    except InvalidCostError:
        raise _no_cost(product)


@router.get("/{product_id}/quote", response_model=ChannelQuote)
def get_channel_quote(
    product_id: UUID,
    channel_id: Optional[UUID] = None,
    margin: Optional[float] = Query(None, ge=0, lt=1),
    cmv: Optional[float] = None,
    db: Session = Depends(get_db),
):
    """Price a product on one channel for a target margin or CMV.

    Omit channel_id for the counter channel, or no commission when none is
    set up. An unreachable target returns 422 with the nearest feasible value.
    """
    product = _get_product(db, product_id)
    cost = _product_cost(db, product)
    config = get_pricing_config(db)

    channels = load_channels(db)
    if channel_id is not None:
        channel = next((ch for ch in channels if ch.id == channel_id), None)
        if not channel:
            raise HTTPException(status_code=404, detail="Channel not found")
    else:
        channel = next((ch for ch in channels if ch.is_counter), None)
    commission = channel.commission_rate if channel else 0.0

    try:
        if cmv is not None:
            p = price_for_cmv(cost.unit_cost, cmv, commission)
        else:
            target = margin if margin is not None else config.target_margin_rate
            p = price_for_margin(cost.unit_cost, target, config.average_tax_rate, commission)
    except InvalidCostError:
        raise _no_cost(product)
    except InfeasibleMarginError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "max_feasible_margin": round(e.max_feasible_margin, 4)},
        )
    except InfeasibleCMVError as e:
        nearest = round(e.nearest_feasible_cmv, 4) if e.nearest_feasible_cmv is not None else None
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "nearest_feasible_cmv": nearest},
        )

    return ChannelQuote(
        channel_id=channel.id if channel else None,
        channel_name=channel.name if channel else "Counter",
        commission_rate=commission,
        is_counter=channel.is_counter if channel else True,
        price=p,
        metrics=price_metrics(p, cost.unit_cost, config.average_tax_rate, commission),
    )


@router.get("/{product_id}/channel-suggestions", response_model=ProductChannelSuggestions)
def get_channel_suggestions(
    product_id: UUID,
    db: Session = Depends(get_db),
):
    """Compare each channel's current price with the price that hits the target CMV."""
    product = _get_product(db, product_id)
    cost = _product_cost(db, product)

    try:
        return suggest_channel_prices(product, cost.unit_cost, load_channels(db), get_pricing_config(db))
    except InvalidCostError:
        raise _no_cost(product)


# ============================================================================
# Applying prices
# ============================================================================


@router.post("/{product_id}/prices", response_model=PriceChangeResponse)
def apply_product_price(
    product_id: UUID,
    data: PriceChangeRequest,
    db: Session = Depends(get_db),
):
    """Apply a new price to one channel, or to the base price with every channel scaled."""
    try:
        if data.apply_to_all_channels:
            audits = apply_scaled_price_change(db, product_id, data.new_price, data.source)
        else:
            audits = [apply_price_change(db, product_id, data.new_price, data.source, data.channel_id)]
    except InvalidPriceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    db.commit()
    return PriceChangeResponse(changes=[PriceChangeRecord.model_validate(a) for a in audits])
