"""Menu engineering matrix.

Each product is placed on two axes relative to the rest of the menu:
contribution margin and trailing sales volume, split at the population
medians. The result is population-relative, so it is always recomputed as
one batch over a complete snapshot of the menu.
"""
import logging
import statistics
from typing import Iterable
from uuid import UUID

from menu_pricing.schemas.analysis import (
    QUADRANT_INFO,
    Health,
    MenuEngineeringResponse,
    MenuSummary,
    ProductAnalysis,
    Quadrant,
    QuadrantSummary,
    SalesAggregate,
)
from menu_pricing.schemas.costing import ProductCost, ProductInput
from menu_pricing.schemas.pricing import PricingConfig
from menu_pricing.services.channel_pricing import price_for_margin, price_metrics
from menu_pricing.services.errors import InfeasibleMarginError, InvalidCostError

logger = logging.getLogger(__name__)

# Margin below this share of the target needs attention
MARGIN_ATTENTION_FACTOR = 0.7
# CMV this far above target (in rate points) is critical
CMV_CRITICAL_TOLERANCE = 0.15


def median_or(values: list[float], fallback: float) -> float:
    """Median of values; fallback when there are fewer than two."""
    if len(values) <= 1:
        return fallback
    return statistics.median(values)


def classify_quadrant(
    margin: float,
    volume: float,
    median_margin: float,
    median_volume: float,
) -> Quadrant:
    """Place a product in the matrix. Ties go to the higher-performing side."""
    high_margin = margin >= median_margin
    high_volume = volume >= median_volume

    if high_margin and high_volume:
        return Quadrant.STAR
    if high_volume:
        return Quadrant.WORKHORSE
    if high_margin:
        return Quadrant.PUZZLE
    return Quadrant.DOG


def margin_health(margin: float, target_margin_rate: float) -> Health:
    if margin < 0:
        return Health.CRITICAL
    if margin < target_margin_rate * MARGIN_ATTENTION_FACTOR:
        return Health.ATTENTION
    return Health.HEALTHY


def cmv_health(cmv: float, target_cmv_rate: float) -> Health:
    if cmv > target_cmv_rate + CMV_CRITICAL_TOLERANCE:
        return Health.CRITICAL
    if cmv > target_cmv_rate:
        return Health.ATTENTION
    return Health.HEALTHY


def effective_price(product: ProductInput, sales: SalesAggregate | None) -> float:
    """Average price actually charged over the window, else the counter price.

    Keeps margin consistent with the revenue the product really brought in.
    """
    if sales and sales.quantity_sold > 0 and sales.revenue > 0:
        return sales.revenue / sales.quantity_sold
    return product.base_price


def _analyze_product(
    product: ProductInput,
    unit_cost: float,
    sales: SalesAggregate | None,
    config: PricingConfig,
) -> dict:
    price = effective_price(product, sales)
    metrics = price_metrics(price, unit_cost, config.average_tax_rate)
    # No price yet: treat the whole (missing) price as cost
    cmv = metrics.cmv_gross if price > 0 else 1.0

    suggested_price = None
    suggested_feasible = True
    max_margin = None
    try:
        suggested_price = price_for_margin(unit_cost, config.target_margin_rate, config.average_tax_rate)
    except InfeasibleMarginError as e:
        suggested_feasible = False
        max_margin = e.max_feasible_margin
    except InvalidCostError:
        suggested_feasible = False

    return {
        "product_id": product.id,
        "name": product.name,
        "category": product.category,
        "price": price,
        "unit_cost": unit_cost,
        "profit": metrics.profit,
        "margin_contribution": metrics.margin,
        "cmv": cmv,
        "quantity_sold": sales.quantity_sold if sales else 0,
        "revenue": sales.revenue if sales else 0.0,
        "margin_health": margin_health(metrics.margin, config.target_margin_rate),
        "cmv_health": cmv_health(cmv, config.target_cmv_rate),
        "suggested_price": suggested_price,
        "suggested_price_feasible": suggested_feasible,
        "max_feasible_margin": max_margin,
    }


def classify_menu(
    products: Iterable[ProductInput],
    product_costs: dict[UUID, ProductCost],
    sales: Iterable[SalesAggregate],
    config: PricingConfig,
) -> MenuEngineeringResponse:
    """
    Classify every costed product into the menu engineering matrix.

    Products without BOM lines are left out: with no cost there is no
    meaningful margin to compare.

    Args:
        products: The complete product snapshot
        product_costs: {product_id: ProductCost} from the BOM aggregator
        sales: Trailing-window sales per product (missing means 0 sold)
        config: Pricing targets

    Returns:
        MenuEngineeringResponse with per-product results and a summary
    """
    sales_by_product = {s.product_id: s for s in sales}

    rows = []
    for product in products:
        cost = product_costs.get(product.id)
        if cost is None or not cost.has_bom:
            continue
        rows.append(_analyze_product(product, cost.unit_cost, sales_by_product.get(product.id), config))

    median_margin = median_or([r["margin_contribution"] for r in rows], config.target_margin_rate)
    median_volume = median_or([r["quantity_sold"] for r in rows], 0)

    analyses = [
        ProductAnalysis(
            **row,
            quadrant=classify_quadrant(
                row["margin_contribution"], row["quantity_sold"], median_margin, median_volume
            ),
        )
        for row in rows
    ]

    logger.info(
        f"Classified {len(analyses)} products "
        f"(median margin {median_margin:.2%}, median volume {median_volume})"
    )

    return MenuEngineeringResponse(
        products=analyses,
        summary=summarize(analyses, median_margin, median_volume),
    )


def summarize(
    analyses: list[ProductAnalysis],
    median_margin: float,
    median_volume: float,
) -> MenuSummary:
    """Aggregate figures for the dashboard."""
    counts = {q: 0 for q in Quadrant}
    for a in analyses:
        counts[a.quadrant] += 1

    quadrants = [
        QuadrantSummary(quadrant=q, count=counts[q], **QUADRANT_INFO[q])
        for q in Quadrant
    ]

    if not analyses:
        return MenuSummary(
            median_margin=median_margin,
            median_volume=median_volume,
            quadrants=quadrants,
        )

    # Monthly gain if every under-priced product moved to its suggested price
    potential_revenue = 0.0
    for a in analyses:
        if a.suggested_price is None:
            continue
        gain = (a.suggested_price - a.price) * max(a.quantity_sold, 1)
        if gain > 0:
            potential_revenue += gain

    return MenuSummary(
        total_products=len(analyses),
        median_margin=median_margin,
        median_volume=median_volume,
        average_margin=sum(a.margin_contribution for a in analyses) / len(analyses),
        average_cmv=sum(a.cmv for a in analyses) / len(analyses),
        critical_count=sum(1 for a in analyses if a.margin_health == Health.CRITICAL),
        potential_revenue=potential_revenue,
        quadrants=quadrants,
        categories=sorted({a.category for a in analyses if a.category}),
    )
