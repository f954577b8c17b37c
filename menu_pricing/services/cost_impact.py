"""Ingredient cost increases -> suggested menu price increases.

Finds meaningful supplier cost increases in a trailing window, traces them
through the BOM (including composed ingredients) to the products that use
them, and proposes a new price that restores each product's margin ratio
from before the increase.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable
from uuid import UUID

from menu_pricing.schemas.analysis import (
    AffectedIngredient,
    ChannelPriceChange,
    CostHistoryEntry,
    CostImpactResponse,
    CostImpactSuggestion,
)
from menu_pricing.schemas.costing import (
    BOMLine,
    IngredientCostResolution,
    IngredientNode,
    ProductInput,
)
from menu_pricing.schemas.pricing import ChannelConfig, PricingConfig
from menu_pricing.services.bom import aggregate_all_products, group_product_lines
from menu_pricing.services.cost_graph import build_composition
from menu_pricing.services.money import ceil_money, round_money

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 60
# Increases at or below 5% are noise; above 50% are treated as data errors
NOISE_THRESHOLD = 0.05
ANOMALY_THRESHOLD = 0.50
# Products whose unit cost moved less than this (currency units) are left alone
MIN_COST_IMPACT = 0.05
MIN_PRICE_INCREASE = 0.01
# Absorbs float error in new/previous - 1 (2.10 / 2.00 - 1 = 0.05000000000000004)
_RATE_TOLERANCE = 1e-9


def variation_rate(entry: CostHistoryEntry) -> float | None:
    """new / previous - 1, or None when there is no previous cost."""
    if entry.previous_cost <= 0:
        return None
    return entry.new_cost / entry.previous_cost - 1


def is_meaningful_increase(rate: float | None) -> bool:
    """True for rates in (5%, 50%]."""
    if rate is None:
        return False
    return NOISE_THRESHOLD + _RATE_TOLERANCE < rate <= ANOMALY_THRESHOLD + _RATE_TOLERANCE


def recent_increases(
    history: Iterable[CostHistoryEntry],
    as_of: datetime,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> dict[UUID, float]:
    """
    Latest cost change per ingredient within the window, kept only if it is a
    meaningful increase.

    Returns:
        {ingredient_id: variation_rate}
    """
    cutoff = as_of - timedelta(days=window_days)

    latest: dict[UUID, CostHistoryEntry] = {}
    for entry in history:
        if not cutoff <= entry.timestamp <= as_of:
            continue
        current = latest.get(entry.ingredient_id)
        if current is None or entry.timestamp > current.timestamp:
            latest[entry.ingredient_id] = entry

    increases = {}
    for ingredient_id, entry in latest.items():
        rate = variation_rate(entry)
        if is_meaningful_increase(rate):
            increases[ingredient_id] = rate
        elif rate is not None and rate > ANOMALY_THRESHOLD:
            logger.warning(
                f"Ignoring {rate:.0%} cost increase for ingredient {ingredient_id}; looks like a data error"
            )
    return increases


def ingredient_impacts(
    ingredients: Iterable[IngredientNode],
    lines: Iterable[BOMLine],
    resolution: IngredientCostResolution,
    increases: dict[UUID, float],
) -> dict[UUID, float]:
    """
    Portion of each ingredient's current unit cost caused by the increases.

    For a purchased ingredient that rose by rate r, the part of today's cost
    c that is new is c * r / (1 + r). A composed ingredient inherits the
    impact of its lines, divided by its yield. Cost changes recorded directly
    on composed ingredients are ignored: their cost is derived.

    Returns:
        {ingredient_id: impact_per_unit} for ingredients with impact > 0
    """
    ingredients = list(ingredients)
    nodes = {ing.id: ing for ing in ingredients}
    composition = build_composition(ingredients, lines)

    impacts: dict[UUID, float] = {}
    for node_id in resolution.resolution_order:
        node = nodes[node_id]
        if not node.is_composed:
            rate = increases.get(node_id)
            if rate is not None:
                impacts[node_id] = resolution.cost_of(node_id) * rate / (1 + rate)
            continue

        batch_impact = sum(
            line.quantity_per_batch * impacts.get(line.ingredient_id, 0.0)
            for line in composition.get(node_id, [])
        )
        if batch_impact > 0:
            batch_yield = node.yield_quantity if node.yield_quantity > 0 else 1.0
            impacts[node_id] = batch_impact / batch_yield

    return impacts


def _effective_rate(ingredient_id: UUID, resolution: IngredientCostResolution, impact: float) -> float:
    """Variation implied by an impact on today's cost: impact / (cost - impact)."""
    prior = resolution.cost_of(ingredient_id) - impact
    return impact / prior if prior > 0 else 0.0


def suggest_price(current_price: float, unit_cost: float, cost_impact: float) -> tuple[float, float | None]:
    """
    New price that restores the margin ratio the product had before the increase.

    Returns:
        (unrounded suggested price, prior margin or None when it fell back)
    """
    prior_cost = unit_cost - cost_impact
    prior_margin = (current_price - prior_cost) / current_price
    if 0 < prior_margin < 1:
        return unit_cost / (1 - prior_margin), prior_margin
    return current_price + cost_impact, None


def analyze_cost_impact(
    products: Iterable[ProductInput],
    ingredients: Iterable[IngredientNode],
    lines: Iterable[BOMLine],
    resolution: IngredientCostResolution,
    history: Iterable[CostHistoryEntry],
    channels: Iterable[ChannelConfig],
    config: PricingConfig,
    as_of: datetime | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> CostImpactResponse:
    """
    Suggest price increases for products hit by recent ingredient cost increases.

    A product is skipped when its CMV (unit cost / base price) is already
    within target, when no BOM line is affected, or when the impact on its
    unit cost is under 0.05. The price increase is rounded up to the cent
    and dropped if under one cent.

    With more than one channel, every channel's current price is scaled by
    suggested / current base price, preserving the existing spread between
    channels.
    """
    as_of = as_of or datetime.utcnow()
    products = list(products)
    ingredients = list(ingredients)
    lines = list(lines)
    channels = list(channels)
    nodes = {ing.id: ing for ing in ingredients}

    increases = recent_increases(history, as_of, window_days)
    if not increases:
        return CostImpactResponse(window_days=window_days)

    impacts = ingredient_impacts(ingredients, lines, resolution, increases)
    product_lines = group_product_lines(lines)
    product_costs = aggregate_all_products(products, lines, resolution, nodes)

    suggestions: list[CostImpactSuggestion] = []
    for product in products:
        cost = product_costs[product.id]
        current_price = product.base_price
        if not cost.has_bom or current_price <= 0:
            continue

        unit_cost = cost.unit_cost
        if unit_cost / current_price <= config.target_cmv_rate:
            continue

        divisor = max(product.yield_quantity, 1)
        affected = [
            AffectedIngredient(
                ingredient_id=line.ingredient_id,
                ingredient_name=nodes[line.ingredient_id].name if line.ingredient_id in nodes else "Unknown",
                variation_rate=(
                    increases[line.ingredient_id]
                    if line.ingredient_id in increases
                    else _effective_rate(line.ingredient_id, resolution, impacts[line.ingredient_id])
                ),
                cost_impact=line.quantity_per_batch * impacts[line.ingredient_id] / divisor,
            )
            for line in product_lines.get(product.id, [])
            if impacts.get(line.ingredient_id, 0.0) > 0
        ]
        if not affected:
            continue

        cost_impact = sum(a.cost_impact for a in affected)
        if cost_impact < MIN_COST_IMPACT:
            continue

        raw_price, prior_margin = suggest_price(current_price, unit_cost, cost_impact)
        increase = raw_price - current_price
        if increase < MIN_PRICE_INCREASE:
            continue
        suggested = round_money(current_price + ceil_money(increase))
        factor = suggested / current_price

        channel_prices = []
        if len(channels) > 1:
            for ch in channels:
                channel_price = product.price_for_channel(ch.id)
                if channel_price <= 0:
                    continue
                channel_prices.append(ChannelPriceChange(
                    channel_id=ch.id,
                    channel_name=ch.name,
                    current_price=channel_price,
                    suggested_price=ceil_money(channel_price * factor),
                ))

        suggestions.append(CostImpactSuggestion(
            product_id=product.id,
            product_name=product.name,
            current_price=current_price,
            unit_cost=unit_cost,
            cost_impact=cost_impact,
            prior_cost=unit_cost - cost_impact,
            prior_margin=prior_margin,
            margin_erosion=cost_impact / current_price,
            suggested_price=suggested,
            price_increase=suggested - current_price,
            scale_factor=factor,
            affected_ingredients=sorted(affected, key=lambda a: a.cost_impact, reverse=True),
            channel_prices=channel_prices,
        ))

    suggestions.sort(key=lambda s: s.cost_impact, reverse=True)
    logger.info(f"{len(increases)} ingredient increases produced {len(suggestions)} price suggestions")

    return CostImpactResponse(
        window_days=window_days,
        suggestions=suggestions,
        total_cost_impact=sum(s.cost_impact for s in suggestions),
    )
