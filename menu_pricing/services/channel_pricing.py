"""Channel pricing algebra.

Every channel is priced with the same linear model. For unit cost C, tax rate
t and channel commission f, a price P leaves

    profit = P - C - P*t - P*f

Forward solving picks P from a target margin or a target CMV; backward
solving turns a price into margin, CMV and profit. Fixed costs are not part
of the unit price: they are covered by the sum of contribution margins.

All functions are pure and return unrounded floats. Rounding to cents happens
when results are serialized (see money.py).
"""
import logging
from typing import Iterable

from menu_pricing.schemas.costing import ProductInput
from menu_pricing.schemas.pricing import (
    ChannelConfig,
    ChannelPriceSuggestion,
    ChannelQuote,
    ChannelSweep,
    PriceMetrics,
    PricingConfig,
    ProductChannelSuggestions,
)
from menu_pricing.services.errors import (
    InfeasibleCMVError,
    InfeasibleMarginError,
    InvalidCostError,
    InvalidPriceError,
)
from menu_pricing.services.money import ceil_money

logger = logging.getLogger(__name__)

# A price must leave at least 1% of itself to cover cost
MIN_COST_COVERAGE = 0.01
# Extra slack reserved when proposing the highest achievable margin
MIN_VIABLE_COST_RATIO = 0.05
# CMV targets are clamped into this range when proposing a feasible one
MIN_CMV_RATE = 0.01
MAX_CMV_RATE = 0.99
# Channel price suggestions flag gaps larger than this fraction of the current price
ADJUSTMENT_THRESHOLD = 0.05


# ============================================================================
# Forward: target -> price
# ============================================================================


def max_feasible_margin(tax_rate: float, commission_rate: float = 0.0) -> float:
    """Highest margin worth proposing on a channel: 1 - t - f - 5%, floored at 0."""
    return max(0.0, 1 - tax_rate - commission_rate - MIN_VIABLE_COST_RATIO)


def price_for_margin(
    unit_cost: float,
    margin_rate: float,
    tax_rate: float,
    commission_rate: float = 0.0,
) -> float:
    """
    Price that yields margin_rate after cost, tax and commission.

    P = C / (1 - m - t - f)

    Raises:
        InvalidCostError: unit_cost <= 0
        InfeasibleMarginError: the divisor is <= 0.01; carries the maximum
            feasible margin for this tax/commission pair
    """
    if unit_cost <= 0:
        raise InvalidCostError(unit_cost)

    divisor = 1 - margin_rate - tax_rate - commission_rate
    if divisor <= MIN_COST_COVERAGE:
        raise InfeasibleMarginError(margin_rate, max_feasible_margin(tax_rate, commission_rate))

    return unit_cost / divisor


def price_for_cmv(
    unit_cost: float,
    cmv_rate: float,
    commission_rate: float = 0.0,
) -> float:
    """
    Price at which cost is cmv_rate of the revenue left after commission.

    P = C / (cmv * (1 - f))

    Raises:
        InvalidCostError: unit_cost <= 0
        InfeasibleCMVError: cmv outside (0, 1), or the commission takes the
            whole price (nearest_feasible_cmv is None in that case)
    """
    if unit_cost <= 0:
        raise InvalidCostError(unit_cost)

    net_revenue_factor = 1 - commission_rate
    if net_revenue_factor <= 0:
        raise InfeasibleCMVError(cmv_rate, None)
    if not 0 < cmv_rate < 1:
        raise InfeasibleCMVError(cmv_rate, min(max(cmv_rate, MIN_CMV_RATE), MAX_CMV_RATE))

    return unit_cost / (cmv_rate * net_revenue_factor)


# ============================================================================
# Backward: price -> metrics
# ============================================================================


def price_metrics(
    price: float,
    unit_cost: float,
    tax_rate: float,
    commission_rate: float = 0.0,
    strict: bool = False,
) -> PriceMetrics:
    """
    Margin, CMV and profit for a price on one channel.

    A price <= 0 ("no price yet") returns zeroed metrics. Pass strict=True
    when validating a price the user is about to apply; it raises instead.
    """
    if price <= 0:
        if strict:
            raise InvalidPriceError(price)
        return PriceMetrics(price=0.0, unit_cost=unit_cost)

    tax_amount = price * tax_rate
    commission_amount = price * commission_rate
    profit = price - unit_cost - tax_amount - commission_amount
    net_revenue = price * (1 - commission_rate)

    return PriceMetrics(
        price=price,
        unit_cost=unit_cost,
        tax_amount=tax_amount,
        commission_amount=commission_amount,
        profit=profit,
        margin=profit / price,
        cmv_gross=unit_cost / price,
        cmv_net=unit_cost / net_revenue if net_revenue > 0 else 0.0,
    )


# ============================================================================
# Per-channel sweep
# ============================================================================


def _counter_first(channels: Iterable[ChannelConfig]) -> list[ChannelConfig]:
    return sorted(channels, key=lambda ch: not ch.is_counter)


def _quote(channel: ChannelConfig, **kwargs) -> ChannelQuote:
    return ChannelQuote(
        channel_id=channel.id,
        channel_name=channel.name,
        commission_rate=channel.commission_rate,
        is_counter=channel.is_counter,
        **kwargs,
    )


def sweep_channels(
    unit_cost: float,
    channels: Iterable[ChannelConfig],
    config: PricingConfig,
    margin_rate: float | None = None,
    cmv_rate: float | None = None,
    price: float | None = None,
) -> ChannelSweep:
    """
    Price one unit cost on every channel.

    Exactly one mode applies, in this precedence:
    - price: same price everywhere -> different margins per channel
    - cmv_rate: same net CMV everywhere -> different prices
    - margin_rate (default: config.target_margin_rate): same margin
      everywhere -> different prices

    All channels share config.average_tax_rate, so quotes differ only by
    commission. An infeasible channel gets feasible=False and the nearest
    feasible target instead of a price.

    Raises:
        InvalidCostError: unit_cost <= 0 in a forward (margin/CMV) mode
    """
    tax_rate = config.average_tax_rate
    channels = _counter_first(channels)

    if price is not None:
        quotes = [
            _quote(
                ch,
                price=price if price > 0 else None,
                feasible=price > 0,
                metrics=price_metrics(price, unit_cost, tax_rate, ch.commission_rate),
            )
            for ch in channels
        ]
        return ChannelSweep(mode="price", unit_cost=unit_cost, tax_rate=tax_rate, target=price, quotes=quotes)

    if unit_cost <= 0:
        raise InvalidCostError(unit_cost)

    if cmv_rate is not None:
        quotes = []
        for ch in channels:
            try:
                p = price_for_cmv(unit_cost, cmv_rate, ch.commission_rate)
            except InfeasibleCMVError as e:
                quotes.append(_quote(ch, feasible=False, nearest_feasible_cmv=e.nearest_feasible_cmv))
                continue
            quotes.append(_quote(ch, price=p, metrics=price_metrics(p, unit_cost, tax_rate, ch.commission_rate)))
        return ChannelSweep(mode="cmv", unit_cost=unit_cost, tax_rate=tax_rate, target=cmv_rate, quotes=quotes)

    if margin_rate is None:
        margin_rate = config.target_margin_rate

    quotes = []
    for ch in channels:
        try:
            p = price_for_margin(unit_cost, margin_rate, tax_rate, ch.commission_rate)
        except InfeasibleMarginError as e:
            logger.info(f"Margin {margin_rate:.2%} infeasible on channel {ch.name}")
            quotes.append(_quote(ch, feasible=False, max_feasible_margin=e.max_feasible_margin))
            continue
        quotes.append(_quote(ch, price=p, metrics=price_metrics(p, unit_cost, tax_rate, ch.commission_rate)))
    return ChannelSweep(mode="margin", unit_cost=unit_cost, tax_rate=tax_rate, target=margin_rate, quotes=quotes)


def suggest_channel_prices(
    product: ProductInput,
    unit_cost: float,
    channels: Iterable[ChannelConfig],
    config: PricingConfig,
) -> ProductChannelSuggestions:
    """
    Compare each channel's current price with the price that hits the CMV target.

    Ideal prices are rounded up to the cent. A channel needs adjustment when
    the gap exceeds 5% of its current price, or when it has no price at all.

    Raises:
        InvalidCostError: unit_cost <= 0 (no meaningful CMV)
    """
    if unit_cost <= 0:
        raise InvalidCostError(unit_cost)

    suggestions = []
    for ch in _counter_first(channels):
        current = product.price_for_channel(ch.id)
        current_cmv_net = (
            price_metrics(current, unit_cost, config.average_tax_rate, ch.commission_rate).cmv_net
            if current > 0 else 1.0
        )

        try:
            ideal = ceil_money(price_for_cmv(unit_cost, config.target_cmv_rate, ch.commission_rate))
        except InfeasibleCMVError:
            suggestions.append(ChannelPriceSuggestion(
                channel_id=ch.id,
                channel_name=ch.name,
                commission_rate=ch.commission_rate,
                is_counter=ch.is_counter,
                current_price=current,
                current_cmv_net=current_cmv_net,
                feasible=False,
            ))
            continue

        difference = ideal - current
        difference_rate = difference / current if current > 0 else 0.0
        suggestions.append(ChannelPriceSuggestion(
            channel_id=ch.id,
            channel_name=ch.name,
            commission_rate=ch.commission_rate,
            is_counter=ch.is_counter,
            current_price=current,
            ideal_price=ideal,
            difference=difference,
            difference_rate=difference_rate,
            current_cmv_net=current_cmv_net,
            needs_adjustment=current <= 0 or abs(difference_rate) > ADJUSTMENT_THRESHOLD,
        ))

    return ProductChannelSuggestions(
        product_id=product.id,
        product_name=product.name,
        unit_cost=unit_cost,
        target_cmv_rate=config.target_cmv_rate,
        channels=suggestions,
        needs_adjustment=any(s.needs_adjustment for s in suggestions),
    )
