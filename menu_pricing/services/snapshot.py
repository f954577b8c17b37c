"""Read a consistent pricing snapshot from the database and write results back.

The costing and pricing services never touch the database. Routes load a
snapshot here, run the pure computations, and use the write helpers to
persist what the user accepted. Write helpers flush but do not commit; the
caller owns the transaction.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from menu_pricing.config import get_settings
from menu_pricing.models.channel import PricingConfig as PricingConfigRow, SalesChannel
from menu_pricing.models.ingredient import Ingredient, IngredientCostHistory
from menu_pricing.models.price_audit import PriceChangeAudit
from menu_pricing.models.product import BOMLine as BOMLineRow, Product, ProductChannelPrice
from menu_pricing.models.sale import Sale
from menu_pricing.schemas.analysis import CostHistoryEntry, SalesAggregate
from menu_pricing.schemas.costing import (
    BOMLine,
    IngredientCostResolution,
    IngredientNode,
    ProductCost,
    ProductInput,
)
from menu_pricing.schemas.pricing import (
    ChannelConfig,
    PricingConfig,
    PricingConfigResponse,
)
from menu_pricing.schemas.snapshot import PricingSnapshot
from menu_pricing.services.errors import InvalidPriceError
from menu_pricing.services.money import ceil_money, to_decimal_money

logger = logging.getLogger(__name__)

COST_PLACES = Decimal("0.0001")


# ============================================================================
# Reads
# ============================================================================


def get_pricing_config(db: Session) -> PricingConfigResponse:
    """Saved pricing config, or the defaults from settings when none is saved."""
    row = db.query(PricingConfigRow).first()
    if row:
        return PricingConfigResponse(
            target_margin_rate=float(row.target_margin_rate),
            target_cmv_rate=float(row.target_cmv_rate),
            average_tax_rate=float(row.average_tax_rate),
            is_default=False,
        )

    settings = get_settings()
    return PricingConfigResponse(
        target_margin_rate=settings.DEFAULT_TARGET_MARGIN_RATE,
        target_cmv_rate=settings.DEFAULT_TARGET_CMV_RATE,
        average_tax_rate=settings.DEFAULT_AVERAGE_TAX_RATE,
        is_default=True,
    )


def load_ingredients(db: Session) -> list[IngredientNode]:
    """All ingredients, inactive included: BOM lines may still reference them."""
    return [
        IngredientNode(
            id=ing.id,
            name=ing.name,
            unit_of_measure=ing.unit_of_measure,
            unit_cost=float(ing.unit_cost or 0),
            is_composed=bool(ing.is_composed),
            yield_quantity=float(ing.yield_quantity) if ing.yield_quantity is not None else 1.0,
        )
        for ing in db.query(Ingredient).order_by(Ingredient.name).all()
    ]


def load_bom_lines(db: Session) -> list[BOMLine]:
    return [
        BOMLine(
            owner_id=line.owner_id,
            owner_type=line.owner_type,
            ingredient_id=line.ingredient_id,
            quantity_per_batch=float(line.quantity_per_batch),
        )
        for line in db.query(BOMLineRow).all()
    ]


def _to_product_input(product: Product) -> ProductInput:
    return ProductInput(
        id=product.id,
        name=product.name,
        category=product.category,
        base_price=float(product.base_price or 0),
        channel_prices={cp.channel_id: float(cp.price) for cp in product.channel_prices},
        yield_quantity=float(product.yield_quantity or 1),
    )


def load_products(db: Session, active_only: bool = True) -> list[ProductInput]:
    query = db.query(Product).options(joinedload(Product.channel_prices))
    if active_only:
        query = query.filter(Product.is_active == True)
    return [_to_product_input(p) for p in query.order_by(Product.name).all()]


def load_product(db: Session, product_id: UUID) -> ProductInput:
    product = (
        db.query(Product)
        .options(joinedload(Product.channel_prices))
        .filter(Product.id == product_id)
        .first()
    )
    if not product:
        raise ValueError(f"Product {product_id} not found")
    return _to_product_input(product)


def load_channels(db: Session) -> list[ChannelConfig]:
    channels = (
        db.query(SalesChannel)
        .filter(SalesChannel.is_active == True)
        .order_by(SalesChannel.sort_order, SalesChannel.name)
        .all()
    )
    return [
        ChannelConfig(
            id=ch.id,
            name=ch.name,
            commission_rate=float(ch.commission_rate or 0),
            is_counter=bool(ch.is_counter),
        )
        for ch in channels
    ]


def load_sales(db: Session, as_of: datetime, days: int) -> list[SalesAggregate]:
    """Quantity and revenue per product over the trailing window ending at as_of."""
    start = (as_of - timedelta(days=days)).date()
    rows = (
        db.query(
            Sale.product_id,
            func.sum(Sale.quantity).label("quantity_sold"),
            func.sum(Sale.total_amount).label("revenue"),
        )
        .filter(Sale.product_id != None)
        .filter(Sale.sold_on >= start)
        .filter(Sale.sold_on <= as_of.date())
        .group_by(Sale.product_id)
        .all()
    )
    return [
        SalesAggregate(
            product_id=row.product_id,
            quantity_sold=float(row.quantity_sold or 0),
            revenue=float(row.revenue or 0),
        )
        for row in rows
    ]


def load_cost_history(db: Session, as_of: datetime, days: int) -> list[CostHistoryEntry]:
    cutoff = as_of - timedelta(days=days)
    rows = (
        db.query(IngredientCostHistory)
        .filter(IngredientCostHistory.created_at >= cutoff)
        .filter(IngredientCostHistory.created_at <= as_of)
        .order_by(IngredientCostHistory.created_at)
        .all()
    )
    return [
        CostHistoryEntry(
            ingredient_id=row.ingredient_id,
            previous_cost=float(row.previous_cost),
            new_cost=float(row.new_cost),
            timestamp=row.created_at,
        )
        for row in rows
    ]


def load_snapshot(
    db: Session,
    as_of: datetime | None = None,
    sales_days: int | None = None,
    history_days: int | None = None,
) -> PricingSnapshot:
    """
    Read everything the core needs in one session.

    Windows default to SALES_WINDOW_DAYS and COST_HISTORY_WINDOW_DAYS.
    """
    settings = get_settings()
    as_of = as_of or datetime.utcnow()
    sales_days = sales_days or settings.SALES_WINDOW_DAYS
    history_days = history_days or settings.COST_HISTORY_WINDOW_DAYS

    config = get_pricing_config(db)
    return PricingSnapshot(
        as_of=as_of,
        config=PricingConfig(**config.model_dump(exclude={"is_default"})),
        ingredients=load_ingredients(db),
        bom_lines=load_bom_lines(db),
        products=load_products(db),
        channels=load_channels(db),
        sales=load_sales(db, as_of, sales_days),
        cost_history=load_cost_history(db, as_of, history_days),
    )


# ============================================================================
# Writes
# ============================================================================


def save_pricing_config(db: Session, config: PricingConfig) -> PricingConfigRow:
    row = db.query(PricingConfigRow).first()
    if row is None:
        row = PricingConfigRow()
        db.add(row)
    row.target_margin_rate = Decimal(str(config.target_margin_rate))
    row.target_cmv_rate = Decimal(str(config.target_cmv_rate))
    row.average_tax_rate = Decimal(str(config.average_tax_rate))
    db.flush()
    return row


def persist_composed_costs(db: Session, resolution: IngredientCostResolution) -> int:
    """
    Store recomputed unit costs of composed ingredients.

    Each change is also written to the cost history with source 'recompute'.

    Returns:
        Number of ingredients whose stored cost changed
    """
    if not resolution.composed_ids:
        return 0

    rows = db.query(Ingredient).filter(Ingredient.id.in_(resolution.composed_ids)).all()
    updated = 0
    for ing in rows:
        new_cost = Decimal(str(resolution.cost_of(ing.id))).quantize(COST_PLACES)
        old_cost = Decimal(str(ing.unit_cost or 0)).quantize(COST_PLACES)
        if new_cost == old_cost:
            continue

        db.add(IngredientCostHistory(
            ingredient_id=ing.id,
            previous_cost=old_cost,
            new_cost=new_cost,
            source="recompute",
        ))
        ing.unit_cost = new_cost
        updated += 1

    db.flush()
    logger.info(f"Updated unit cost of {updated} composed ingredients")
    return updated


def persist_product_costs(db: Session, product_costs: dict[UUID, ProductCost]) -> None:
    """Refresh the cached unit_cost on products."""
    if not product_costs:
        return
    for product in db.query(Product).filter(Product.id.in_(list(product_costs))).all():
        product.unit_cost = Decimal(str(product_costs[product.id].unit_cost)).quantize(COST_PLACES)
    db.flush()


def _record_change(
    db: Session,
    product_id: UUID,
    channel_id: UUID | None,
    previous_price: float,
    new_price: float,
    source: str,
) -> PriceChangeAudit:
    audit = PriceChangeAudit(
        product_id=product_id,
        channel_id=channel_id,
        previous_price=to_decimal_money(previous_price),
        new_price=to_decimal_money(new_price),
        source=source,
        created_at=datetime.utcnow(),
    )
    db.add(audit)
    return audit


def _set_channel_price(db: Session, product: Product, channel_id: UUID, price: float) -> float:
    """Upsert a channel override. Returns the price it replaced."""
    override = next((cp for cp in product.channel_prices if cp.channel_id == channel_id), None)
    if override is None:
        previous = float(product.base_price or 0)
        product.channel_prices.append(ProductChannelPrice(
            product_id=product.id,
            channel_id=channel_id,
            price=to_decimal_money(price),
        ))
        return previous

    previous = float(override.price)
    override.price = to_decimal_money(price)
    return previous


def _get_product(db: Session, product_id: UUID) -> Product:
    product = (
        db.query(Product)
        .options(joinedload(Product.channel_prices))
        .filter(Product.id == product_id)
        .first()
    )
    if not product:
        raise ValueError(f"Product {product_id} not found")
    return product


def apply_price_change(
    db: Session,
    product_id: UUID,
    new_price: float,
    source: str = "manual",
    channel_id: UUID | None = None,
) -> PriceChangeAudit:
    """
    Apply one price: the base (counter) price when channel_id is None,
    otherwise that channel's override. Writes one audit row.

    Raises:
        InvalidPriceError: new_price <= 0
        ValueError: unknown product or channel
    """
    if new_price <= 0:
        raise InvalidPriceError(new_price)
    product = _get_product(db, product_id)

    if channel_id is None:
        previous = float(product.base_price or 0)
        product.base_price = to_decimal_money(new_price)
    else:
        channel = db.query(SalesChannel).filter(SalesChannel.id == channel_id).first()
        if not channel:
            raise ValueError(f"Channel {channel_id} not found")
        previous = _set_channel_price(db, product, channel_id, new_price)

    audit = _record_change(db, product.id, channel_id, previous, new_price, source)
    db.flush()
    logger.info(f"Price of '{product.name}' changed {previous:.2f} -> {new_price:.2f} ({source})")
    return audit


def apply_scaled_price_change(
    db: Session,
    product_id: UUID,
    new_base_price: float,
    source: str = "manual",
) -> list[PriceChangeAudit]:
    """
    Apply a new base price and scale every channel override by the same factor.

    Channels without an override follow the base price automatically. Scaled
    overrides are rounded up to the cent.

    Raises:
        InvalidPriceError: new_base_price <= 0, or no current base price to scale from
        ValueError: unknown product
    """
    if new_base_price <= 0:
        raise InvalidPriceError(new_base_price)
    product = _get_product(db, product_id)

    current = float(product.base_price or 0)
    if current <= 0:
        raise InvalidPriceError(current)
    factor = new_base_price / current

    audits = [_record_change(db, product.id, None, current, new_base_price, source)]
    product.base_price = to_decimal_money(new_base_price)

    for override in product.channel_prices:
        previous = float(override.price)
        scaled = ceil_money(previous * factor)
        override.price = to_decimal_money(scaled)
        audits.append(_record_change(db, product.id, override.channel_id, previous, scaled, source))

    db.flush()
    logger.info(f"Scaled prices of '{product.name}' by {factor:.4f} across {len(audits)} entries ({source})")
    return audits
