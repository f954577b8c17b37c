"""Test fixtures and configuration."""
import uuid
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from menu_pricing.models import Base
from menu_pricing.models.channel import SalesChannel
from menu_pricing.models.ingredient import Ingredient, IngredientCostHistory
from menu_pricing.models.product import BOMLine, Product, ProductChannelPrice
from menu_pricing.models.sale import Sale


@pytest.fixture(scope="function")
def engine():
    """Create an in-memory SQLite engine for testing."""
    # Use check_same_thread=False for compatibility with FastAPI TestClient
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=OFF")
        cursor.close()

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """Create a test database session."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------

def make_uuid():
    return uuid.uuid4()


def _dec(value):
    return Decimal(str(value))


@pytest.fixture
def ingredient_factory(db):
    """Factory to create test ingredients."""
    def _create(name="Test Ingredient", unit_cost=0, unit_of_measure="kg", **kwargs):
        ing = Ingredient(
            id=kwargs.pop("id", make_uuid()),
            name=name,
            unit_of_measure=unit_of_measure,
            unit_cost=_dec(unit_cost),
            is_composed=kwargs.pop("is_composed", False),
            yield_quantity=_dec(kwargs.pop("yield_quantity", 1)),
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(ing)
        db.flush()
        return ing
    return _create


@pytest.fixture
def product_factory(db):
    """Factory to create test products."""
    def _create(name="Test Product", base_price=10, **kwargs):
        product = Product(
            id=kwargs.pop("id", make_uuid()),
            name=name,
            base_price=_dec(base_price),
            yield_quantity=_dec(kwargs.pop("yield_quantity", 1)),
            is_active=kwargs.pop("is_active", True),
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
            **kwargs,
        )
        db.add(product)
        db.flush()
        return product
    return _create


@pytest.fixture
def bom_line_factory(db):
    """Factory to create BOM lines. The owner type follows the owner's model."""
    def _create(owner, ingredient, quantity_per_batch=1, **kwargs):
        line = BOMLine(
            id=kwargs.pop("id", make_uuid()),
            owner_type="ingredient" if isinstance(owner, Ingredient) else "product",
            owner_id=owner.id,
            ingredient_id=ingredient.id,
            quantity_per_batch=_dec(quantity_per_batch),
            **kwargs,
        )
        db.add(line)
        db.flush()
        return line
    return _create


@pytest.fixture
def channel_factory(db):
    """Factory to create sales channels."""
    def _create(name="Counter", commission_rate=0, **kwargs):
        channel = SalesChannel(
            id=kwargs.pop("id", make_uuid()),
            name=name,
            commission_rate=_dec(commission_rate),
            is_counter=kwargs.pop("is_counter", False),
            is_active=kwargs.pop("is_active", True),
            sort_order=kwargs.pop("sort_order", 0),
            **kwargs,
        )
        db.add(channel)
        db.flush()
        return channel
    return _create


@pytest.fixture
def channel_price_factory(db):
    """Factory to create per-channel price overrides."""
    def _create(product, channel, price):
        cp = ProductChannelPrice(
            id=make_uuid(),
            product_id=product.id,
            channel_id=channel.id,
            price=_dec(price),
        )
        db.add(cp)
        db.flush()
        db.refresh(product)
        return cp
    return _create


@pytest.fixture
def sale_factory(db):
    """Factory to create sales lines."""
    def _create(product, quantity=1, total_amount=None, sold_on=None, **kwargs):
        if total_amount is None:
            total_amount = quantity * product.base_price
        sale = Sale(
            id=kwargs.pop("id", make_uuid()),
            product_id=product.id,
            quantity=quantity,
            total_amount=_dec(total_amount),
            sold_on=sold_on or datetime.utcnow().date(),
            **kwargs,
        )
        db.add(sale)
        db.flush()
        return sale
    return _create


@pytest.fixture
def cost_history_factory(db):
    """Factory to create ingredient cost history entries."""
    def _create(ingredient, previous_cost, new_cost, created_at=None, **kwargs):
        entry = IngredientCostHistory(
            id=kwargs.pop("id", make_uuid()),
            ingredient_id=ingredient.id,
            previous_cost=_dec(previous_cost),
            new_cost=_dec(new_cost),
            source=kwargs.pop("source", "invoice"),
            created_at=created_at or datetime.utcnow(),
            **kwargs,
        )
        db.add(entry)
        db.flush()
        return entry
    return _create
