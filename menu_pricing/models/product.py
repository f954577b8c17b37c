"""Product, BOMLine, and ProductChannelPrice models."""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Boolean, TIMESTAMP,
    ForeignKey, Numeric, UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from . import Base


class Product(Base):
    """Items sold to customers with a counter price and per-channel overrides."""

    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    category = Column(String(50))
    base_price = Column(Numeric(10, 2), nullable=False, default=0)  # Counter price
    unit_cost = Column(Numeric(12, 4))  # Cached rollup, derived from BOM
    yield_quantity = Column(Numeric(10, 3), nullable=False, default=1)  # Units per batch
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    channel_prices = relationship(
        "ProductChannelPrice", back_populates="product", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Product(name='{self.name}', base_price={self.base_price})>"


class BOMLine(Base):
    """Ingredient quantity used per batch of a product or composed ingredient.

    The owner is polymorphic: owner_type says whether owner_id points at
    products.id or ingredients.id.
    """

    __tablename__ = "bom_lines"
    __table_args__ = (
        UniqueConstraint("owner_type", "owner_id", "ingredient_id", name="uq_bom_lines"),
        Index("idx_bom_lines_owner", "owner_type", "owner_id"),
        Index("idx_bom_lines_ingredient", "ingredient_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_type = Column(String(20), nullable=False)  # 'product' or 'ingredient'
    owner_id = Column(UUID(as_uuid=True), nullable=False)
    ingredient_id = Column(UUID(as_uuid=True), ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False)
    quantity_per_batch = Column(Numeric(12, 4), nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    # Relationships
    ingredient = relationship("Ingredient")

    def __repr__(self):
        return f"<BOMLine(owner={self.owner_type}:{self.owner_id}, ingredient_id={self.ingredient_id})>"


class ProductChannelPrice(Base):
    """Per-channel price override. Missing rows fall back to Product.base_price."""

    __tablename__ = "product_channel_prices"
    __table_args__ = (
        UniqueConstraint("product_id", "channel_id", name="uq_product_channel_prices"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    channel_id = Column(UUID(as_uuid=True), ForeignKey("sales_channels.id", ondelete="CASCADE"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="channel_prices")
    channel = relationship("SalesChannel")

    def __repr__(self):
        return f"<ProductChannelPrice(product_id={self.product_id}, channel_id={self.channel_id}, price={self.price})>"
