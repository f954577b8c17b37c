"""Ingredient and IngredientCostHistory models."""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Boolean, Text, TIMESTAMP,
    ForeignKey, Numeric, Index
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from . import Base


class Ingredient(Base):
    """Purchased or composed ingredients with their current unit cost."""

    __tablename__ = "ingredients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    unit_of_measure = Column(String(20), nullable=False)  # 'kg', 'l', 'un', ...
    unit_cost = Column(Numeric(12, 4), nullable=False, default=0)  # Currency per unit_of_measure
    is_composed = Column(Boolean, nullable=False, default=False)  # Cost derives from its own BOM
    yield_quantity = Column(Numeric(10, 3), default=1)  # Units produced per batch (composed only)
    is_active = Column(Boolean, default=True)
    notes = Column(Text)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    cost_history = relationship("IngredientCostHistory", back_populates="ingredient")

    def __repr__(self):
        return f"<Ingredient(name='{self.name}', unit_cost={self.unit_cost})>"


class IngredientCostHistory(Base):
    """Track unit cost changes over time for impact analysis."""

    __tablename__ = "ingredient_cost_history"
    __table_args__ = (
        Index("idx_cost_history_lookup", "ingredient_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ingredient_id = Column(UUID(as_uuid=True), ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False)
    previous_cost = Column(Numeric(12, 4), nullable=False)
    new_cost = Column(Numeric(12, 4), nullable=False)
    source = Column(String(20))  # 'invoice', 'manual', 'recompute'
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    # Relationships
    ingredient = relationship("Ingredient", back_populates="cost_history")

    def __repr__(self):
        return f"<IngredientCostHistory(previous={self.previous_cost}, new={self.new_cost})>"
