"""SalesChannel and PricingConfig models."""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Boolean, Integer, TIMESTAMP, Numeric
from sqlalchemy.dialects.postgresql import UUID

from . import Base


class SalesChannel(Base):
    """Where products are sold: the counter or a delivery app with a commission."""

    __tablename__ = "sales_channels"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)
    commission_rate = Column(Numeric(5, 4), nullable=False, default=0)  # Fraction of price kept by the operator
    is_counter = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    def __repr__(self):
        return f"<SalesChannel(name='{self.name}', commission_rate={self.commission_rate})>"


class PricingConfig(Base):
    """Business-wide pricing targets. A single row; absent means defaults from Settings."""

    __tablename__ = "pricing_config"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    target_margin_rate = Column(Numeric(5, 4), nullable=False)
    target_cmv_rate = Column(Numeric(5, 4), nullable=False)
    average_tax_rate = Column(Numeric(5, 4), nullable=False)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return (
            f"<PricingConfig(margin={self.target_margin_rate}, cmv={self.target_cmv_rate}, "
            f"tax={self.average_tax_rate})>"
        )
