"""PriceChangeAudit model."""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, TIMESTAMP, ForeignKey, Numeric, Index
from sqlalchemy.dialects.postgresql import UUID

from . import Base


class PriceChangeAudit(Base):
    """One row per applied price change. channel_id is NULL for the base (counter) price."""

    __tablename__ = "price_change_audit"
    __table_args__ = (
        Index("idx_price_change_audit_product", "product_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    channel_id = Column(UUID(as_uuid=True), ForeignKey("sales_channels.id", ondelete="SET NULL"))
    previous_price = Column(Numeric(10, 2), nullable=False)
    new_price = Column(Numeric(10, 2), nullable=False)
    source = Column(String(20), nullable=False)  # 'manual', 'target-margin', 'target-cmv', 'cost-impact'
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<PriceChangeAudit(product_id={self.product_id}, {self.previous_price} -> {self.new_price})>"
