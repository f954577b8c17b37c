"""Sale model (sales history lines, aggregated for menu engineering)."""
import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, TIMESTAMP, DATE, ForeignKey, Numeric, Index
from sqlalchemy.dialects.postgresql import UUID

from . import Base


class Sale(Base):
    """One sales line: quantity of a product sold on a given day."""

    __tablename__ = "sales"
    __table_args__ = (
        Index("idx_sales_product_date", "product_id", "sold_on"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"))
    channel_id = Column(UUID(as_uuid=True), ForeignKey("sales_channels.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    sold_on = Column(DATE, nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    def __repr__(self):
        return f"<Sale(product_id={self.product_id}, quantity={self.quantity})>"
