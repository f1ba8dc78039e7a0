from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from storefront.data.database import Base


class InventoryAdjustmentModel(Base):
    __tablename__ = "inventory_adjustments"

    id = Column(Integer, primary_key=True)
    variant_id = Column(Integer, ForeignKey("variants.id", ondelete="CASCADE"), nullable=False, index=True)
    operation = Column(String(16), nullable=False)  # increment, decrement, set
    quantity = Column(Integer, nullable=False)
    stock_after = Column(Integer, nullable=False)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
