"""Order model — settlement receipt, one per trade, never mutated."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, event
from sqlalchemy.orm import relationship

from rwa_platform.database import Amount, Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    asset_id = Column(String(36), ForeignKey("assets.id"), nullable=False)
    side = Column(String(4), nullable=False)  # buy | sell
    order_type = Column(String(10), nullable=False)  # market | limit
    quantity = Column(Amount, nullable=False)
    price = Column(Amount, nullable=False)  # execution price
    gross_value = Column(Amount, nullable=False)
    # No partial fills or resting orders: always "filled" at creation
    status = Column(String(20), nullable=False, default="filled")
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = relationship("User", back_populates="orders")
    asset = relationship("Asset")
    trade = relationship("Trade", back_populates="order", uselist=False)


@event.listens_for(Order, "before_update")
def _reject_order_update(mapper, connection, target):
    raise RuntimeError(f"Order {target.id} is append-only and cannot be updated")


@event.listens_for(Order, "before_delete")
def _reject_order_delete(mapper, connection, target):
    raise RuntimeError(f"Order {target.id} is append-only and cannot be deleted")
