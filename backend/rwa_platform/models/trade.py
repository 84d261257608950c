"""Trade model — immutable audit record of every settlement."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, event
from sqlalchemy.orm import relationship

from rwa_platform.database import Amount, Base


class Trade(Base):
    __tablename__ = "trades"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, unique=True)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    asset_id = Column(String(36), ForeignKey("assets.id"), nullable=False)
    side = Column(String(4), nullable=False)  # buy | sell
    quantity = Column(Amount, nullable=False)
    execution_price = Column(Amount, nullable=False)
    gross_value = Column(Amount, nullable=False)
    fee = Column(Amount, nullable=False)
    net_consideration = Column(Amount, nullable=False)
    realized_pnl = Column(Amount, nullable=True)  # sells only
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    order = relationship("Order", back_populates="trade")
    user = relationship("User", back_populates="trades")
    asset = relationship("Asset", back_populates="trades")


@event.listens_for(Trade, "before_update")
def _reject_trade_update(mapper, connection, target):
    raise RuntimeError(f"Trade {target.id} is append-only and cannot be updated")


@event.listens_for(Trade, "before_delete")
def _reject_trade_delete(mapper, connection, target):
    raise RuntimeError(f"Trade {target.id} is append-only and cannot be deleted")
