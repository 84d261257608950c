"""Materialized position model — updated transactionally with each settlement.

A row exists only while shares > 0; closing a position deletes it.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from rwa_platform.database import Amount, Base


class Position(Base):
    __tablename__ = "positions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False)
    asset_id = Column(String(36), ForeignKey("assets.id"), nullable=False, index=True)
    shares = Column(Amount, nullable=False)
    average_cost = Column(Amount, nullable=False)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "asset_id", name="uq_position_user_asset"),
        CheckConstraint("CAST(shares AS REAL) > 0", name="ck_position_shares_positive"),
        CheckConstraint("CAST(average_cost AS REAL) >= 0", name="ck_position_average_cost"),
    )

    # Relationships
    user = relationship("User", back_populates="positions")
    asset = relationship("Asset", back_populates="positions")
