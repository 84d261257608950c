"""Asset model."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, Text
from sqlalchemy.orm import relationship

from rwa_platform.database import Amount, Base


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    symbol = Column(String(20), nullable=True, index=True)
    asset_type = Column(String(50), nullable=False)  # real_estate | art | commodity | ...
    description = Column(Text, nullable=True)
    current_price = Column(Amount, nullable=False)
    # NULL means the configured DEFAULT_ISSUABLE_SHARES cap applies
    total_issuable_shares = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    positions = relationship("Position", back_populates="asset")
    trades = relationship("Trade", back_populates="asset")
