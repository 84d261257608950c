"""User model — a wallet identity synced from the auth provider."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from rwa_platform.database import Base


class User(Base):
    __tablename__ = "users"

    # Stable identifier issued by the wallet-auth provider (e.g. "did:privy:...")
    id = Column(String(128), primary_key=True)
    wallet_address = Column(String(128), unique=True, nullable=True, index=True)
    email = Column(String(255), nullable=True)
    kyc_status = Column(String(20), nullable=False, default="pending")  # pending | approved | rejected
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    positions = relationship("Position", back_populates="user")
    orders = relationship("Order", back_populates="user")
    trades = relationship("Trade", back_populates="user")
    kyc_submissions = relationship("KycSubmission", back_populates="user")
