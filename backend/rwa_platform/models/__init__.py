"""SQLAlchemy ORM models."""

from rwa_platform.models.user import User
from rwa_platform.models.asset import Asset
from rwa_platform.models.position import Position
from rwa_platform.models.order import Order
from rwa_platform.models.trade import Trade
from rwa_platform.models.kyc import KycSubmission, KycDocument

__all__ = [
    "User",
    "Asset",
    "Position",
    "Order",
    "Trade",
    "KycSubmission",
    "KycDocument",
]
