"""Asset request/response schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class AssetCreate(BaseModel):
    name: str
    asset_type: str  # real_estate | art | commodity | collectible | ...
    current_price: Decimal
    symbol: Optional[str] = None
    description: Optional[str] = None
    total_issuable_shares: Optional[int] = None


class AssetResponse(BaseModel):
    id: str
    name: str
    symbol: Optional[str]
    asset_type: str
    description: Optional[str]
    current_price: Decimal
    total_issuable_shares: Decimal  # effective cap, default applied
    shares_held: Decimal
    available_shares: Decimal
    created_at: str


class AssetListResponse(BaseModel):
    assets: list[AssetResponse]
    total: int
