"""Position and portfolio schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class PositionResponse(BaseModel):
    id: str
    asset_id: str
    asset_name: str
    asset_symbol: Optional[str]
    shares: Decimal
    average_cost: Decimal
    current_price: Decimal
    cost_basis: Decimal
    market_value: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal


class AssetPerformance(BaseModel):
    asset_id: str
    asset_name: str
    profit_loss: Decimal
    profit_loss_percent: Decimal


class AssetAllocation(BaseModel):
    asset_id: str
    asset_name: str
    shares: Decimal
    current_value: Decimal
    percentage: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal


class PortfolioStatsResponse(BaseModel):
    total_value: Decimal
    total_cost: Decimal
    total_profit_loss: Decimal
    total_profit_loss_percent: Decimal
    total_shares: Decimal
    assets_count: int
    top_performing_asset: Optional[AssetPerformance] = None
    worst_performing_asset: Optional[AssetPerformance] = None
    asset_allocation: list[AssetAllocation]
