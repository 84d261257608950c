"""Trade request/response schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TradeExecuteRequest(BaseModel):
    asset_id: str
    side: str  # buy | sell
    quantity: Decimal
    order_type: str = "market"  # market | limit
    price: Optional[Decimal] = None  # required for limit orders


class TradeQuoteResponse(BaseModel):
    asset_id: str
    side: str
    order_type: str
    quantity: Decimal
    execution_price: Decimal
    gross_value: Decimal
    fee: Decimal
    net_consideration: Decimal
    available_shares: Decimal


class SettlementResponse(BaseModel):
    order_id: str
    trade_id: str
    side: str
    execution_price: Decimal
    gross_value: Decimal
    fee: Decimal
    net_consideration: Decimal
    resulting_shares: Decimal
    average_cost: Optional[Decimal]
    realized_pnl: Optional[Decimal]


class TradeResponse(BaseModel):
    id: str
    order_id: str
    asset_id: str
    side: str
    quantity: Decimal
    execution_price: Decimal
    gross_value: Decimal
    fee: Decimal
    net_consideration: Decimal
    realized_pnl: Optional[Decimal]
    created_at: str


class OrderResponse(BaseModel):
    id: str
    asset_id: str
    side: str
    order_type: str
    quantity: Decimal
    price: Decimal
    gross_value: Decimal
    status: str
    created_at: str


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    pagination: Pagination


class TradingStats(BaseModel):
    total_volume: Decimal
    total_trades: int
    total_fees: Decimal
    avg_trade_size: Decimal
    buy_volume: Decimal
    sell_volume: Decimal
    realized_pnl: Decimal


class TradeHistoryResponse(BaseModel):
    trades: list[TradeResponse]
    stats: TradingStats
    pagination: Pagination
