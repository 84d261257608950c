"""Trading router — quoting, settlement, orders and trade history."""

from dataclasses import asdict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from rwa_platform.config import settings
from rwa_platform.database import get_db
from rwa_platform.models.order import Order
from rwa_platform.models.trade import Trade
from rwa_platform.models.user import User
from rwa_platform.schemas.trade import (
    OrderListResponse,
    OrderResponse,
    SettlementResponse,
    TradeExecuteRequest,
    TradeHistoryResponse,
    TradeQuoteResponse,
    TradeResponse,
)
from rwa_platform.middleware.auth import get_current_user
from rwa_platform.middleware.rate_limit import limiter
from rwa_platform.services import portfolio_service, trade_service

router = APIRouter(prefix="/api/trading", tags=["trading"])


def _to_trade_request(user: User, req: TradeExecuteRequest) -> trade_service.TradeRequest:
    return trade_service.TradeRequest(
        user_id=user.id,
        asset_id=req.asset_id,
        side=req.side,
        quantity=req.quantity,
        order_type=req.order_type,
        price=req.price,
    )


def _trade_to_response(t: Trade) -> TradeResponse:
    return TradeResponse(
        id=t.id,
        order_id=t.order_id,
        asset_id=t.asset_id,
        side=t.side,
        quantity=t.quantity,
        execution_price=t.execution_price,
        gross_value=t.gross_value,
        fee=t.fee,
        net_consideration=t.net_consideration,
        realized_pnl=t.realized_pnl,
        created_at=t.created_at.isoformat(),
    )


def _order_to_response(o: Order) -> OrderResponse:
    return OrderResponse(
        id=o.id,
        asset_id=o.asset_id,
        side=o.side,
        order_type=o.order_type,
        quantity=o.quantity,
        price=o.price,
        gross_value=o.gross_value,
        status=o.status,
        created_at=o.created_at.isoformat(),
    )


@router.post("/quote", response_model=TradeQuoteResponse)
def quote_trade(
    req: TradeExecuteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Price a proposed trade without settling it."""
    quote = trade_service.quote_trade(db, _to_trade_request(current_user, req))
    return TradeQuoteResponse(**asdict(quote))


@router.post("/execute", response_model=SettlementResponse, status_code=201)
@limiter.limit(settings.TRADE_RATE_LIMIT)
def execute_trade(
    request: Request,
    req: TradeExecuteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Settle a buy or sell. Ledger errors are mapped by the app's error handlers."""
    result = trade_service.settle_trade(db, _to_trade_request(current_user, req))
    return SettlementResponse(**asdict(result))


@router.get("/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[str] = Query(None),
    asset_id: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=portfolio_service.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get current user's order receipts."""
    page = portfolio_service.list_orders(
        db, current_user.id, status=status, asset_id=asset_id, limit=limit, offset=offset
    )
    return OrderListResponse(
        orders=[_order_to_response(o) for o in page["orders"]],
        pagination=page["pagination"],
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _order_to_response(portfolio_service.get_order(db, current_user.id, order_id))


@router.get("/history", response_model=TradeHistoryResponse)
def trade_history(
    side: Optional[str] = Query(None),
    asset_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(10, ge=1, le=portfolio_service.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get current user's trade history with aggregate stats."""
    history = portfolio_service.get_trade_history(
        db,
        current_user.id,
        side=side,
        asset_id=asset_id,
        start=start_date,
        end=end_date,
        limit=limit,
        offset=offset,
    )
    return TradeHistoryResponse(
        trades=[_trade_to_response(t) for t in history["trades"]],
        stats=history["stats"],
        pagination=history["pagination"],
    )
