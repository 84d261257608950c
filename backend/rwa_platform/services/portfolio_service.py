"""Portfolio service — positions, portfolio statistics, trade history and orders.

Read-only views over the ledger. Unrealized P&L is marked against each
asset's current price; realized P&L comes from the values stored on sell
trades at settlement time.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from rwa_platform import pricing
from rwa_platform.database import sum_amount
from rwa_platform.errors import InvalidArgumentError, NotFoundError
from rwa_platform.models.asset import Asset
from rwa_platform.models.order import Order
from rwa_platform.models.position import Position
from rwa_platform.models.trade import Trade

MAX_PAGE_SIZE = 100


def _dec(value) -> Decimal:
    if value is None:
        return pricing.ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _check_page(limit: int, offset: int) -> None:
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise InvalidArgumentError(f"limit must be between 1 and {MAX_PAGE_SIZE}", {"limit": limit})
    if offset < 0:
        raise InvalidArgumentError("offset must be non-negative", {"offset": offset})


def _pagination(total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + limit < total,
    }


def get_user_positions(db: Session, user_id: str) -> list[dict]:
    """Get all open positions for a user with current prices and unrealized PnL."""
    rows = (
        db.query(Position, Asset)
        .join(Asset, Position.asset_id == Asset.id)
        .filter(Position.user_id == user_id)
        .order_by(Asset.name)
        .all()
    )

    result = []
    for pos, asset in rows:
        shares = _dec(pos.shares)
        average_cost = _dec(pos.average_cost)
        current_price = _dec(asset.current_price)
        pnl, pnl_pct = pricing.unrealized_pnl(shares, average_cost, current_price)
        result.append({
            "id": pos.id,
            "asset_id": asset.id,
            "asset_name": asset.name,
            "asset_symbol": asset.symbol,
            "shares": shares,
            "average_cost": average_cost,
            "current_price": current_price,
            "cost_basis": pricing.quantize(shares * average_cost),
            "market_value": pricing.quantize(shares * current_price),
            "unrealized_pnl": pnl,
            "unrealized_pnl_percent": pnl_pct,
            "updated_at": pos.updated_at,
        })
    return result


def get_portfolio_stats(db: Session, user_id: str) -> dict:
    """Aggregate a user's positions into totals, allocation and best/worst performers."""
    positions = get_user_positions(db, user_id)
    if not positions:
        return {
            "total_value": pricing.ZERO,
            "total_cost": pricing.ZERO,
            "total_profit_loss": pricing.ZERO,
            "total_profit_loss_percent": pricing.ZERO,
            "total_shares": pricing.ZERO,
            "assets_count": 0,
            "top_performing_asset": None,
            "worst_performing_asset": None,
            "asset_allocation": [],
        }

    total_value = sum((p["market_value"] for p in positions), pricing.ZERO)
    total_cost = sum((p["cost_basis"] for p in positions), pricing.ZERO)
    total_pnl = total_value - total_cost
    total_pnl_pct = (total_pnl / total_cost * 100) if total_cost > 0 else pricing.ZERO

    allocation = []
    for p in positions:
        share_of_value = (p["market_value"] / total_value * 100) if total_value > 0 else pricing.ZERO
        allocation.append({
            "asset_id": p["asset_id"],
            "asset_name": p["asset_name"],
            "shares": p["shares"],
            "current_value": p["market_value"],
            "percentage": pricing.quantize(share_of_value),
            "profit_loss": p["unrealized_pnl"],
            "profit_loss_percent": p["unrealized_pnl_percent"],
        })

    def _performer(p: dict) -> dict:
        return {
            "asset_id": p["asset_id"],
            "asset_name": p["asset_name"],
            "profit_loss": p["unrealized_pnl"],
            "profit_loss_percent": p["unrealized_pnl_percent"],
        }

    ranked = sorted(positions, key=lambda p: p["unrealized_pnl_percent"])
    return {
        "total_value": pricing.quantize(total_value),
        "total_cost": pricing.quantize(total_cost),
        "total_profit_loss": pricing.quantize(total_pnl),
        "total_profit_loss_percent": pricing.quantize(total_pnl_pct),
        "total_shares": sum((p["shares"] for p in positions), pricing.ZERO),
        "assets_count": len(positions),
        "top_performing_asset": _performer(ranked[-1]),
        "worst_performing_asset": _performer(ranked[0]),
        "asset_allocation": allocation,
    }


def _trade_stats(db: Session, query) -> dict:
    """Volume, fee and realized P&L totals over every trade the query matches."""
    rows = (
        query.with_entities(
            Trade.side,
            func.count(Trade.id),
            sum_amount(db, Trade.gross_value),
            sum_amount(db, Trade.fee),
            sum_amount(db, Trade.realized_pnl),
        )
        .group_by(Trade.side)
        .all()
    )

    volume = {pricing.BUY: pricing.ZERO, pricing.SELL: pricing.ZERO}
    total_trades = 0
    total_fees = pricing.ZERO
    realized = pricing.ZERO
    for side, count, gross, fees, pnl in rows:
        volume[side] = _dec(gross)
        total_trades += count
        total_fees += _dec(fees)
        realized += _dec(pnl)

    total_volume = volume[pricing.BUY] + volume[pricing.SELL]
    return {
        "total_volume": total_volume,
        "total_trades": total_trades,
        "total_fees": total_fees,
        "avg_trade_size": pricing.quantize(total_volume / total_trades) if total_trades else pricing.ZERO,
        "buy_volume": volume[pricing.BUY],
        "sell_volume": volume[pricing.SELL],
        "realized_pnl": realized,
    }


def get_trade_history(
    db: Session,
    user_id: str,
    side: Optional[str] = None,
    asset_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 10,
    offset: int = 0,
) -> dict:
    """Get a page of a user's trades (newest first) plus stats over every matching trade."""
    _check_page(limit, offset)
    if side is not None and side not in pricing.SIDES:
        raise InvalidArgumentError(f"Invalid trade side: {side!r}")
    if start and end and start > end:
        raise InvalidArgumentError("start must not be after end")

    query = db.query(Trade).filter(Trade.user_id == user_id)
    if side:
        query = query.filter(Trade.side == side)
    if asset_id:
        query = query.filter(Trade.asset_id == asset_id)
    if start:
        query = query.filter(Trade.created_at >= start)
    if end:
        query = query.filter(Trade.created_at <= end)

    stats = _trade_stats(db, query)
    trades = (
        query.order_by(Trade.created_at.desc(), Trade.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {
        "trades": trades,
        "stats": stats,
        "pagination": _pagination(stats["total_trades"], limit, offset),
    }


def list_orders(
    db: Session,
    user_id: str,
    status: Optional[str] = None,
    asset_id: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> dict:
    """Get a page of a user's order receipts, newest first."""
    _check_page(limit, offset)
    query = db.query(Order).filter(Order.user_id == user_id)
    if status and status != "all":
        query = query.filter(Order.status == status)
    if asset_id:
        query = query.filter(Order.asset_id == asset_id)

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"orders": orders, "pagination": _pagination(total, limit, offset)}


def get_order(db: Session, user_id: str, order_id: str) -> Order:
    """Get one of the user's orders; other users' orders are reported as missing."""
    order = db.query(Order).filter(Order.id == order_id, Order.user_id == user_id).first()
    if not order:
        raise NotFoundError("Order not found", {"order_id": order_id})
    return order
