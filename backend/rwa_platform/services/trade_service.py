"""Trade service — quoting and settling trades against the position ledger.

The ledger exclusively owns the Position row for a (user, asset) pair;
nothing outside ``settle_trade`` mutates it.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from rwa_platform import pricing
from rwa_platform.config import settings
from rwa_platform.database import sum_amount, unit_of_work
from rwa_platform.errors import (
    InsufficientHoldingsError,
    InsufficientSupplyError,
    InvalidArgumentError,
    LedgerError,
    NotFoundError,
)
from rwa_platform.models.asset import Asset
from rwa_platform.models.order import Order
from rwa_platform.models.position import Position
from rwa_platform.models.trade import Trade
from rwa_platform.services import user_service

logger = logging.getLogger(__name__)

ORDER_FILLED = "filled"


@dataclass(frozen=True)
class TradeRequest:
    user_id: str
    asset_id: str
    side: str
    quantity: Any
    order_type: str = pricing.MARKET
    price: Any = None


@dataclass(frozen=True)
class ValidatedTrade:
    user_id: str
    asset_id: str
    side: str
    quantity: Decimal
    order_type: str
    limit_price: Optional[Decimal]


@dataclass(frozen=True)
class TradeQuote:
    asset_id: str
    side: str
    order_type: str
    quantity: Decimal
    execution_price: Decimal
    gross_value: Decimal
    fee: Decimal
    net_consideration: Decimal
    # Supply left for buys, shares owned for sells
    available_shares: Decimal


@dataclass(frozen=True)
class SettlementResult:
    order_id: str
    trade_id: str
    side: str
    execution_price: Decimal
    gross_value: Decimal
    fee: Decimal
    net_consideration: Decimal
    resulting_shares: Decimal
    average_cost: Optional[Decimal]  # None once the position is closed
    realized_pnl: Optional[Decimal]  # sells only


def _require_id(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{field} is required")
    return value.strip()


def validate_trade_request(request: TradeRequest) -> ValidatedTrade:
    """Check a request without touching the store.

    Market orders ignore any supplied price; limit orders need a positive one.
    """
    user_id = _require_id(request.user_id, "user_id")
    asset_id = _require_id(request.asset_id, "asset_id")

    if request.side not in pricing.SIDES:
        raise InvalidArgumentError(f"Invalid trade side: {request.side!r}. Expected 'buy' or 'sell'")
    if request.order_type not in pricing.ORDER_TYPES:
        raise InvalidArgumentError(
            f"Invalid order type: {request.order_type!r}. Expected 'market' or 'limit'"
        )

    quantity = pricing.require_positive(request.quantity, "quantity")

    limit_price = None
    if request.order_type == pricing.LIMIT:
        if request.price is None:
            raise InvalidArgumentError("Price is required for limit orders and must be positive")
        limit_price = pricing.require_positive(request.price, "price")

    return ValidatedTrade(
        user_id=user_id,
        asset_id=asset_id,
        side=request.side,
        quantity=quantity,
        order_type=request.order_type,
        limit_price=limit_price,
    )


def _as_decimal(value) -> Decimal:
    if value is None:
        return pricing.ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _get_asset(db: Session, asset_id: str, lock: bool = False) -> Asset:
    query = db.query(Asset).filter(Asset.id == asset_id)
    if lock:
        # Serializes settlements on this asset: supply and positions are read-modify-write
        query = query.with_for_update()
    asset = query.first()
    if not asset:
        raise NotFoundError("Asset not found", {"asset_id": asset_id})
    return asset


def sum_shares_held(db: Session, asset_id: str) -> Decimal:
    """Total shares of an asset held across all users."""
    held = db.query(sum_amount(db, Position.shares)).filter(Position.asset_id == asset_id).scalar()
    return _as_decimal(held)


def issuable_shares(asset: Asset, default_cap: Optional[int] = None) -> Decimal:
    if asset.total_issuable_shares is not None:
        return Decimal(asset.total_issuable_shares)
    cap = default_cap if default_cap is not None else settings.DEFAULT_ISSUABLE_SHARES
    return Decimal(cap)


def _get_position(db: Session, user_id: str, asset_id: str, lock: bool = False) -> Optional[Position]:
    query = db.query(Position).filter(Position.user_id == user_id, Position.asset_id == asset_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def _resolve_fee_rate(fee_rate) -> Decimal:
    rate = pricing.to_decimal(settings.TRADING_FEE_RATE if fee_rate is None else fee_rate, "fee_rate")
    if rate < 0 or rate >= 1:
        raise InvalidArgumentError("fee_rate must be in [0, 1)", {"fee_rate": rate})
    return rate


def _evaluate(db: Session, trade: ValidatedTrade, fee_rate: Decimal, default_cap: Optional[int], lock: bool):
    """Load collaborators, price the trade and run the supply/holdings checks.

    Returns (quote, position). Raises before anything is written.
    """
    user_service.get_user(db, trade.user_id)
    asset = _get_asset(db, trade.asset_id, lock=lock)

    if trade.order_type == pricing.MARKET:
        execution_price = _as_decimal(asset.current_price)
    else:
        execution_price = trade.limit_price

    gross, fee, net = pricing.consideration(trade.side, trade.quantity, execution_price, fee_rate)

    position = _get_position(db, trade.user_id, trade.asset_id, lock=lock)
    if trade.side == pricing.BUY:
        available = pricing.available_supply(
            issuable_shares(asset, default_cap), sum_shares_held(db, trade.asset_id)
        )
        if trade.quantity > available:
            raise InsufficientSupplyError(available, trade.quantity)
    else:
        available = _as_decimal(position.shares) if position else pricing.ZERO
        if trade.quantity > available:
            raise InsufficientHoldingsError(available, trade.quantity)

    quote = TradeQuote(
        asset_id=trade.asset_id,
        side=trade.side,
        order_type=trade.order_type,
        quantity=trade.quantity,
        execution_price=execution_price,
        gross_value=gross,
        fee=fee,
        net_consideration=net,
        available_shares=available,
    )
    return quote, position


def quote_trade(
    db: Session,
    request: TradeRequest,
    fee_rate=None,
    default_issuable_shares: Optional[int] = None,
) -> TradeQuote:
    """Price a proposed trade and run every check without writing anything."""
    trade = validate_trade_request(request)
    rate = _resolve_fee_rate(fee_rate)
    with unit_of_work(db):
        quote, _ = _evaluate(db, trade, rate, default_issuable_shares, lock=False)
    return quote


def settle_trade(
    db: Session,
    request: TradeRequest,
    fee_rate=None,
    default_issuable_shares: Optional[int] = None,
) -> SettlementResult:
    """Settle a trade with all validation and transactional safety.

    Steps:
    1. Validate the request (no store access)
    2. Lock the asset row, resolve the execution price, compute fee and consideration
    3. Check available supply (buy) or holdings (sell)
    4. Append the order receipt and the immutable trade record
    5. Create, update or delete the materialized position
    Steps 2-5 run in a single unit of work: all of it commits or none of it does.
    """
    try:
        trade = validate_trade_request(request)
        rate = _resolve_fee_rate(fee_rate)

        with unit_of_work(db):
            quote, position = _evaluate(db, trade, rate, default_issuable_shares, lock=True)

            order_id = str(uuid.uuid4())
            trade_id = str(uuid.uuid4())
            order = Order(
                id=order_id,
                user_id=trade.user_id,
                asset_id=trade.asset_id,
                side=trade.side,
                order_type=trade.order_type,
                quantity=trade.quantity,
                price=quote.execution_price,
                gross_value=quote.gross_value,
                status=ORDER_FILLED,
            )
            db.add(order)

            realized = None
            if trade.side == pricing.BUY:
                if position:
                    old_shares = _as_decimal(position.shares)
                    average_cost = pricing.average_cost_after_buy(
                        old_shares, _as_decimal(position.average_cost), trade.quantity, quote.net_consideration
                    )
                    position.shares = old_shares + trade.quantity
                    position.average_cost = average_cost
                else:
                    average_cost = pricing.average_cost_after_buy(
                        pricing.ZERO, pricing.ZERO, trade.quantity, quote.net_consideration
                    )
                    position = Position(
                        id=str(uuid.uuid4()),
                        user_id=trade.user_id,
                        asset_id=trade.asset_id,
                        shares=trade.quantity,
                        average_cost=average_cost,
                    )
                    db.add(position)
                resulting_shares = _as_decimal(position.shares)
            else:
                # Holdings check guarantees a position with enough shares
                average_cost = _as_decimal(position.average_cost)
                realized = pricing.realized_pnl(trade.quantity, quote.execution_price, average_cost, quote.fee)
                resulting_shares = _as_decimal(position.shares) - trade.quantity
                if resulting_shares > 0:
                    position.shares = resulting_shares
                else:
                    db.delete(position)
                    average_cost = None

            trade_row = Trade(
                id=trade_id,
                order_id=order_id,
                user_id=trade.user_id,
                asset_id=trade.asset_id,
                side=trade.side,
                quantity=trade.quantity,
                execution_price=quote.execution_price,
                gross_value=quote.gross_value,
                fee=quote.fee,
                net_consideration=quote.net_consideration,
                realized_pnl=realized,
            )
            db.add(trade_row)
    except LedgerError as e:
        logger.warning("Settlement rejected: %s (%s)", e.kind, e.message)
        raise

    logger.info(
        "Settled %s %s x %s @ %s for user %s (order %s)",
        trade.side, trade.asset_id, trade.quantity, quote.execution_price, trade.user_id, order_id,
    )
    return SettlementResult(
        order_id=order_id,
        trade_id=trade_id,
        side=trade.side,
        execution_price=quote.execution_price,
        gross_value=quote.gross_value,
        fee=quote.fee,
        net_consideration=quote.net_consideration,
        resulting_shares=resulting_shares,
        average_cost=average_cost,
        realized_pnl=realized,
    )
