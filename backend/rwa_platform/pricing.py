"""
Settlement arithmetic for fractional asset trades.

Pure functions over ``Decimal``; no database access.

Key formulas:
    Gross value:        gross = quantity * price
    Fee:                fee   = gross * fee_rate
    Net consideration:  net   = gross + fee   (buy)
                        net   = gross - fee   (sell)
    Average cost (buy): avg'  = (shares * avg + net) / (shares + quantity)
    Realized P&L (sell): pnl  = quantity * (price - avg) - fee

Fees are folded into the cost basis on buys so that the average cost
reflects what the holder actually paid per share.
"""

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Optional, Tuple

from rwa_platform.errors import InvalidArgumentError

# Matches the Amount columns (NUMERIC(28, 8))
SCALE = 8
QUANTUM = Decimal(1).scaleb(-SCALE)
ZERO = Decimal(0)
# Keeps quantity * price inside the column precision
MAX_AMOUNT = Decimal("1e10")

BUY = "buy"
SELL = "sell"
SIDES = (BUY, SELL)

MARKET = "market"
LIMIT = "limit"
ORDER_TYPES = (MARKET, LIMIT)


def to_decimal(value, field: str) -> Decimal:
    """Coerce a user-supplied number into a finite Decimal.

    Floats go through ``str`` so 0.1 stays 0.1 rather than its binary expansion.

    Raises:
        InvalidArgumentError: If the value is missing, boolean, non-numeric or
            not finite.
    """
    if value is None or isinstance(value, bool):
        raise InvalidArgumentError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidArgumentError(f"{field} must be finite")
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidArgumentError(f"{field} must be a number")
    if not result.is_finite():
        raise InvalidArgumentError(f"{field} must be finite")
    return result


def require_positive(value, field: str) -> Decimal:
    """Coerce and check ``value > 0`` with at most SCALE decimal places."""
    amount = to_decimal(value, field)
    if amount <= ZERO:
        raise InvalidArgumentError(f"{field} must be positive", {field: amount})
    if amount >= MAX_AMOUNT:
        raise InvalidArgumentError(f"{field} must be below {MAX_AMOUNT:f}", {field: amount})
    if amount != amount.quantize(QUANTUM, rounding=ROUND_HALF_EVEN):
        raise InvalidArgumentError(f"{field} supports at most {SCALE} decimal places", {field: amount})
    return amount


def quantize(value: Decimal) -> Decimal:
    return value.quantize(QUANTUM, rounding=ROUND_HALF_EVEN)


def consideration(side: str, quantity: Decimal, price: Decimal, fee_rate: Decimal) -> Tuple[Decimal, Decimal, Decimal]:
    """Return (gross_value, fee, net_consideration) for a trade.

    Args:
        side: "buy" or "sell".
        quantity: Shares traded (> 0).
        price: Execution price per share (> 0).
        fee_rate: Fraction of gross value charged as a fee.
    """
    if side not in SIDES:
        raise InvalidArgumentError(f"Invalid trade side: {side!r}")
    gross = quantity * price
    fee = gross * fee_rate
    net = gross + fee if side == BUY else gross - fee
    return quantize(gross), quantize(fee), quantize(net)


def average_cost_after_buy(
    old_shares: Decimal, old_average_cost: Decimal, quantity: Decimal, net_consideration: Decimal
) -> Decimal:
    """Volume-weighted average cost after adding ``quantity`` shares.

    A first buy (``old_shares == 0``) yields ``net_consideration / quantity``.
    """
    new_shares = old_shares + quantity
    if new_shares <= ZERO:
        raise InvalidArgumentError("Resulting share count must be positive")
    total_cost = old_shares * old_average_cost + net_consideration
    return quantize(total_cost / new_shares)


def realized_pnl(quantity: Decimal, price: Decimal, average_cost: Decimal, fee: Decimal) -> Decimal:
    """Profit or loss recognized when ``quantity`` shares are sold at ``price``."""
    return quantize(quantity * (price - average_cost) - fee)


def available_supply(issuable_shares: Decimal, held_shares: Optional[Decimal]) -> Decimal:
    """Shares still available to buy; never negative."""
    held = held_shares if held_shares is not None else ZERO
    return max(ZERO, Decimal(issuable_shares) - held)


def unrealized_pnl(shares: Decimal, average_cost: Decimal, current_price: Decimal) -> Tuple[Decimal, Decimal]:
    """Return (pnl, pnl_percent) of an open position marked at ``current_price``."""
    cost_basis = shares * average_cost
    pnl = shares * current_price - cost_basis
    pct = (pnl / cost_basis * 100) if cost_basis > ZERO else ZERO
    return quantize(pnl), quantize(pct)
