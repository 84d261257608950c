"""Asset service — asset catalogue and remaining supply."""

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from rwa_platform import pricing
from rwa_platform.database import unit_of_work
from rwa_platform.errors import InvalidArgumentError, NotFoundError
from rwa_platform.models.asset import Asset
from rwa_platform.services.trade_service import issuable_shares, sum_shares_held


def create_asset(
    db: Session,
    name: str,
    asset_type: str,
    current_price,
    symbol: Optional[str] = None,
    description: Optional[str] = None,
    total_issuable_shares: Optional[int] = None,
) -> Asset:
    """Create an asset. A missing issuance cap means the configured default applies."""
    if not name or not name.strip():
        raise InvalidArgumentError("name is required")
    if not asset_type or not asset_type.strip():
        raise InvalidArgumentError("asset_type is required")
    price = pricing.require_positive(current_price, "current_price")
    if total_issuable_shares is not None and total_issuable_shares <= 0:
        raise InvalidArgumentError(
            "total_issuable_shares must be positive", {"total_issuable_shares": total_issuable_shares}
        )

    asset = Asset(
        id=str(uuid.uuid4()),
        name=name.strip(),
        symbol=symbol.strip().upper() if symbol else None,
        asset_type=asset_type.strip(),
        description=description,
        current_price=price,
        total_issuable_shares=total_issuable_shares,
    )
    with unit_of_work(db):
        db.add(asset)
    db.refresh(asset)
    return asset


def get_asset(db: Session, asset_id: str) -> Asset:
    asset = db.query(Asset).filter(Asset.id == asset_id).first()
    if not asset:
        raise NotFoundError("Asset not found", {"asset_id": asset_id})
    return asset


def list_assets(db: Session, asset_type: Optional[str] = None, limit: int = 50, offset: int = 0) -> tuple[list[Asset], int]:
    """List assets by name with an optional type filter. Returns (page, total)."""
    if limit < 1 or offset < 0:
        raise InvalidArgumentError("limit must be positive and offset non-negative")
    query = db.query(Asset)
    if asset_type:
        query = query.filter(Asset.asset_type == asset_type)
    total = query.count()
    return query.order_by(Asset.name).offset(offset).limit(limit).all(), total


def get_supply(db: Session, asset: Asset) -> dict:
    """Issuance cap, shares held across all users and shares still available."""
    cap = issuable_shares(asset)
    held = sum_shares_held(db, asset.id)
    return {
        "total_issuable_shares": cap,
        "shares_held": held,
        "available_shares": pricing.available_supply(cap, held),
    }
