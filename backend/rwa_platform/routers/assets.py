"""Assets router — catalogue and remaining supply."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rwa_platform.database import get_db
from rwa_platform.models.asset import Asset
from rwa_platform.models.user import User
from rwa_platform.schemas.asset import AssetCreate, AssetListResponse, AssetResponse
from rwa_platform.middleware.auth import get_current_user
from rwa_platform.services import asset_service

router = APIRouter(prefix="/api/assets", tags=["assets"])


def _asset_to_response(db: Session, asset: Asset) -> AssetResponse:
    supply = asset_service.get_supply(db, asset)
    return AssetResponse(
        id=asset.id,
        name=asset.name,
        symbol=asset.symbol,
        asset_type=asset.asset_type,
        description=asset.description,
        current_price=asset.current_price,
        total_issuable_shares=supply["total_issuable_shares"],
        shares_held=supply["shares_held"],
        available_shares=supply["available_shares"],
        created_at=asset.created_at.isoformat() if asset.created_at else "",
    )


@router.get("", response_model=AssetListResponse)
def list_assets(
    asset_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List assets with optional type filter."""
    assets, total = asset_service.list_assets(db, asset_type=asset_type, limit=limit, offset=offset)
    return AssetListResponse(assets=[_asset_to_response(db, a) for a in assets], total=total)


@router.get("/{asset_id}", response_model=AssetResponse)
def get_asset(asset_id: str, db: Session = Depends(get_db)):
    """Get asset detail with available supply."""
    return _asset_to_response(db, asset_service.get_asset(db, asset_id))


@router.post("", response_model=AssetResponse, status_code=201)
def create_asset(
    req: AssetCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Register a new asset."""
    asset = asset_service.create_asset(
        db,
        name=req.name,
        asset_type=req.asset_type,
        current_price=req.current_price,
        symbol=req.symbol,
        description=req.description,
        total_issuable_shares=req.total_issuable_shares,
    )
    return _asset_to_response(db, asset)
