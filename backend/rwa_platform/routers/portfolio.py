"""Portfolio router — open positions and portfolio statistics."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rwa_platform.database import get_db
from rwa_platform.models.user import User
from rwa_platform.schemas.portfolio import PortfolioStatsResponse, PositionResponse
from rwa_platform.middleware.auth import get_current_user
from rwa_platform.services import portfolio_service

router = APIRouter(prefix="/api", tags=["portfolio"])


@router.get("/positions/my", response_model=list[PositionResponse])
def my_positions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get current user's open positions with unrealized PnL."""
    positions = portfolio_service.get_user_positions(db, current_user.id)
    return [PositionResponse(**p) for p in positions]


@router.get("/portfolio/stats", response_model=PortfolioStatsResponse)
def portfolio_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get current user's portfolio totals, allocation and best/worst assets."""
    return PortfolioStatsResponse(**portfolio_service.get_portfolio_stats(db, current_user.id))
