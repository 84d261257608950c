"""Auth router — syncing wallet identities into local user records."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from rwa_platform.database import get_db
from rwa_platform.models.user import User
from rwa_platform.schemas.auth import SyncUserResponse, UserResponse
from rwa_platform.middleware.auth import get_current_user, get_token_claims
from rwa_platform.services import user_service

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        wallet_address=user.wallet_address,
        email=user.email,
        kyc_status=user.kyc_status,
        created_at=user.created_at.isoformat(),
    )


@router.post("/sync", response_model=SyncUserResponse)
def sync_user(
    response: Response,
    claims: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
):
    """Create or refresh the local user for the authenticated wallet."""
    user, created = user_service.sync_user(
        db,
        claims["sub"],
        wallet_address=claims.get("wallet_address"),
        email=claims.get("email"),
    )
    if created:
        response.status_code = 201
    return SyncUserResponse(user=_user_to_response(user), created=created)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return _user_to_response(current_user)
