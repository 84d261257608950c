"""Wallet-token authentication dependencies.

Tokens are issued by the wallet-auth provider and verified here with the
shared secret. ``sub`` is the provider's stable user id; ``wallet_address``
and ``email`` are optional claims.
"""

from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from rwa_platform.config import settings
from rwa_platform.database import get_db
from rwa_platform.models.user import User

security = HTTPBearer()


def create_access_token(data: dict) -> str:
    """Mint a token the way the provider does. Used by local tooling and tests."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def get_token_claims(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    payload = decode_token(credentials.credentials)
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return payload


def get_current_user(
    claims: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == claims["sub"]).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not synced; call /api/auth/sync first")
    return user


def require_kyc_reviewer(current_user: User = Depends(get_current_user)) -> User:
    reviewers = {r.strip() for r in settings.KYC_REVIEWER_IDS.split(",") if r.strip()}
    if current_user.id not in reviewers:
        raise HTTPException(status_code=403, detail="KYC reviewer role required")
    return current_user
