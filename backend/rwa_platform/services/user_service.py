"""User service — local records for wallet identities."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from rwa_platform.database import unit_of_work
from rwa_platform.errors import InvalidArgumentError, NotFoundError
from rwa_platform.models.user import User

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found", {"user_id": user_id})
    return user


def sync_user(
    db: Session,
    user_id: str,
    wallet_address: Optional[str] = None,
    email: Optional[str] = None,
) -> tuple[User, bool]:
    """Get or create the local user for an authenticated wallet identity.

    Wallet address and email are refreshed when the provider reports new
    values. Returns (user, created).
    """
    if not user_id or not user_id.strip():
        raise InvalidArgumentError("user_id is required")
    wallet = wallet_address.strip().lower() if wallet_address else None

    with unit_of_work(db):
        if wallet:
            owner = db.query(User).filter(User.wallet_address == wallet, User.id != user_id).first()
            if owner:
                raise InvalidArgumentError("Wallet address is already linked to another user")
        user = db.query(User).filter(User.id == user_id).first()
        created = user is None
        if created:
            user = User(id=user_id, wallet_address=wallet, email=email, kyc_status="pending")
            db.add(user)
        else:
            if wallet and user.wallet_address != wallet:
                user.wallet_address = wallet
            if email and user.email != email:
                user.email = email

    db.refresh(user)
    if created:
        logger.info("Created user %s", user_id)
    return user, created
