"""Auth request/response schemas."""

from typing import Optional

from pydantic import BaseModel


class UserResponse(BaseModel):
    id: str
    wallet_address: Optional[str]
    email: Optional[str]
    kyc_status: str
    created_at: str

    class Config:
        from_attributes = True


class SyncUserResponse(BaseModel):
    user: UserResponse
    created: bool
