"""Session token schemas."""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class TokenRecord(BaseModel):
    """A session token as stored through the persistence gateway."""
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    expires_at: datetime


class TokenCreate(BaseModel):
    """Sign-in credentials."""
    phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenExtend(BaseModel):
    """Request to push a token's expiry forward."""
    extend: bool


class TokenResponse(BaseModel):
    """Token as returned by the API."""
    id: str
    user_id: str
    expires_at: datetime

    class Config:
        from_attributes = True
