"""User schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

PHONE_PATTERN = r"^\+?\d{10,15}$"


class UserRecord(BaseModel):
    """A user as stored through the persistence gateway."""
    model_config = ConfigDict(frozen=True)

    id: str
    first_name: str
    last_name: str
    phone: str
    email: Optional[str] = None
    password_hash: str
    tos_agreement: bool = False
    check_ids: List[str] = Field(default_factory=list)
    last_alert_at: Optional[datetime] = None
    last_alert_ok: Optional[bool] = None
    created_at: Optional[datetime] = None


class UserCreate(BaseModel):
    """Schema for signing up."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=1)
    tos_agreement: bool


class UserUpdate(BaseModel):
    """Schema for editing a profile."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: Optional[str] = Field(None, min_length=1)


class UserResponse(BaseModel):
    """User as returned by the API - never includes the password hash."""
    id: str
    first_name: str
    last_name: str
    phone: str
    email: Optional[str] = None
    check_ids: List[str]
    last_alert_at: Optional[datetime] = None
    last_alert_ok: Optional[bool] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
