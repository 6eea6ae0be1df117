"""Pydantic schemas for records and API request/response models."""
from .check import (
    CheckState,
    CheckRecord,
    CheckCreate,
    CheckUpdate,
    CheckResponse,
    CheckTestResponse,
)
from .user import (
    UserRecord,
    UserCreate,
    UserUpdate,
    UserResponse,
)
from .token import (
    TokenRecord,
    TokenCreate,
    TokenExtend,
    TokenResponse,
)
from .alert import AlertRecord
from .status import (
    StatusOverview,
    CheckSummary,
)

__all__ = [
    "CheckState",
    "CheckRecord",
    "CheckCreate",
    "CheckUpdate",
    "CheckResponse",
    "CheckTestResponse",
    "UserRecord",
    "UserCreate",
    "UserUpdate",
    "UserResponse",
    "TokenRecord",
    "TokenCreate",
    "TokenExtend",
    "TokenResponse",
    "AlertRecord",
    "StatusOverview",
    "CheckSummary",
]
