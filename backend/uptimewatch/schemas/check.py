"""Check schemas: persisted record and API request/response models."""
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

# hostname or IPv4 address, optionally followed by a port
HOSTNAME_PATTERN = r"^[A-Za-z0-9]([A-Za-z0-9\-]*[A-Za-z0-9])?(\.[A-Za-z0-9]([A-Za-z0-9\-]*[A-Za-z0-9])?)*(:\d{1,5})?$"
PATH_PATTERN = r"^/[^\s]*$"
PROTOCOLS = ("http", "https")
METHODS = ("GET", "POST", "PUT", "DELETE", "HEAD")
MIN_TIMEOUT_SEC = 1
MAX_TIMEOUT_SEC = 5


class CheckState(str, Enum):
    """Known state of a check."""
    UNKNOWN = "unknown"
    UP = "up"
    DOWN = "down"


class CheckRecord(BaseModel):
    """A check as stored through the persistence gateway.

    Records are immutable; updates produce a new record via ``model_copy``.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str
    owner_id: str
    protocol: str
    hostname: str
    path: str = "/"
    method: str = "GET"
    success_codes: List[int]
    timeout_sec: int = 3
    state: CheckState = Field(default=CheckState.UNKNOWN, validate_default=True)
    last_checked: Optional[datetime] = None
    last_changed: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.hostname}{self.path}"


def _check_success_codes(codes: List[int]) -> List[int]:
    if not codes:
        raise ValueError("success_codes must not be empty")
    for code in codes:
        if not 100 <= code <= 599:
            raise ValueError(f"Invalid HTTP status code: {code}")
    return sorted(set(codes))


def _check_method(method: str) -> str:
    method = method.upper()
    if method not in METHODS:
        raise ValueError(f"Unsupported method: {method}")
    return method


Method = Annotated[str, AfterValidator(_check_method)]
SuccessCodes = Annotated[List[int], AfterValidator(_check_success_codes)]


class CheckCreate(BaseModel):
    """Schema for creating a new check."""
    protocol: str = Field(..., pattern="^(http|https)$")
    hostname: str = Field(..., min_length=1, max_length=255, pattern=HOSTNAME_PATTERN)
    path: str = Field(default="/", max_length=2048, pattern=PATH_PATTERN)
    method: Method = "GET"
    success_codes: SuccessCodes = Field(default_factory=lambda: [200])
    timeout_sec: int = Field(default=3, ge=MIN_TIMEOUT_SEC, le=MAX_TIMEOUT_SEC)


class CheckUpdate(BaseModel):
    """Schema for updating a check's configuration."""
    protocol: Optional[str] = Field(None, pattern="^(http|https)$")
    hostname: Optional[str] = Field(None, min_length=1, max_length=255, pattern=HOSTNAME_PATTERN)
    path: Optional[str] = Field(None, max_length=2048, pattern=PATH_PATTERN)
    method: Optional[Method] = None
    success_codes: Optional[SuccessCodes] = None
    timeout_sec: Optional[int] = Field(None, ge=MIN_TIMEOUT_SEC, le=MAX_TIMEOUT_SEC)


class CheckResponse(BaseModel):
    """Schema for a check in API responses."""
    id: str
    owner_id: str
    protocol: str
    hostname: str
    path: str
    method: str
    success_codes: List[int]
    timeout_sec: int
    state: str
    last_checked: Optional[datetime] = None
    last_changed: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CheckTestResponse(BaseModel):
    """Response from a one-off probe of a check."""
    state: str
    status_code: Optional[int] = None
    elapsed_ms: Optional[int] = None
    details: Optional[str] = None
