"""Status overview schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class CheckSummary(BaseModel):
    """Summary of a check for the overview."""
    id: str
    url: str
    method: str
    state: str  # up, down, unknown
    last_checked: Optional[datetime] = None
    last_changed: Optional[datetime] = None


class StatusOverview(BaseModel):
    """Per-user overview data."""
    total_checks: int
    checks_up: int
    checks_down: int
    checks_unknown: int
    checks_remaining: int
    checks: List[CheckSummary]
