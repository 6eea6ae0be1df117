"""Alert log schema."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class AlertRecord(BaseModel):
    """One alert delivery attempt."""
    model_config = ConfigDict(frozen=True)

    id: str
    check_id: str
    user_id: str
    old_state: str
    new_state: str
    channel: str
    message: Optional[str] = None
    success: Optional[bool] = None
    sent_at: datetime
