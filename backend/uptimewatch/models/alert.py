"""Alert model - log of sent alerts."""
from sqlalchemy import Boolean, Column, DateTime, String

from ..database import Base
from ..utils.clock import utcnow


class Alert(Base):
    """Record of an alert sent via SMS, email or log."""

    __tablename__ = "alerts"

    id = Column(String, primary_key=True)
    check_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    old_state = Column(String, nullable=False)
    new_state = Column(String, nullable=False)
    channel = Column(String, default="sms")  # sms, email, log
    message = Column(String, nullable=True)
    success = Column(Boolean, nullable=True)
    sent_at = Column(DateTime, default=utcnow)
