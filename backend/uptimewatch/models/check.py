"""Check model - HTTP(S) resources being monitored."""
from sqlalchemy import Column, DateTime, Integer, JSON, String

from ..database import Base
from ..utils.clock import utcnow


class Check(Base):
    """A monitored endpoint and its up/down policy."""

    __tablename__ = "checks"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    protocol = Column(String, nullable=False)  # http, https
    hostname = Column(String, nullable=False)
    path = Column(String, default="/")
    method = Column(String, default="GET")
    success_codes = Column(JSON, nullable=False)  # list of acceptable status codes
    timeout_sec = Column(Integer, default=3)  # 1-5 seconds
    state = Column(String, default="unknown")  # up, down, unknown
    last_checked = Column(DateTime, nullable=True)
    last_changed = Column(DateTime, nullable=True)
    last_error = Column(String, nullable=True)  # Configuration error from the last probe
    created_at = Column(DateTime, default=utcnow)
