"""User model - account owning checks."""
from sqlalchemy import Boolean, Column, DateTime, JSON, String

from ..database import Base
from ..utils.clock import utcnow


class User(Base):
    """A registered user; alerts go to their phone (or email)."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    tos_agreement = Column(Boolean, default=False)
    check_ids = Column(JSON, default=list)  # ids of owned checks, max 5
    last_alert_at = Column(DateTime, nullable=True)
    last_alert_ok = Column(Boolean, nullable=True)  # last-known delivery status
    created_at = Column(DateTime, default=utcnow)
