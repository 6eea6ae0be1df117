"""SessionToken model - sign-in tokens."""
from sqlalchemy import Column, DateTime, String

from ..database import Base


class SessionToken(Base):
    """Opaque token issued on sign-in; deleted on sign-out or expiry."""

    __tablename__ = "tokens"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
