"""Database models."""
from .user import User
from .check import Check
from .session_token import SessionToken
from .alert import Alert

__all__ = ["User", "Check", "SessionToken", "Alert"]
