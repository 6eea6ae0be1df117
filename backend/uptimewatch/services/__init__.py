"""Services for storage, sessions, scheduling, probing and alerting."""
from .storage import PersistenceGateway, MemoryGateway, SqlGateway
from .sessions import SessionStore
from .registry import CheckRegistry, InFlightGuard
from .checker import CheckerService, ProbeOutcome
from .alerter import AlerterService
from .transitions import TransitionEngine, Transition
from .scheduler import SchedulerService
from .accounts import AccountService

__all__ = [
    "PersistenceGateway",
    "MemoryGateway",
    "SqlGateway",
    "SessionStore",
    "CheckRegistry",
    "InFlightGuard",
    "CheckerService",
    "ProbeOutcome",
    "AlerterService",
    "TransitionEngine",
    "Transition",
    "SchedulerService",
    "AccountService",
]
