"""Service wiring and FastAPI dependencies."""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from .config import Settings
from .errors import AuthError
from .services.accounts import AccountService
from .services.alerter import AlerterService, build_alerter
from .services.checker import CheckerService
from .services.registry import CheckRegistry
from .services.scheduler import SchedulerService
from .services.sessions import SessionStore
from .services.storage import PersistenceGateway
from .services.transitions import TransitionEngine


@dataclass
class AppServices:
    """Everything the API and the scheduler share, built once per app."""
    gateway: PersistenceGateway
    registry: CheckRegistry
    sessions: SessionStore
    checker: CheckerService
    alerter: AlerterService
    engine: TransitionEngine
    scheduler: SchedulerService
    accounts: AccountService


def build_services(
    gateway: PersistenceGateway,
    settings: Settings,
    checker: Optional[CheckerService] = None,
    alerter: Optional[AlerterService] = None,
) -> AppServices:
    """Wire the services around ``gateway``."""
    registry = CheckRegistry(gateway)
    sessions = SessionStore(gateway, ttl_seconds=settings.token_ttl_seconds)
    checker = checker or CheckerService()
    alerter = alerter or build_alerter(gateway, settings)
    engine = TransitionEngine(gateway, registry, alerter)
    scheduler = SchedulerService(
        registry,
        checker,
        engine,
        sessions=sessions,
        check_interval=settings.check_interval_seconds,
        tick_seconds=settings.scheduler_tick_seconds,
        max_concurrent=settings.max_concurrent_checks,
        resync_minutes=settings.registry_resync_minutes,
    )
    accounts = AccountService(
        gateway,
        registry,
        sessions,
        engine,
        hashing_secret=settings.hashing_secret,
        max_checks=settings.max_checks_per_user,
        user_locks=alerter.user_locks,
    )
    return AppServices(
        gateway=gateway,
        registry=registry,
        sessions=sessions,
        checker=checker,
        alerter=alerter,
        engine=engine,
        scheduler=scheduler,
        accounts=accounts,
    )


def get_services(request: Request) -> AppServices:
    """Dependency to get the app's services."""
    return request.app.state.services


async def get_current_user_id(
    token: Optional[str] = Header(default=None),
    services: AppServices = Depends(get_services),
) -> str:
    """Dependency resolving the ``token`` header to a user id."""
    if not token:
        raise AuthError("Missing token header")
    user_id = await services.sessions.validate(token)
    if user_id is None:
        raise AuthError("Invalid or expired token")
    return user_id
