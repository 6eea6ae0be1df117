"""
Pytest configuration and shared fixtures.
"""
import asyncio
from datetime import datetime
from typing import List, Optional, Set, Tuple

import pytest

from uptimewatch.config import Settings
from uptimewatch.errors import DispatchError, StorageError
from uptimewatch.schemas import CheckRecord, UserRecord
from uptimewatch.services.alerter import AlerterService
from uptimewatch.services.checker import CheckerService, ProbeOutcome
from uptimewatch.services.registry import CheckRegistry
from uptimewatch.services.senders import AlertSender
from uptimewatch.services.storage import CHECKS, USERS, MemoryGateway
from uptimewatch.services.transitions import TransitionEngine

T0 = datetime(2026, 1, 1, 12, 0, 0)


class RecordingSender(AlertSender):
    """Alert sender that keeps messages in memory."""

    channel = "sms"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Tuple[str, str]] = []

    async def _deliver(self, destination: str, message: str):
        if self.fail:
            raise DispatchError("carrier unavailable")
        self.sent.append((destination, message))


class FlakyGateway(MemoryGateway):
    """Memory gateway whose writes or reads can be made to fail, or slowed down."""

    def __init__(self):
        super().__init__()
        self.fail_puts: Set[str] = set()
        self.fail_lists: Set[str] = set()
        self.put_delay: float = 0
        self.get_delay: float = 0

    async def get(self, kind, record_id):
        record = await super().get(kind, record_id)
        if self.get_delay:
            await asyncio.sleep(self.get_delay)
        return record

    async def put(self, kind, record_id, record):
        if self.put_delay:
            await asyncio.sleep(self.put_delay)
        if kind in self.fail_puts:
            raise StorageError(f"write to {kind} failed")
        await super().put(kind, record_id, record)

    async def list_all(self, kind):
        if kind in self.fail_lists:
            raise StorageError(f"list of {kind} failed")
        return await super().list_all(kind)


class StubChecker(CheckerService):
    """Checker returning scripted outcomes per check id."""

    def __init__(self, outcomes: Optional[dict] = None, delay: float = 0):
        super().__init__()
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    async def probe(self, check):
        self.build_url(check)
        self.calls.append(check.id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.outcomes.get(check.id, "up")
            if isinstance(result, Exception):
                raise result
            return ProbeOutcome(state=result, elapsed_ms=1)
        finally:
            self.active -= 1


def make_user(user_id: str = "user1", **overrides) -> UserRecord:
    data = dict(
        id=user_id,
        first_name="Ada",
        last_name="Lovelace",
        phone="15550001111",
        email="ada@example.com",
        password_hash="x",
        tos_agreement=True,
        created_at=T0,
    )
    data.update(overrides)
    return UserRecord(**data)


def make_check(check_id: str = "check1", owner_id: str = "user1", **overrides) -> CheckRecord:
    data = dict(
        id=check_id,
        owner_id=owner_id,
        protocol="http",
        hostname="example.com",
        path="/",
        method="GET",
        success_codes=[200],
        timeout_sec=3,
        created_at=T0,
    )
    data.update(overrides)
    return CheckRecord(**data)


async def seed(gateway, registry=None, users=(), checks=()):
    """Persist users and checks, and register the checks."""
    for user in users:
        await gateway.put(USERS, user.id, user.model_dump())
    for check in checks:
        await gateway.put(CHECKS, check.id, check.model_dump())
        if registry is not None:
            registry.upsert(check)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        hashing_secret="test-secret",
        check_interval_seconds=60,
        max_checks_per_user=5,
    )


@pytest.fixture
def gateway() -> FlakyGateway:
    return FlakyGateway()


@pytest.fixture
def registry(gateway) -> CheckRegistry:
    return CheckRegistry(gateway)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def alerter(gateway, sender) -> AlerterService:
    return AlerterService(gateway, sms_sender=sender)


@pytest.fixture
def engine(gateway, registry, alerter) -> TransitionEngine:
    return TransitionEngine(gateway, registry, alerter)
