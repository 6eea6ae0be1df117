"""Check registry - the in-memory index of checks the scheduler executes.

The registry is loaded from the persistence gateway at startup and kept in
step with API mutations. Entries are immutable ``CheckRecord`` objects that
are replaced wholesale, so a reader holding a snapshot never observes a
half-written record.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional, Set

from ..errors import CheckInFlight
from ..schemas import CheckRecord
from .storage import CHECKS, PersistenceGateway

logger = logging.getLogger(__name__)


class CheckRegistry:
    """Authoritative in-memory set of active checks, indexed by id."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway
        self._checks: Dict[str, CheckRecord] = {}

    async def load(self) -> int:
        """Replace the index with every persisted check.

        Raises StorageError if the gateway cannot be read; the current index
        is left untouched in that case.
        """
        records = await self.gateway.list_all(CHECKS)
        self._checks = {
            check.id: check
            for check in (CheckRecord.model_validate(record) for record in records)
        }
        logger.info(f"Check registry loaded with {len(self._checks)} checks")
        return len(self._checks)

    def upsert(self, check: CheckRecord):
        """Insert or replace the entry for ``check.id``."""
        self._checks[check.id] = check

    def remove(self, check_id: str):
        """Drop the entry for ``check_id`` if present."""
        self._checks.pop(check_id, None)

    def get(self, check_id: str) -> Optional[CheckRecord]:
        return self._checks.get(check_id)

    def snapshot(self) -> List[CheckRecord]:
        """Copy of the current entries."""
        return list(self._checks.values())

    def due_for_execution(self, now: datetime, interval: float) -> List[CheckRecord]:
        """Checks never run, or last run at least ``interval`` seconds before ``now``."""
        cutoff = now - timedelta(seconds=interval)
        return [
            check for check in self.snapshot()
            if check.last_checked is None or check.last_checked <= cutoff
        ]

    def __contains__(self, check_id: str) -> bool:
        return check_id in self._checks

    def __len__(self) -> int:
        return len(self._checks)


class InFlightGuard:
    """Per-check exclusion: at most one evaluation of a check at a time."""

    def __init__(self):
        self._active: Set[str] = set()

    def try_acquire(self, check_id: str) -> bool:
        if check_id in self._active:
            return False
        self._active.add(check_id)
        return True

    def release(self, check_id: str):
        self._active.discard(check_id)

    @contextmanager
    def claim(self, check_id: str) -> Iterator[None]:
        """Hold ``check_id`` for the duration of the block.

        Raises CheckInFlight if another evaluation already holds it. The
        marker is released on every exit path.
        """
        if not self.try_acquire(check_id):
            raise CheckInFlight(check_id)
        try:
            yield
        finally:
            self.release(check_id)

    def __contains__(self, check_id: str) -> bool:
        return check_id in self._active

    def __len__(self) -> int:
        return len(self._active)
