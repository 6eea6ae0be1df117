"""State transition engine - sole writer of a check's monitoring state.

States go ``unknown -> up|down`` and then ``up <-> down``; ``unknown`` is only
re-entered through an explicit reset. The first observation sets a baseline
without alerting; every later change fires exactly one alert, and only after
the new state has been written.

Every read-modify-write of a check record holds the per-check lock in
``check_locks``. The account service takes the same lock for configuration
edits and deletes, so no writer can replace a transition with stale state.
Alerts are sent after the lock is released.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from ..schemas import CheckRecord, CheckState, UserRecord
from ..utils.clock import utcnow
from ..utils.locks import KeyedLocks
from .alerter import AlerterService
from .checker import ProbeOutcome
from .registry import CheckRegistry
from .storage import CHECKS, USERS, PersistenceGateway

logger = logging.getLogger(__name__)


@dataclass
class Transition:
    """What the engine did with one outcome."""
    check: CheckRecord
    previous: str
    current: str
    alerted: bool = False
    delivered: Optional[bool] = None  # None when no alert was attempted

    @property
    def changed(self) -> bool:
        return self.previous != self.current


def decide(previous: str, outcome: str) -> Tuple[bool, bool]:
    """Return ``(state_changed, alert)`` for ``previous`` followed by ``outcome``."""
    if outcome not in (CheckState.UP.value, CheckState.DOWN.value):
        raise ValueError(f"Invalid outcome: {outcome}")
    if previous == CheckState.UNKNOWN.value:
        # First observation establishes the baseline
        return True, False
    if previous != outcome:
        return True, True
    return False, False


class TransitionEngine:
    """Classifies outcomes against the last known state and persists the result."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        registry: CheckRegistry,
        alerter: AlerterService,
    ):
        self.gateway = gateway
        self.registry = registry
        self.alerter = alerter
        self.check_locks = KeyedLocks()

    async def _load_check(self, check_id: str) -> Optional[CheckRecord]:
        record = await self.gateway.get(CHECKS, check_id)
        if record is None:
            return None
        return CheckRecord.model_validate(record)

    async def _load_owner(self, owner_id: str) -> Optional[UserRecord]:
        record = await self.gateway.get(USERS, owner_id)
        if record is None:
            return None
        return UserRecord.model_validate(record)

    async def _write(self, check: CheckRecord):
        """Persist ``check`` and mirror it into the registry.

        Raises StorageError if the write fails; the registry then keeps the
        previous record and the next tick evaluates the check again.
        """
        await self.gateway.put(CHECKS, check.id, check.model_dump())
        if check.id in self.registry:
            self.registry.upsert(check)

    async def apply(
        self,
        check_id: str,
        outcome: ProbeOutcome,
        now: Optional[datetime] = None,
    ) -> Optional[Transition]:
        """Record ``outcome`` for ``check_id`` and alert on a state change.

        Returns None if the check was deleted while its probe was in flight.
        """
        now = now or utcnow()
        async with self.check_locks(check_id):
            check = await self._load_check(check_id)
            if check is None:
                logger.info(f"Check {check_id} was deleted while in flight, discarding outcome")
                self.registry.remove(check_id)
                return None

            previous = check.state
            current = outcome.state
            changed, alert = decide(previous, current)

            owner = None
            if alert:
                # Read the destination before writing so a storage fault leaves
                # the transition pending for the next tick instead of half-done
                owner = await self._load_owner(check.owner_id)

            updates = {"state": current, "last_checked": now, "last_error": None}
            if changed:
                updates["last_changed"] = now
            updated = check.model_copy(update=updates)

            await self._write(updated)

        transition = Transition(check=updated, previous=previous, current=current, alerted=alert)
        if changed:
            logger.info(f"Check {check_id} ({check.url}): {previous} -> {current}")
        else:
            logger.debug(f"Check {check_id} still {current}")

        if alert:
            if owner is None:
                logger.warning(f"Owner {check.owner_id} of check {check_id} no longer exists, alert skipped")
            else:
                transition.delivered = await self.alerter.notify(owner, updated, previous, current, now)
        return transition

    async def record_config_error(
        self,
        check_id: str,
        message: str,
        now: Optional[datetime] = None,
    ) -> Optional[CheckRecord]:
        """Store a configuration error on the check without touching its state."""
        now = now or utcnow()
        async with self.check_locks(check_id):
            check = await self._load_check(check_id)
            if check is None:
                self.registry.remove(check_id)
                return None
            updated = check.model_copy(update={"last_error": message, "last_checked": now})
            await self._write(updated)
        logger.warning(f"Check {check_id} misconfigured: {message}")
        return updated

    async def reset(self, check_id: str) -> Optional[CheckRecord]:
        """Return a check to ``unknown`` with no history."""
        async with self.check_locks(check_id):
            check = await self._load_check(check_id)
            if check is None:
                return None
            updated = check.model_copy(update={
                "state": CheckState.UNKNOWN.value,
                "last_checked": None,
                "last_changed": None,
                "last_error": None,
            })
            await self._write(updated)
        logger.info(f"Check {check_id} reset to unknown")
        return updated
