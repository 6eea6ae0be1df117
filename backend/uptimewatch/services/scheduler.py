"""Scheduler service - drives periodic execution of due checks.

Design:
- One global driver: an APScheduler interval job ticks every few seconds
- Each tick selects the checks due under the fixed check interval
- Probes run as independent tasks; the tick never waits for them, so a slow
  cycle cannot delay the next tick's selection
- A global semaphore bounds outbound probes across all ticks
- A per-check in-flight guard keeps at most one evaluation per check
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..errors import CheckInFlight, ConfigError, StorageError
from ..schemas import CheckRecord
from ..utils.clock import utcnow
from .checker import CheckerService, ProbeOutcome
from .registry import CheckRegistry, InFlightGuard
from .sessions import SessionStore
from .transitions import Transition, TransitionEngine

logger = logging.getLogger(__name__)

# Default cadence: checks run once per minute, the scheduler looks every 5s
CHECK_INTERVAL_SECONDS = 60
SCHEDULER_TICK_SECONDS = 5

# Maximum concurrent outbound probes
MAX_CONCURRENT_CHECKS = 10


class SchedulerService:
    """Service for scheduling and running periodic checks."""

    def __init__(
        self,
        registry: CheckRegistry,
        checker: CheckerService,
        engine: TransitionEngine,
        sessions: Optional[SessionStore] = None,
        check_interval: int = CHECK_INTERVAL_SECONDS,
        tick_seconds: int = SCHEDULER_TICK_SECONDS,
        max_concurrent: int = MAX_CONCURRENT_CHECKS,
        resync_minutes: int = 10,
    ):
        self.registry = registry
        self.checker = checker
        self.engine = engine
        self.sessions = sessions
        self.check_interval = check_interval
        self.tick_seconds = tick_seconds
        self.max_concurrent = max_concurrent
        self.resync_minutes = resync_minutes

        self.guard = InFlightGuard()
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

    @property
    def semaphore(self) -> asyncio.Semaphore:
        # Created lazily so it binds to the running event loop
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
        return self._semaphore

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()

        # Ticks only select and dispatch, so overlapping ticks are allowed
        self.scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id="run_checks",
            replace_existing=True,
            max_instances=3,
            coalesce=True,
            misfire_grace_time=self.tick_seconds,
        )

        self.scheduler.add_job(
            self._resync_registry,
            trigger=IntervalTrigger(minutes=self.resync_minutes),
            id="resync_registry",
            replace_existing=True,
            max_instances=1,
        )

        if self.sessions is not None:
            self.scheduler.add_job(
                self._purge_tokens,
                trigger=IntervalTrigger(hours=1),
                id="purge_tokens",
                replace_existing=True,
                max_instances=1,
            )

        self.scheduler.start()
        self._running = True
        logger.info(
            f"Scheduler started (tick={self.tick_seconds}s, interval={self.check_interval}s, "
            f"max_concurrent={self.max_concurrent})"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def drain(self):
        """Wait for all dispatched probes to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run_cycle(self, now: Optional[datetime] = None) -> List[asyncio.Task]:
        """Dispatch one probe task per due check that is not already in flight.

        Returns the dispatched tasks without waiting for them.
        """
        now = now or utcnow()
        try:
            due = self.registry.due_for_execution(now, self.check_interval)
        except Exception as e:
            logger.error(f"Error selecting due checks, skipping cycle: {e}")
            return []

        tasks = []
        for check in due:
            if not self.guard.try_acquire(check.id):
                logger.debug(f"Check {check.id} still in flight, not dispatching")
                continue
            task = asyncio.create_task(self._run_check(check))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            # Released when the task ends, however it ends
            task.add_done_callback(lambda _, check_id=check.id: self.guard.release(check_id))
            tasks.append(task)

        if tasks:
            logger.debug(f"Dispatched {len(tasks)} of {len(self.registry)} checks")
        return tasks

    async def _run_check(self, check: CheckRecord) -> Optional[Transition]:
        """Probe one check and hand the outcome to the engine, isolated from other checks.

        The caller holds the in-flight marker for ``check.id``.
        """
        try:
            async with self.semaphore:
                try:
                    outcome = await self.checker.probe(check)
                except ConfigError as e:
                    await self.engine.record_config_error(check.id, str(e))
                    return None
            return await self.engine.apply(check.id, outcome)
        except StorageError as e:
            logger.error(f"Storage error for check {check.id}, will retry next tick: {e}")
        except Exception as e:
            logger.error(f"Error checking {check.id}: {e}")
        return None

    async def process_outcome(
        self,
        check_id: str,
        outcome: ProbeOutcome,
        now: Optional[datetime] = None,
    ) -> Optional[Transition]:
        """Evaluate an externally produced outcome under the in-flight guard.

        Returns None if another evaluation of the same check is running.
        """
        try:
            with self.guard.claim(check_id):
                return await self.engine.apply(check_id, outcome, now)
        except CheckInFlight:
            logger.warning(f"Duplicate evaluation of check {check_id} rejected")
            return None

    async def _resync_registry(self):
        """Reload the registry from storage; keep the current index on failure."""
        try:
            await self.registry.load()
        except StorageError as e:
            logger.error(f"Registry resync failed, retrying next run: {e}")

    async def _purge_tokens(self):
        """Delete expired session tokens."""
        try:
            purged = await self.sessions.purge_expired()
            if purged:
                logger.info(f"Purged {purged} expired session tokens")
        except StorageError as e:
            logger.error(f"Error purging tokens: {e}")
