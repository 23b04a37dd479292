"""RotationScheduler — the periodic assignment cycle and the delivery retry sweep."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from rotabot.config import settings
from rotabot.rotations.cursor import RotationCursor, RotationLocks
from rotabot.rotations.eligibility import should_run
from rotabot.rotations.errors import DeliveryFailed
from rotabot.rotations.models import AssignmentRecord, DeliveryState, make_id, to_timestamp

if TYPE_CHECKING:
    from datetime import datetime

    from rotabot.rotations.delivery import AssignmentNotifier
    from rotabot.rotations.ledger import AssignmentLedger
    from rotabot.rotations.models import RotationDefinition
    from rotabot.rotations.store import RotationStore

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Aggregate outcome of one scheduling cycle."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def add_failure(self, rotation_id: str, error: str) -> None:
        self.failed += 1
        self.errors.append({"rotation_id": rotation_id, "error": error})


@dataclass
class SweepResult:
    """Aggregate outcome of one retry sweep."""

    retried: int = 0
    failed: int = 0
    skipped: int = 0
    abandoned: int = 0


class RotationScheduler:
    """Runs the assignment cycle over all active rotations.

    A cycle is single-flight: calling :meth:`run_cycle` while another cycle
    is in progress returns None without doing anything. Rotations are
    processed one at a time, each under its per-rotation lock. The retry
    sweep takes the same lock, so a cycle triggered during a sweep is
    dropped like an overlapping cycle.

    Args:
        store: RotationStore holding the definitions.
        ledger: AssignmentLedger recording assignments.
        notifier: AssignmentNotifier used for delivery.
        locks: Per-rotation locks shared with the skip engine.
    """

    def __init__(
        self,
        store: RotationStore,
        ledger: AssignmentLedger,
        notifier: AssignmentNotifier,
        locks: RotationLocks | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._notifier = notifier
        self._locks = locks or RotationLocks()
        self._cursor = RotationCursor(ledger)
        self._cycle_lock = asyncio.Lock()

    @property
    def locks(self) -> RotationLocks:
        return self._locks

    @property
    def cursor(self) -> RotationCursor:
        return self._cursor

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_lock.locked()

    def status(self) -> dict[str, bool]:
        return {"is_processing": self.cycle_in_progress}

    # -- Cycle -----------------------------------------------------------------

    async def run_cycle(self, now: datetime) -> CycleResult | None:
        """Assign and notify every rotation that is due at *now*.

        Returns None if a cycle was already running.
        """
        if self._cycle_lock.locked():
            logger.info("Scheduler cycle already running, skipping this trigger")
            return None

        async with self._cycle_lock:
            started = time.monotonic()
            rotations = await self._store.list_active()
            result = CycleResult(total=len(rotations))
            logger.info("Starting scheduler cycle: %d active rotation(s)", len(rotations))

            for rotation in rotations:
                try:
                    await self._process(rotation, now, result)
                except Exception as exc:
                    logger.exception(
                        "Error processing rotation %s (%s)", rotation.id, rotation.name
                    )
                    result.add_failure(rotation.id, str(exc) or exc.__class__.__name__)

            logger.info(
                "Scheduler cycle completed in %.0fms: total=%d processed=%d skipped=%d failed=%d",
                (time.monotonic() - started) * 1000,
                result.total,
                result.processed,
                result.skipped,
                result.failed,
            )
            return result

    async def _process(
        self, rotation: RotationDefinition, now: datetime, result: CycleResult
    ) -> None:
        if not should_run(rotation, now):
            logger.debug("Rotation %s (%s) not due", rotation.id, rotation.name)
            result.skipped += 1
            return

        today = rotation.local_day(now)
        async with self._locks.hold(rotation.id):
            if await self._ledger.exists_for_day(rotation.id, today):
                logger.info(
                    "Assignment already exists today for rotation %s (%s)",
                    rotation.id,
                    rotation.name,
                )
                result.skipped += 1
                return

            # Re-read under the lock; a skip may have moved the cursor.
            rotation = await self._store.get_rotation(rotation.id)
            chosen = await self._cursor.next_available(rotation, today)
            record = await self._ledger.create(
                AssignmentRecord(
                    id=make_id(),
                    rotation_id=rotation.id,
                    workspace_id=rotation.workspace_id,
                    assigned_date=today,
                    member_id=chosen.member_id,
                    channel_id=rotation.channel_id,
                    sequence=0,
                    created_at=to_timestamp(now),
                )
            )
            rotation.cursor = chosen.cursor
            await self._store.save_cursor(rotation.id, chosen.cursor)

        try:
            await self._notifier.notify(
                rotation, record, max_attempts=settings.delivery_max_attempts
            )
        except DeliveryFailed as exc:
            logger.error(
                "Assignment %s for rotation %s left pending: %s", record.id, rotation.id, exc
            )
            result.add_failure(rotation.id, str(exc))
            return

        result.processed += 1
        logger.info(
            "Rotation %s (%s) assigned to %s", rotation.id, rotation.name, record.member_id
        )

    # -- Retry sweep -----------------------------------------------------------

    async def run_retry_sweep(self, now: datetime) -> SweepResult:
        """Retry undelivered assignments created within the retry window.

        Pending records older than the window are moved to ``abandoned``.
        The sweep holds the cycle lock, so it waits for a running cycle to
        finish its deliveries before looking at pending records.
        """
        async with self._cycle_lock:
            return await self._sweep(now)

    async def _sweep(self, now: datetime) -> SweepResult:
        window_start = now - timedelta(hours=settings.retry_window_hours)
        result = SweepResult()
        result.abandoned = await self._ledger.abandon_pending_before(window_start)

        pending = await self._ledger.find_pending(window_start, now)
        if not pending:
            logger.info("No failed notifications to retry")
            return result
        logger.info("Retrying %d undelivered assignment(s)", len(pending))

        for record in pending:
            try:
                await self._retry(record, result)
            except Exception:
                logger.exception("Failed to retry notification for assignment %s", record.id)
                result.failed += 1

        logger.info(
            "Retry sweep completed: retried=%d failed=%d skipped=%d abandoned=%d",
            result.retried,
            result.failed,
            result.skipped,
            result.abandoned,
        )
        return result

    async def _retry(self, record: AssignmentRecord, result: SweepResult) -> None:
        # Re-read; a skip or another delivery may have settled it since the query.
        current = await self._ledger.find_by_id(record.id)
        if current.delivery_state != DeliveryState.PENDING or current.is_skipped:
            logger.info("Assignment %s no longer pending, not retrying", record.id)
            result.skipped += 1
            return

        rotation = await self._store.find_rotation(current.rotation_id)
        if rotation is None:
            logger.warning(
                "Rotation %s not found for assignment %s", current.rotation_id, current.id
            )
            result.failed += 1
            return
        if not rotation.is_active:
            logger.info(
                "Rotation %s is inactive, not retrying assignment %s", rotation.id, current.id
            )
            result.skipped += 1
            return

        if self._notifier.is_in_flight(current.id):
            logger.info("Assignment %s is already being delivered, not retrying", current.id)
            result.skipped += 1
            return

        await self._notifier.notify(rotation, current, max_attempts=settings.sweep_max_attempts)
        result.retried += 1
