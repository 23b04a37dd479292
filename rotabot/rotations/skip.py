"""SkipEngine — hand a day's duty to the next member, within abuse limits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from rotabot.config import settings
from rotabot.rotations.cursor import RotationCursor, RotationLocks
from rotabot.rotations.errors import (
    AlreadySkipped,
    DeliveryFailed,
    SkipNotAllowed,
    SkipReconciliationError,
)
from rotabot.rotations.models import AssignmentRecord, make_id, to_timestamp

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rotabot.rotations.delivery import AssignmentNotifier
    from rotabot.rotations.ledger import AssignmentLedger
    from rotabot.rotations.models import RotationDefinition
    from rotabot.rotations.store import RotationStore

logger = logging.getLogger(__name__)


@dataclass
class SkipResult:
    """Outcome of a successful skip."""

    original_assignment_id: str
    new_assignment_id: str
    new_member_id: str
    delivered: bool


def consecutive_skip_count(records: Sequence[AssignmentRecord]) -> int:
    """Count skipped records at the end of *records* (oldest-first order)."""
    count = 0
    for record in reversed(records):
        if not record.is_skipped:
            break
        count += 1
    return count


def check_skip_allowed(
    rotation: RotationDefinition,
    chain: Sequence[AssignmentRecord],
    target: AssignmentRecord,
) -> None:
    """Raise SkipNotAllowed if *target* may not be skipped.

    A single-member rotation can never skip. Otherwise the run of skipped
    records directly before *target* in the day's chain must stay below
    ``members - 1``; reaching it would wrap back to someone already skipped.
    """
    if rotation.member_count <= 1:
        msg = "Cannot skip when rota has only one member"
        raise SkipNotAllowed(msg)

    preceding = [record for record in chain if record.sequence < target.sequence]
    skips = consecutive_skip_count(preceding)
    max_skips = rotation.member_count - 1
    if skips >= max_skips:
        msg = f"Cannot skip: all other members have been skipped ({skips}/{max_skips})"
        raise SkipNotAllowed(msg)


class SkipEngine:
    """Executes "skip this person" requests against today's assignment.

    Args:
        store: RotationStore holding the definitions.
        ledger: AssignmentLedger recording assignments.
        notifier: AssignmentNotifier used to edit and send messages.
        locks: Per-rotation locks shared with the scheduler.
    """

    def __init__(
        self,
        store: RotationStore,
        ledger: AssignmentLedger,
        notifier: AssignmentNotifier,
        locks: RotationLocks,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._notifier = notifier
        self._locks = locks
        self._cursor = RotationCursor(ledger)

    async def skip(
        self,
        assignment_id: str,
        actor_id: str,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> SkipResult:
        """Skip *assignment_id* on behalf of *actor_id*.

        Raises:
            NotFoundError: The assignment or its rotation does not exist.
            AlreadySkipped: The assignment was skipped before.
            SkipNotAllowed: The rotation's skip limit has been reached.
            SkipReconciliationError: The replacement was created but the
                skip could not be fully recorded.
        """
        now = now or datetime.now(UTC)
        logger.info("Skip requested for assignment %s by %s", assignment_id, actor_id)

        original = await self._ledger.find_by_id(assignment_id)
        async with self._locks.hold(original.rotation_id):
            # Re-read under the lock; a concurrent skip may have won.
            original = await self._ledger.find_by_id(assignment_id)
            if original.is_skipped:
                msg = "This assignment has already been skipped"
                raise AlreadySkipped(msg)

            rotation = await self._store.get_rotation(original.rotation_id)
            chain = await self._ledger.find_for_day(rotation.id, original.assigned_date)
            check_skip_allowed(rotation, chain, original)

            chosen = await self._cursor.next_available(rotation, original.assigned_date)
            replacement = await self._ledger.create(
                AssignmentRecord(
                    id=make_id(),
                    rotation_id=rotation.id,
                    workspace_id=original.workspace_id,
                    assigned_date=original.assigned_date,
                    member_id=chosen.member_id,
                    channel_id=original.channel_id,
                    sequence=max(record.sequence for record in chain) + 1,
                    created_at=to_timestamp(now),
                )
            )

            try:
                await self._ledger.mark_skipped(
                    original.id, actor_id, reason, replacement.id, at=now
                )
                rotation.cursor = chosen.cursor
                await self._store.save_cursor(rotation.id, chosen.cursor)
            except Exception as exc:
                logger.exception(
                    "Skip of assignment %s needs manual reconciliation (replacement=%s)",
                    original.id,
                    replacement.id,
                )
                raise SkipReconciliationError(original.id, replacement.id, str(exc)) from exc

        await self._notifier.strike_through(rotation, original, actor_id, now)

        delivered = True
        try:
            await self._notifier.notify(
                rotation, replacement, max_attempts=settings.delivery_max_attempts
            )
        except DeliveryFailed as exc:
            logger.error(
                "Replacement assignment %s left pending for retry: %s", replacement.id, exc
            )
            delivered = False

        logger.info(
            "Skip completed: %s -> %s (member %s -> %s, cursor=%d)",
            original.id,
            replacement.id,
            original.member_id,
            chosen.member_id,
            chosen.cursor,
        )
        return SkipResult(
            original_assignment_id=original.id,
            new_assignment_id=replacement.id,
            new_member_id=chosen.member_id,
            delivered=delivered,
        )
