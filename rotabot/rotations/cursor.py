"""Rotation cursor — picks whose turn is next and serializes rotation mutations."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rotabot.rotations.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Collection, Sequence
    from datetime import date

    from rotabot.rotations.ledger import AssignmentLedger
    from rotabot.rotations.models import RotationDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NextMember:
    """The member chosen for a slot and the cursor value that selects them."""

    member_id: str
    cursor: int


def pick_next_member(
    members: Sequence[str], cursor: int, used: Collection[str]
) -> NextMember:
    """Return the first member after *cursor* that is not in *used*.

    Scans circularly from ``(cursor + 1) % len(members)`` for at most one full
    lap. An out-of-range cursor wraps. When every member is used, falls back
    to ``(cursor + 1) % len(members)`` regardless.
    """
    count = len(members)
    if count == 0:
        msg = "Rotation has no members"
        raise ValidationError(msg)

    start = (cursor + 1) % count
    for step in range(count):
        index = (start + step) % count
        if members[index] not in used:
            return NextMember(member_id=members[index], cursor=index)

    logger.warning("All %d members already used today; falling back to index %d", count, start)
    return NextMember(member_id=members[start], cursor=start)


class RotationCursor:
    """Chooses the next available member using the day's ledger records.

    Shared by the scheduling cycle and the skip engine so both advance the
    cursor the same way.
    """

    def __init__(self, ledger: AssignmentLedger) -> None:
        self._ledger = ledger

    async def next_available(self, rotation: RotationDefinition, day: date) -> NextMember:
        """Return the next member not yet assigned for *rotation* on *day*.

        Members count as used once assigned, skipped or not. The caller
        persists ``NextMember.cursor`` onto the rotation.
        """
        records = await self._ledger.find_for_day(rotation.id, day)
        used = {record.member_id for record in records}
        return pick_next_member(rotation.members, rotation.cursor or 0, used)


class RotationLocks:
    """Per-rotation asyncio locks.

    The scheduling cycle and the skip engine both hold a rotation's lock
    while they read its chain, pick a member, write records and move the
    cursor, so a skip can never interleave with a cycle on the same rotation.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, rotation_id: str) -> asyncio.Lock:
        lock = self._locks.get(rotation_id)
        if lock is None:
            lock = self._locks[rotation_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, rotation_id: str) -> AsyncIterator[None]:
        async with self.lock_for(rotation_id):
            yield
