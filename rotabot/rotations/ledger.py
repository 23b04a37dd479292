"""AssignmentLedger — the record of who was notified for which rotation and day."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rotabot.db import SchemaStore
from rotabot.rotations.errors import AlreadySkipped, DuplicateAssignmentError, NotFoundError
from rotabot.rotations.models import AssignmentRecord, DeliveryState, SkipState, to_timestamp

if TYPE_CHECKING:
    from datetime import date, datetime

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, rotation_id, workspace_id, assigned_date, sequence, member_id, channel_id, "
    "delivery_state, delivered_at, message_handle, skip_state, skipped_by, skipped_at, "
    "skip_reason, replaced_by, created_at"
)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS assignments (
    id TEXT PRIMARY KEY,
    rotation_id TEXT NOT NULL,
    workspace_id TEXT NOT NULL,
    assigned_date TEXT NOT NULL,
    sequence INTEGER NOT NULL DEFAULT 0,
    member_id TEXT NOT NULL,
    channel_id TEXT NOT NULL,
    delivery_state TEXT NOT NULL DEFAULT 'pending',
    delivered_at TEXT,
    message_handle TEXT,
    skip_state TEXT NOT NULL DEFAULT 'not_skipped',
    skipped_by TEXT,
    skipped_at TEXT,
    skip_reason TEXT,
    replaced_by TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (rotation_id, assigned_date, sequence)
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_assignments_pending
    ON assignments (delivery_state, created_at)
"""


class AssignmentLedger(SchemaStore):
    """Persists assignment records in SQLite / Turso.

    A record is identified by ``(rotation_id, assigned_date, sequence)``;
    inserting a second record into an occupied slot raises
    :class:`DuplicateAssignmentError` rather than creating a duplicate.

    Singleton accessed via ``AssignmentLedger.get()``.
    """

    _SCHEMA = (_CREATE_TABLE, _CREATE_INDEX)
    _instance: AssignmentLedger | None = None

    @classmethod
    def get(cls) -> AssignmentLedger:
        """Return the shared AssignmentLedger instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Writes ----------------------------------------------------------------

    async def create(self, record: AssignmentRecord) -> AssignmentRecord:
        """Insert a record. Raises DuplicateAssignmentError if its slot is taken."""
        async with self.connect() as db:
            cursor = await db.execute(
                f"INSERT OR IGNORE INTO assignments ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                record.to_row(),
            )
            await db.commit()
            inserted = cursor.rowcount > 0
        if not inserted:
            msg = (
                f"Assignment slot already taken: rotation={record.rotation_id} "
                f"date={record.assigned_date} sequence={record.sequence}"
            )
            raise DuplicateAssignmentError(msg)
        logger.info(
            "Created assignment %s: rotation=%s member=%s date=%s seq=%d",
            record.id,
            record.rotation_id,
            record.member_id,
            record.assigned_date,
            record.sequence,
        )
        return record

    async def mark_delivered(
        self, assignment_id: str, message_handle: str, at: datetime | None = None
    ) -> None:
        """Record a successful delivery and the message handle it returned."""
        async with self.connect() as db:
            cursor = await db.execute(
                "UPDATE assignments SET delivery_state = ?, delivered_at = ?, "
                "message_handle = ? WHERE id = ?",
                (str(DeliveryState.DELIVERED), to_timestamp(at), message_handle, assignment_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError("Assignment", assignment_id)
        logger.info("Marked assignment %s delivered (handle=%s)", assignment_id, message_handle)

    async def mark_skipped(
        self,
        assignment_id: str,
        actor_id: str,
        reason: str | None,
        replacement_id: str,
        at: datetime | None = None,
    ) -> None:
        """Mark a record skipped and link it to its replacement."""
        async with self.connect() as db:
            cursor = await db.execute(
                """
                UPDATE assignments
                SET skip_state = ?, skipped_by = ?, skipped_at = ?, skip_reason = ?,
                    replaced_by = ?
                WHERE id = ? AND skip_state = ?
                """,
                (
                    str(SkipState.SKIPPED),
                    actor_id,
                    to_timestamp(at),
                    reason,
                    replacement_id,
                    assignment_id,
                    str(SkipState.NOT_SKIPPED),
                ),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        if not updated:
            # Raises NotFoundError when the id is unknown
            await self.find_by_id(assignment_id)
            msg = "This assignment has already been skipped"
            raise AlreadySkipped(msg)
        logger.info(
            "Marked assignment %s skipped by %s (replacement=%s)",
            assignment_id,
            actor_id,
            replacement_id,
        )

    async def abandon_pending_before(self, cutoff: datetime) -> int:
        """Move pending records created before *cutoff* to ``abandoned``."""
        async with self.connect() as db:
            cursor = await db.execute(
                "UPDATE assignments SET delivery_state = ? "
                "WHERE delivery_state = ? AND created_at < ?",
                (str(DeliveryState.ABANDONED), str(DeliveryState.PENDING), to_timestamp(cutoff)),
            )
            await db.commit()
            count = cursor.rowcount
        if count:
            logger.warning("Abandoned %d undelivered assignment(s) created before %s", count, cutoff)
        return count

    # -- Reads -----------------------------------------------------------------

    async def find_by_id(self, assignment_id: str) -> AssignmentRecord:
        """Fetch a record by ID. Raises NotFoundError if missing."""
        async with self.connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM assignments WHERE id = ?", (assignment_id,)
            )
            row = await cursor.fetchone()
        if row is None:
            raise NotFoundError("Assignment", assignment_id)
        return AssignmentRecord.from_row(row)

    async def find_for_day(self, rotation_id: str, day: date) -> list[AssignmentRecord]:
        """Return the day's chain of records for a rotation, oldest first."""
        async with self.connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM assignments "
                "WHERE rotation_id = ? AND assigned_date = ? ORDER BY sequence",
                (rotation_id, day.isoformat()),
            )
            rows = await cursor.fetchall()
        return [AssignmentRecord.from_row(row) for row in rows]

    async def exists_for_day(self, rotation_id: str, day: date) -> bool:
        """Return True if any record exists for the rotation on *day*."""
        async with self.connect() as db:
            cursor = await db.execute(
                "SELECT 1 FROM assignments WHERE rotation_id = ? AND assigned_date = ? LIMIT 1",
                (rotation_id, day.isoformat()),
            )
            row = await cursor.fetchone()
        return row is not None

    async def find_pending(
        self, created_after: datetime, created_before: datetime
    ) -> list[AssignmentRecord]:
        """Return undelivered, unskipped records created in [created_after, created_before).

        Skipped records are excluded; their replacement carries the duty.
        """
        async with self.connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM assignments "
                "WHERE delivery_state = ? AND skip_state = ? "
                "AND created_at >= ? AND created_at < ? "
                "ORDER BY created_at",
                (
                    str(DeliveryState.PENDING),
                    str(SkipState.NOT_SKIPPED),
                    to_timestamp(created_after),
                    to_timestamp(created_before),
                ),
            )
            rows = await cursor.fetchall()
        return [AssignmentRecord.from_row(row) for row in rows]

    async def list_recent(self, rotation_id: str, limit: int = 10) -> list[AssignmentRecord]:
        """Return a rotation's most recent records, newest first."""
        async with self.connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM assignments WHERE rotation_id = ? "
                "ORDER BY assigned_date DESC, sequence DESC LIMIT ?",
                (rotation_id, limit),
            )
            rows = await cursor.fetchall()
        return [AssignmentRecord.from_row(row) for row in rows]
