"""RotationStore — libsql persistence for rotation definitions."""

from __future__ import annotations

import json
import logging

from rotabot.db import SchemaStore
from rotabot.rotations.errors import NotFoundError
from rotabot.rotations.models import RotationDefinition, RotationStatus, to_timestamp

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, name, workspace_id, channel_id, members, recurrence, notification_hour, "
    "notification_minute, timezone, cursor, status, custom_message, created_by, "
    "created_at, updated_at"
)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS rotations (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    workspace_id TEXT NOT NULL,
    channel_id TEXT NOT NULL,
    members TEXT NOT NULL,
    recurrence TEXT NOT NULL,
    notification_hour INTEGER NOT NULL DEFAULT 10,
    notification_minute INTEGER NOT NULL DEFAULT 0,
    timezone TEXT NOT NULL DEFAULT 'UTC',
    cursor INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active',
    custom_message TEXT,
    created_by TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_rotations_workspace_status
    ON rotations (workspace_id, status)
"""


class RotationStore(SchemaStore):
    """Persists rotation definitions in SQLite / Turso.

    Singleton accessed via ``RotationStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _SCHEMA = (_CREATE_TABLE, _CREATE_INDEX)
    _instance: RotationStore | None = None

    @classmethod
    def get(cls) -> RotationStore:
        """Return the shared RotationStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def add_rotation(self, rotation: RotationDefinition) -> RotationDefinition:
        """Validate and insert a new rotation. Returns the same object."""
        rotation.validate()
        async with self.connect() as db:
            await db.execute(
                f"INSERT INTO rotations ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rotation.to_row(),
            )
            await db.commit()
        logger.info("Added rotation: %s (%s)", rotation.name, rotation.id)
        return rotation

    async def find_rotation(self, rotation_id: str) -> RotationDefinition | None:
        """Fetch a rotation by ID, or None if not found."""
        async with self.connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM rotations WHERE id = ?", (rotation_id,)
            )
            row = await cursor.fetchone()
        return RotationDefinition.from_row(row) if row else None

    async def get_rotation(self, rotation_id: str) -> RotationDefinition:
        """Fetch a rotation by ID. Raises NotFoundError if missing."""
        rotation = await self.find_rotation(rotation_id)
        if rotation is None:
            raise NotFoundError("Rotation", rotation_id)
        return rotation

    async def list_active(self, workspace_id: str | None = None) -> list[RotationDefinition]:
        """Return active rotations in creation order, optionally for one workspace."""
        sql = f"SELECT {_COLUMNS} FROM rotations WHERE status = ?"
        params: tuple = (str(RotationStatus.ACTIVE),)
        if workspace_id is not None:
            sql += " AND workspace_id = ?"
            params += (workspace_id,)
        sql += " ORDER BY created_at, id"
        async with self.connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [RotationDefinition.from_row(row) for row in rows]

    async def save(self, rotation: RotationDefinition) -> None:
        """Persist every mutable field of *rotation* (cursor included)."""
        rotation.updated_at = to_timestamp()
        async with self.connect() as db:
            cursor = await db.execute(
                """
                UPDATE rotations
                SET name = ?, channel_id = ?, members = ?, recurrence = ?,
                    notification_hour = ?, notification_minute = ?, timezone = ?,
                    cursor = ?, status = ?, custom_message = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    rotation.name,
                    rotation.channel_id,
                    json.dumps(rotation.members),
                    json.dumps(rotation.recurrence.to_dict()),
                    rotation.notification_hour,
                    rotation.notification_minute,
                    rotation.timezone,
                    rotation.cursor,
                    str(rotation.status),
                    json.dumps(rotation.custom_message) if rotation.custom_message else None,
                    rotation.updated_at,
                    rotation.id,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError("Rotation", rotation.id)
        logger.debug("Saved rotation %s (cursor=%s)", rotation.id, rotation.cursor)

    async def save_cursor(self, rotation_id: str, cursor: int) -> None:
        """Persist only the cursor, leaving every other column as stored."""
        updated_at = to_timestamp()
        async with self.connect() as db:
            result = await db.execute(
                "UPDATE rotations SET cursor = ?, updated_at = ? WHERE id = ?",
                (cursor, updated_at, rotation_id),
            )
            await db.commit()
            if result.rowcount == 0:
                raise NotFoundError("Rotation", rotation_id)
        logger.debug("Moved cursor of rotation %s to %d", rotation_id, cursor)

    async def deactivate(self, rotation_id: str) -> bool:
        """Mark a rotation inactive. Returns True if a row was updated."""
        async with self.connect() as db:
            cursor = await db.execute(
                "UPDATE rotations SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (
                    str(RotationStatus.INACTIVE),
                    to_timestamp(),
                    rotation_id,
                    str(RotationStatus.ACTIVE),
                ),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        if updated:
            logger.info("Deactivated rotation: %s", rotation_id)
        return updated

