"""Rotation definition and assignment record data models."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rotabot.rotations import recurrence
from rotabot.rotations.errors import ValidationError
from rotabot.rotations.recurrence import RecurrenceSpec

MAX_NAME_LENGTH = 100
MAX_MEMBERS = 50
ALLOWED_MINUTES = (0, 15, 30, 45)


def make_id() -> str:
    """Generate a new rotation or assignment ID."""
    return uuid.uuid4().hex


def to_timestamp(dt: datetime | None = None) -> str:
    """Format an instant (default now) as a second-precision UTC ISO string."""
    dt = dt or datetime.now(UTC)
    return dt.astimezone(UTC).isoformat(timespec="seconds")


class RotationStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class DeliveryState(StrEnum):
    PENDING = "pending"
    DELIVERED = "delivered"
    ABANDONED = "abandoned"


class SkipState(StrEnum):
    NOT_SKIPPED = "not_skipped"
    SKIPPED = "skipped"


@dataclass
class RotationDefinition:
    """A duty rotation: who takes turns, when, and where to announce it.

    Attributes:
        id: Unique identifier (UUID hex).
        name: Human-readable name shown in notifications.
        workspace_id: Owning Slack workspace (team) ID.
        channel_id: Slack channel that receives notifications.
        members: Ordered member user IDs. Duplicates are allowed.
        recurrence: Which days the rotation fires on.
        notification_hour: Local hour (0-23) in ``timezone``.
        notification_minute: One of 0, 15, 30, 45.
        timezone: IANA zone the notification time is expressed in.
        cursor: Index of the member most recently assigned. None on a new
            definition means "nobody yet", so ``members[0]`` goes first.
        status: ``active`` or ``inactive`` (soft deactivation).
        custom_message: Optional Slack rich_text template appended to
            notifications.
        created_by: User ID of the creator.
        created_at: ISO 8601 timestamp.
        updated_at: ISO 8601 timestamp of the last save.
    """

    id: str
    name: str
    workspace_id: str
    channel_id: str
    members: list[str]
    recurrence: RecurrenceSpec
    notification_hour: int = 10
    notification_minute: int = 0
    timezone: str = "UTC"
    cursor: int | None = None
    status: RotationStatus = RotationStatus.ACTIVE
    custom_message: dict[str, Any] | None = None
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = to_timestamp()
        if not self.updated_at:
            self.updated_at = self.created_at
        if self.cursor is None:
            self.cursor = len(self.members) - 1 if self.members else 0

    # -- Convenience properties ------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status == RotationStatus.ACTIVE

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def notification_minutes(self) -> int:
        """Notification time as minutes since local midnight."""
        return self.notification_hour * 60 + self.notification_minute

    def zone(self) -> ZoneInfo:
        """Return the rotation's timezone. Raises ValidationError if unknown."""
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown timezone: {self.timezone!r}"
            raise ValidationError(msg) from exc

    def local_day(self, now: datetime) -> date:
        """The calendar day of *now* in the rotation's timezone."""
        return now.astimezone(self.zone()).date()

    # -- Validation ------------------------------------------------------------

    def validate(self) -> None:
        """Raise ValidationError listing every problem with this definition."""
        errors: list[str] = []
        if not self.name.strip():
            errors.append("Name is required")
        elif len(self.name) > MAX_NAME_LENGTH:
            errors.append(f"Name must be less than {MAX_NAME_LENGTH} characters")
        if not self.channel_id:
            errors.append("Channel is required")
        if not self.members:
            errors.append("At least one team member is required")
        elif len(self.members) > MAX_MEMBERS:
            errors.append(f"Maximum {MAX_MEMBERS} members allowed")
        if not 0 <= self.notification_hour <= 23:
            errors.append("Notification hour must be between 0 and 23")
        if self.notification_minute not in ALLOWED_MINUTES:
            errors.append("Notification minute must be 0, 15, 30, or 45")
        if not recurrence.is_valid(self.recurrence):
            errors.append("Recurrence is invalid")
        try:
            self.zone()
        except ValidationError as exc:
            errors.append(str(exc))
        if errors:
            msg = "; ".join(errors)
            raise ValidationError(msg)

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``rotations`` column order."""
        return (
            self.id,
            self.name,
            self.workspace_id,
            self.channel_id,
            json.dumps(self.members),
            json.dumps(self.recurrence.to_dict()),
            self.notification_hour,
            self.notification_minute,
            self.timezone,
            self.cursor,
            str(self.status),
            json.dumps(self.custom_message) if self.custom_message else None,
            self.created_by,
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> RotationDefinition:
        """Deserialize from a ``rotations`` row tuple."""
        return cls(
            id=row[0],
            name=row[1],
            workspace_id=row[2],
            channel_id=row[3],
            members=json.loads(row[4]),
            recurrence=RecurrenceSpec.from_dict(json.loads(row[5])),
            notification_hour=row[6],
            notification_minute=row[7],
            timezone=row[8],
            cursor=row[9],
            status=RotationStatus(row[10]),
            custom_message=json.loads(row[11]) if row[11] else None,
            created_by=row[12] or "",
            created_at=row[13],
            updated_at=row[14],
        )


@dataclass
class AssignmentRecord:
    """Who was (or will be) notified for a rotation on a given day.

    Records for the same rotation and day form a chain ordered by
    ``sequence``: a skip marks one record skipped and links it to the
    replacement via ``replaced_by``.
    """

    id: str
    rotation_id: str
    workspace_id: str
    assigned_date: date
    member_id: str
    channel_id: str
    sequence: int = 0
    delivery_state: DeliveryState = DeliveryState.PENDING
    delivered_at: str | None = None
    message_handle: str | None = None
    skip_state: SkipState = SkipState.NOT_SKIPPED
    skipped_by: str | None = None
    skipped_at: str | None = None
    skip_reason: str | None = None
    replaced_by: str | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = to_timestamp()

    @property
    def is_skipped(self) -> bool:
        return self.skip_state == SkipState.SKIPPED

    @property
    def is_delivered(self) -> bool:
        return self.delivery_state == DeliveryState.DELIVERED

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``assignments`` column order."""
        return (
            self.id,
            self.rotation_id,
            self.workspace_id,
            self.assigned_date.isoformat(),
            self.sequence,
            self.member_id,
            self.channel_id,
            str(self.delivery_state),
            self.delivered_at,
            self.message_handle,
            str(self.skip_state),
            self.skipped_by,
            self.skipped_at,
            self.skip_reason,
            self.replaced_by,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> AssignmentRecord:
        """Deserialize from an ``assignments`` row tuple."""
        return cls(
            id=row[0],
            rotation_id=row[1],
            workspace_id=row[2],
            assigned_date=date.fromisoformat(row[3]),
            sequence=row[4],
            member_id=row[5],
            channel_id=row[6],
            delivery_state=DeliveryState(row[7]),
            delivered_at=row[8],
            message_handle=row[9],
            skip_state=SkipState(row[10]),
            skipped_by=row[11],
            skipped_at=row[12],
            skip_reason=row[13],
            replaced_by=row[14],
            created_at=row[15],
        )
