"""Eligibility gate — should a rotation fire on this scheduler pass?"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING

from rotabot.rotations import recurrence
from rotabot.rotations.errors import ValidationError

if TYPE_CHECKING:
    from rotabot.rotations.models import RotationDefinition

logger = logging.getLogger(__name__)


def should_run(rotation: RotationDefinition, now: datetime) -> bool:
    """Return True if *rotation* is due today and its notification time has passed.

    Eligibility runs from the configured minute until local midnight, so a
    pass that comes late still catches up the same day. Whether today's
    assignment already exists is the caller's concern. Invalid recurrence
    or timezone data fails closed.
    """
    try:
        local_now = now.astimezone(rotation.zone())
        occurrence = recurrence.next_occurrence(rotation.recurrence, local_now.date())
    except (ValidationError, ValueError, TypeError, KeyError) as exc:
        logger.warning(
            "Rotation %s (%s) has an unusable schedule: %s",
            rotation.id,
            rotation.name,
            exc,
        )
        return False

    if occurrence is None:
        logger.debug("Rotation %s has no further occurrences", rotation.id)
        return False
    if occurrence != local_now.date():
        return False

    current_minutes = local_now.hour * 60 + local_now.minute
    due = current_minutes >= rotation.notification_minutes
    logger.debug(
        "Time check for rotation %s: tz=%s now=%02d:%02d notify=%02d:%02d due=%s",
        rotation.id,
        rotation.timezone,
        local_now.hour,
        local_now.minute,
        rotation.notification_hour,
        rotation.notification_minute,
        due,
    )
    return due


def next_run_at(rotation: RotationDefinition, now: datetime) -> datetime | None:
    """Return the next notification instant at or after *now*, in the rotation's zone.

    Used for status and preview displays. Returns None when the schedule is
    unusable or exhausted. Today counts only while the notification time is
    still ahead.
    """
    try:
        zone = rotation.zone()
        local_now = now.astimezone(zone)
        notify_at = time(rotation.notification_hour, rotation.notification_minute)
        day = local_now.date()
        while True:
            occurrence = recurrence.next_occurrence(rotation.recurrence, day)
            if occurrence is None:
                return None
            candidate = datetime.combine(occurrence, notify_at, tzinfo=zone)
            if candidate >= local_now:
                return candidate
            day = occurrence + timedelta(days=1)
    except (ValidationError, ValueError, TypeError, KeyError):
        logger.warning("Cannot compute next run for rotation %s", rotation.id)
        return None
