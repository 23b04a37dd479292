"""Notification delivery with exponential-backoff retries."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from rotabot.notifications.blocks import assignment_message, skipped_message
from rotabot.rotations.errors import DeliveryFailed

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping
    from datetime import datetime

    from rotabot.notifications.channels import NotificationChannel
    from rotabot.rotations.ledger import AssignmentLedger
    from rotabot.rotations.models import AssignmentRecord, RotationDefinition

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed *attempt* (1-indexed): 2, 4, 8, ..."""
    return float(2**attempt)


async def deliver_with_retry(
    send: Callable[[], Awaitable[str]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    context: Mapping[str, Any] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> str:
    """Call *send* until it returns a message handle or attempts run out.

    Args:
        send: Zero-argument coroutine factory performing one delivery attempt.
        max_attempts: Total attempts before giving up.
        context: Identifiers (rotation, assignment, channel) added to every
            log line so attempts can be correlated.
        sleep: Awaitable delay function, replaceable in tests.

    Raises:
        DeliveryFailed: After the last attempt fails, carrying its error.
    """
    label = " ".join(f"{key}={value}" for key, value in (context or {}).items())
    last_error = "no attempts made"

    for attempt in range(1, max_attempts + 1):
        try:
            handle = await send()
        except Exception as exc:
            last_error = str(exc) or exc.__class__.__name__
            logger.warning(
                "Delivery attempt %d/%d failed (%s): %s",
                attempt,
                max_attempts,
                label,
                last_error,
            )
            if attempt < max_attempts:
                await sleep(backoff_delay(attempt))
            continue
        logger.info("Delivery attempt %d/%d succeeded (%s)", attempt, max_attempts, label)
        return handle

    msg = f"Failed to send notification after {max_attempts} attempts: {last_error}"
    raise DeliveryFailed(msg, last_error=last_error)


class AssignmentNotifier:
    """Sends assignment notifications through a channel and records the outcome.

    Args:
        channel: NotificationChannel that posts and edits messages.
        ledger: AssignmentLedger to mark delivered records in.
        sleep: Delay function used between attempts.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        ledger: AssignmentLedger,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._channel = channel
        self._ledger = ledger
        self._sleep = sleep
        self._in_flight: set[str] = set()

    def is_in_flight(self, assignment_id: str) -> bool:
        """Return True while a delivery for *assignment_id* is underway."""
        return assignment_id in self._in_flight

    async def notify(
        self,
        rotation: RotationDefinition,
        record: AssignmentRecord,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> str:
        """Send the notification for *record* and mark it delivered.

        Raises DeliveryFailed when every attempt fails; the record stays
        pending.
        """
        message = assignment_message(
            rotation.name,
            record.member_id,
            assignment_id=record.id,
            member_count=rotation.member_count,
            custom_message=rotation.custom_message,
        )
        self._in_flight.add(record.id)
        try:
            handle = await deliver_with_retry(
                lambda: self._channel.send(record.channel_id, message),
                max_attempts=max_attempts,
                context={
                    "rotation": rotation.id,
                    "assignment": record.id,
                    "channel": record.channel_id,
                },
                sleep=self._sleep,
            )
            await self._ledger.mark_delivered(record.id, handle)
        finally:
            self._in_flight.discard(record.id)
        return handle

    async def strike_through(
        self,
        rotation: RotationDefinition,
        record: AssignmentRecord,
        actor_id: str,
        skipped_at: datetime,
    ) -> bool:
        """Edit a skipped record's message to show who skipped it and when.

        Best effort: failures are logged and reported as False.
        """
        if not record.message_handle:
            logger.warning("No message handle for assignment %s, cannot update message", record.id)
            return False
        try:
            message = skipped_message(
                rotation.name,
                record.member_id,
                actor_id,
                skipped_at.astimezone(rotation.zone()),
            )
            await self._channel.edit_message(record.channel_id, record.message_handle, message)
        except Exception:
            logger.exception(
                "Error updating skipped message for assignment %s (channel=%s ts=%s)",
                record.id,
                record.channel_id,
                record.message_handle,
            )
            return False
        return True
