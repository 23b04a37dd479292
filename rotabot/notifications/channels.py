"""NotificationChannel protocol — interface for rotation notification delivery."""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class NotificationMessage:
    """Channel-ready message content: fallback text plus optional Block Kit blocks."""

    text: str
    blocks: list[dict[str, Any]] = field(default_factory=list)


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol that all notification channels must satisfy."""

    @property
    def name(self) -> str:
        """Unique channel identifier (e.g. 'slack')."""
        ...

    async def send(self, channel_id: str, message: NotificationMessage) -> str:
        """Post a message. Returns a handle for later edits.

        Raises DeliveryFailed when the message could not be posted.
        """
        ...

    async def edit_message(
        self, channel_id: str, message_handle: str, message: NotificationMessage
    ) -> None:
        """Replace the content of a previously sent message."""
        ...
