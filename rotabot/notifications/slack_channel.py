"""Slack implementation of the NotificationChannel protocol."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from slack_sdk.errors import SlackApiError

from rotabot.rotations.errors import DeliveryFailed

if TYPE_CHECKING:
    from slack_sdk.web.async_client import AsyncWebClient

    from rotabot.notifications.channels import NotificationMessage

logger = logging.getLogger(__name__)


class SlackChannel:
    """Posts rotation notifications to Slack channels via the Web API."""

    def __init__(self, client: AsyncWebClient) -> None:
        self._client = client

    @property
    def name(self) -> str:
        return "slack"

    async def send(self, channel_id: str, message: NotificationMessage) -> str:
        """Post *message* to *channel_id*. Returns the message ``ts``."""
        try:
            resp = await self._client.chat_postMessage(
                channel=channel_id,
                text=message.text,
                blocks=message.blocks or None,
            )
        except SlackApiError as exc:
            error = exc.response.get("error") if exc.response is not None else None
            error = str(error or exc)
            msg = f"Slack API error posting to {channel_id}: {error}"
            raise DeliveryFailed(msg, last_error=error) from exc
        except Exception as exc:
            msg = f"Failed to post to {channel_id}: {exc}"
            raise DeliveryFailed(msg, last_error=str(exc)) from exc

        ts = resp.get("ts")
        if not ts:
            msg = f"Slack returned no message ts for {channel_id}"
            raise DeliveryFailed(msg)
        logger.info("SlackChannel: posted to %s (ts=%s)", channel_id, ts)
        return ts

    async def edit_message(
        self, channel_id: str, message_handle: str, message: NotificationMessage
    ) -> None:
        """Replace a posted message. Errors propagate; callers decide severity."""
        await self._client.chat_update(
            channel=channel_id,
            ts=message_handle,
            text=message.text,
            blocks=message.blocks or None,
        )
        logger.info("SlackChannel: updated message %s in %s", message_handle, channel_id)
