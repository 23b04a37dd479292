"""Tests for SlackChannel and protocol conformance."""

from unittest.mock import AsyncMock

import pytest
from slack_sdk.errors import SlackApiError

from rotabot.notifications.channels import NotificationChannel, NotificationMessage
from rotabot.notifications.slack_channel import SlackChannel
from rotabot.rotations.errors import DeliveryFailed

MESSAGE = NotificationMessage(text="hello", blocks=[{"type": "divider"}])


def _make_mock_client() -> AsyncMock:
    """Create a mock slack_sdk.web.async_client.AsyncWebClient."""
    client = AsyncMock()
    client.chat_postMessage = AsyncMock(return_value={"ok": True, "ts": "1717322400.000100"})
    client.chat_update = AsyncMock(return_value={"ok": True})
    return client


def test_slack_channel_satisfies_protocol() -> None:
    assert isinstance(SlackChannel(_make_mock_client()), NotificationChannel)


def test_name_property() -> None:
    assert SlackChannel(_make_mock_client()).name == "slack"


async def test_send_returns_ts() -> None:
    client = _make_mock_client()

    ts = await SlackChannel(client).send("C1", MESSAGE)

    assert ts == "1717322400.000100"
    client.chat_postMessage.assert_awaited_once_with(
        channel="C1", text="hello", blocks=[{"type": "divider"}]
    )


async def test_send_without_blocks_passes_none() -> None:
    client = _make_mock_client()

    await SlackChannel(client).send("C1", NotificationMessage(text="plain"))

    assert client.chat_postMessage.call_args.kwargs["blocks"] is None


async def test_send_api_error_raises_delivery_failed() -> None:
    client = _make_mock_client()
    client.chat_postMessage.side_effect = SlackApiError(
        "error", {"ok": False, "error": "channel_not_found"}
    )

    with pytest.raises(DeliveryFailed) as exc_info:
        await SlackChannel(client).send("C1", MESSAGE)
    assert exc_info.value.last_error == "channel_not_found"


async def test_send_network_error_raises_delivery_failed() -> None:
    client = _make_mock_client()
    client.chat_postMessage.side_effect = RuntimeError("network down")

    with pytest.raises(DeliveryFailed, match="network down"):
        await SlackChannel(client).send("C1", MESSAGE)


async def test_send_without_ts_raises() -> None:
    client = _make_mock_client()
    client.chat_postMessage.return_value = {"ok": True}

    with pytest.raises(DeliveryFailed):
        await SlackChannel(client).send("C1", MESSAGE)


async def test_edit_message_calls_chat_update() -> None:
    client = _make_mock_client()

    await SlackChannel(client).edit_message("C1", "ts1", MESSAGE)

    client.chat_update.assert_awaited_once_with(
        channel="C1", ts="ts1", text="hello", blocks=[{"type": "divider"}]
    )
