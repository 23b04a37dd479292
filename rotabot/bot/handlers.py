"""Slack interaction handlers: the skip button and the /rota-status command."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from rotabot.notifications.blocks import parse_skip_action
from rotabot.rotations.eligibility import next_run_at
from rotabot.rotations.errors import NotFoundError, SkipRejected

if TYPE_CHECKING:
    from slack_sdk.web.async_client import AsyncWebClient

    from rotabot.rotations.ledger import AssignmentLedger
    from rotabot.rotations.skip import SkipEngine
    from rotabot.rotations.store import RotationStore

logger = logging.getLogger(__name__)


async def _reply_ephemeral(client: AsyncWebClient, body: dict[str, Any], text: str) -> None:
    channel_id = (body.get("channel") or {}).get("id")
    user_id = (body.get("user") or {}).get("id")
    if not channel_id or not user_id:
        logger.warning("Cannot send ephemeral reply, missing channel or user in payload")
        return
    await client.chat_postEphemeral(channel=channel_id, user=user_id, text=text)


async def handle_skip_action(
    ack: Any,
    body: dict[str, Any],
    action: dict[str, Any],
    client: AsyncWebClient,
    engine: SkipEngine,
) -> None:
    """Handle a click on the "Skip Person" button."""
    await ack()
    assignment_id = parse_skip_action(action.get("action_id", "")) or action.get("value")
    actor_id = (body.get("user") or {}).get("id", "")
    if not assignment_id:
        logger.warning("Skip action without an assignment ID: %s", action.get("action_id"))
        return

    logger.info("Skip button clicked: assignment=%s user=%s", assignment_id, actor_id)
    try:
        result = await engine.skip(assignment_id, actor_id)
    except SkipRejected as exc:
        await _reply_ephemeral(client, body, f"⚠️ {exc.reason}")
        return
    except NotFoundError:
        await _reply_ephemeral(client, body, "⚠️ That assignment no longer exists.")
        return
    except Exception:
        logger.exception("Error skipping assignment %s", assignment_id)
        await _reply_ephemeral(client, body, "❌ Failed to skip. Please try again.")
        return

    if not result.delivered:
        await _reply_ephemeral(
            client,
            body,
            f"Skipped. <@{result.new_member_id}> is up next, but the notification "
            "could not be posted yet; it will be retried.",
        )


async def handle_status_command(
    ack: Any,
    command: dict[str, Any],
    say: Any,
    store: RotationStore,
    ledger: AssignmentLedger,
    now: datetime | None = None,
) -> None:
    """Handle /rota-status — list the channel's active rotations and today's assignee."""
    await ack()
    now = now or datetime.now(UTC)
    rotations = await store.list_active(command.get("team_id"))
    channel_id = command.get("channel_id")
    if channel_id:
        rotations = [r for r in rotations if r.channel_id == channel_id]
    if not rotations:
        await say("No active rotations.")
        return

    lines = ["*Active rotations*"]
    for rotation in rotations:
        chain = await ledger.find_for_day(rotation.id, rotation.local_day(now))
        current = next((r for r in reversed(chain) if not r.is_skipped), None)
        today = f"<@{current.member_id}>" if current else "not assigned yet"
        upcoming = next_run_at(rotation, now)
        when = upcoming.strftime("%a %b %d %H:%M %Z") if upcoming else "none"
        lines.append(f"• *{rotation.name}* in <#{rotation.channel_id}>: today {today}, next {when}")
    await say("\n".join(lines))
