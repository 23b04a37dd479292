"""Tests for Slack interaction handlers."""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest

from rotabot.bot.handlers import handle_skip_action, handle_status_command
from rotabot.rotations.errors import AlreadySkipped, NotFoundError
from rotabot.rotations.ledger import AssignmentLedger
from rotabot.rotations.models import AssignmentRecord, RotationDefinition
from rotabot.rotations.recurrence import Frequency, RecurrenceSpec
from rotabot.rotations.skip import SkipResult
from rotabot.rotations.store import RotationStore

BODY = {"user": {"id": "U_ACTOR"}, "channel": {"id": "C1"}}
ACTION = {"action_id": "skip_person_abc", "value": "abc"}


def _make_engine(**kwargs) -> AsyncMock:
    engine = AsyncMock()
    engine.skip = AsyncMock(**kwargs)
    return engine


# -- Skip button -----------------------------------------------------------------


async def test_skip_action_calls_engine() -> None:
    ack, client = AsyncMock(), AsyncMock()
    engine = _make_engine(return_value=SkipResult("abc", "def", "B", delivered=True))

    await handle_skip_action(ack=ack, body=BODY, action=ACTION, client=client, engine=engine)

    ack.assert_awaited_once()
    engine.skip.assert_awaited_once_with("abc", "U_ACTOR")
    client.chat_postEphemeral.assert_not_awaited()


async def test_skip_rejection_shown_to_actor() -> None:
    client = AsyncMock()
    engine = _make_engine(side_effect=AlreadySkipped("This assignment has already been skipped"))

    await handle_skip_action(ack=AsyncMock(), body=BODY, action=ACTION, client=client, engine=engine)

    kwargs = client.chat_postEphemeral.await_args.kwargs
    assert kwargs["channel"] == "C1"
    assert kwargs["user"] == "U_ACTOR"
    assert "already been skipped" in kwargs["text"]


async def test_skip_missing_assignment() -> None:
    client = AsyncMock()
    engine = _make_engine(side_effect=NotFoundError("Assignment", "abc"))

    await handle_skip_action(ack=AsyncMock(), body=BODY, action=ACTION, client=client, engine=engine)

    assert "no longer exists" in client.chat_postEphemeral.await_args.kwargs["text"]


async def test_skip_unexpected_error() -> None:
    client = AsyncMock()
    engine = _make_engine(side_effect=RuntimeError("db down"))

    await handle_skip_action(ack=AsyncMock(), body=BODY, action=ACTION, client=client, engine=engine)

    assert "Failed to skip" in client.chat_postEphemeral.await_args.kwargs["text"]


async def test_skip_undelivered_replacement_is_reported() -> None:
    client = AsyncMock()
    engine = _make_engine(return_value=SkipResult("abc", "def", "B", delivered=False))

    await handle_skip_action(ack=AsyncMock(), body=BODY, action=ACTION, client=client, engine=engine)

    assert "<@B>" in client.chat_postEphemeral.await_args.kwargs["text"]


# -- /rota-status ----------------------------------------------------------------


@pytest.mark.usefixtures("_no_turso")
async def test_status_without_rotations(store: RotationStore, ledger: AssignmentLedger) -> None:
    say = AsyncMock()

    await handle_status_command(
        ack=AsyncMock(),
        command={"team_id": "T1", "channel_id": "C1"},
        say=say,
        store=store,
        ledger=ledger,
    )

    say.assert_awaited_once_with("No active rotations.")


@pytest.mark.usefixtures("_no_turso")
async def test_status_lists_rotation(store: RotationStore, ledger: AssignmentLedger) -> None:
    day = date(2025, 6, 2)
    await store.add_rotation(
        RotationDefinition(
            id="rot1",
            name="Standup host",
            workspace_id="T1",
            channel_id="C1",
            members=["A", "B"],
            recurrence=RecurrenceSpec(Frequency.DAILY, day),
        )
    )
    await ledger.create(
        AssignmentRecord(
            id="a1",
            rotation_id="rot1",
            workspace_id="T1",
            assigned_date=day,
            member_id="A",
            channel_id="C1",
        )
    )
    say = AsyncMock()

    await handle_status_command(
        ack=AsyncMock(),
        command={"team_id": "T1", "channel_id": "C1"},
        say=say,
        store=store,
        ledger=ledger,
        now=datetime(2025, 6, 2, 12, 0, tzinfo=UTC),
    )

    text = say.await_args.args[0]
    assert "*Standup host*" in text
    assert "today <@A>" in text
    assert "Tue Jun 03 10:00" in text
