"""Tests for SkipEngine — handing a day's duty to the next member."""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from rotabot.rotations.cursor import RotationLocks
from rotabot.rotations.cycle import RotationScheduler
from rotabot.rotations.delivery import AssignmentNotifier
from rotabot.rotations.errors import AlreadySkipped, NotFoundError, SkipNotAllowed
from rotabot.rotations.ledger import AssignmentLedger
from rotabot.rotations.models import (
    AssignmentRecord,
    DeliveryState,
    RotationDefinition,
    SkipState,
)
from rotabot.rotations.recurrence import Frequency, RecurrenceSpec
from rotabot.rotations.skip import SkipEngine, check_skip_allowed, consecutive_skip_count
from rotabot.rotations.store import RotationStore

pytestmark = pytest.mark.usefixtures("_no_turso")

MONDAY = date(2025, 6, 2)
NOW = datetime(2025, 6, 2, 10, 0, tzinfo=UTC)
LATER = NOW + timedelta(minutes=20)


def _make_rotation(members: list[str] | None = None) -> RotationDefinition:
    return RotationDefinition(
        id="rot1",
        name="Standup host",
        workspace_id="T1",
        channel_id="C1",
        members=members or ["A", "B", "C"],
        recurrence=RecurrenceSpec(Frequency.DAILY, MONDAY),
    )


@pytest.fixture
def channel() -> AsyncMock:
    ch = AsyncMock()
    ch.send = AsyncMock(side_effect=[f"1717322400.00010{i}" for i in range(10)])
    return ch


@pytest.fixture
def locks() -> RotationLocks:
    return RotationLocks()


@pytest.fixture
def notifier(ledger: AssignmentLedger, channel: AsyncMock) -> AssignmentNotifier:
    return AssignmentNotifier(channel, ledger, sleep=AsyncMock())


@pytest.fixture
def engine(
    store: RotationStore, ledger: AssignmentLedger, notifier: AssignmentNotifier, locks: RotationLocks
) -> SkipEngine:
    return SkipEngine(store, ledger, notifier, locks)


async def _assign_today(
    store: RotationStore,
    ledger: AssignmentLedger,
    notifier: AssignmentNotifier,
    locks: RotationLocks,
    members: list[str] | None = None,
) -> AssignmentRecord:
    await store.add_rotation(_make_rotation(members))
    await RotationScheduler(store, ledger, notifier, locks).run_cycle(NOW)
    [record] = await ledger.find_for_day("rot1", MONDAY)
    return record


# -- Happy path ------------------------------------------------------------------


async def test_skip_assigns_next_member(
    engine: SkipEngine,
    store: RotationStore,
    ledger: AssignmentLedger,
    notifier: AssignmentNotifier,
    locks: RotationLocks,
    channel: AsyncMock,
) -> None:
    original = await _assign_today(store, ledger, notifier, locks)

    result = await engine.skip(original.id, "U_ACTOR", reason="on leave", now=LATER)

    assert result.original_assignment_id == original.id
    assert result.new_member_id == "B"
    assert result.delivered is True

    skipped = await ledger.find_by_id(original.id)
    assert skipped.is_skipped
    assert skipped.skipped_by == "U_ACTOR"
    assert skipped.replaced_by == result.new_assignment_id

    replacement = await ledger.find_by_id(result.new_assignment_id)
    assert replacement.sequence == 1
    assert replacement.assigned_date == MONDAY
    assert replacement.is_delivered
    assert (await store.get_rotation("rot1")).cursor == 1

    channel_id, handle, _ = channel.edit_message.await_args.args
    assert (channel_id, handle) == ("C1", original.message_handle)


async def test_skip_limit_with_three_members(
    engine: SkipEngine,
    store: RotationStore,
    ledger: AssignmentLedger,
    notifier: AssignmentNotifier,
    locks: RotationLocks,
) -> None:
    first = await _assign_today(store, ledger, notifier, locks)

    second = await engine.skip(first.id, "U_ACTOR", now=LATER)
    third = await engine.skip(second.new_assignment_id, "U_ACTOR", now=LATER)
    assert (second.new_member_id, third.new_member_id) == ("B", "C")

    with pytest.raises(SkipNotAllowed, match=r"\(2/2\)"):
        await engine.skip(third.new_assignment_id, "U_ACTOR", now=LATER)
    assert len(await ledger.find_for_day("rot1", MONDAY)) == 3


# -- Rejections ------------------------------------------------------------------


async def test_single_member_cannot_skip(
    engine: SkipEngine,
    store: RotationStore,
    ledger: AssignmentLedger,
    notifier: AssignmentNotifier,
    locks: RotationLocks,
) -> None:
    original = await _assign_today(store, ledger, notifier, locks, members=["A"])

    with pytest.raises(SkipNotAllowed, match="only one member"):
        await engine.skip(original.id, "U_ACTOR", now=LATER)
    assert len(await ledger.find_for_day("rot1", MONDAY)) == 1


async def test_already_skipped(
    engine: SkipEngine,
    store: RotationStore,
    ledger: AssignmentLedger,
    notifier: AssignmentNotifier,
    locks: RotationLocks,
) -> None:
    original = await _assign_today(store, ledger, notifier, locks)
    await engine.skip(original.id, "U_ACTOR", now=LATER)

    with pytest.raises(AlreadySkipped):
        await engine.skip(original.id, "U_OTHER", now=LATER)
    assert len(await ledger.find_for_day("rot1", MONDAY)) == 2


async def test_unknown_assignment(engine: SkipEngine) -> None:
    with pytest.raises(NotFoundError):
        await engine.skip("nope", "U_ACTOR")


# -- Partial failures ------------------------------------------------------------


async def test_message_edit_failure_does_not_fail_skip(
    engine: SkipEngine,
    store: RotationStore,
    ledger: AssignmentLedger,
    notifier: AssignmentNotifier,
    locks: RotationLocks,
    channel: AsyncMock,
) -> None:
    original = await _assign_today(store, ledger, notifier, locks)
    channel.edit_message.side_effect = RuntimeError("message_not_found")

    result = await engine.skip(original.id, "U_ACTOR", now=LATER)

    assert result.delivered is True
    assert (await ledger.find_by_id(result.new_assignment_id)).is_delivered


async def test_replacement_delivery_failure_stays_pending(
    engine: SkipEngine,
    store: RotationStore,
    ledger: AssignmentLedger,
    notifier: AssignmentNotifier,
    locks: RotationLocks,
    channel: AsyncMock,
) -> None:
    original = await _assign_today(store, ledger, notifier, locks)
    channel.send.side_effect = RuntimeError("rate_limited")

    result = await engine.skip(original.id, "U_ACTOR", now=LATER)

    assert result.delivered is False
    replacement = await ledger.find_by_id(result.new_assignment_id)
    assert replacement.delivery_state == DeliveryState.PENDING
    assert (await ledger.find_by_id(original.id)).is_skipped


# -- Limit helpers ---------------------------------------------------------------


def _record(sequence: int, skipped: bool) -> AssignmentRecord:
    rec = AssignmentRecord(
        id=f"a{sequence}",
        rotation_id="rot1",
        workspace_id="T1",
        assigned_date=MONDAY,
        member_id=f"M{sequence}",
        channel_id="C1",
        sequence=sequence,
    )
    if skipped:
        rec.skip_state = SkipState.SKIPPED
    return rec


def test_consecutive_skip_count_stops_at_active_record() -> None:
    chain = [_record(0, True), _record(1, False), _record(2, True), _record(3, True)]
    assert consecutive_skip_count(chain) == 2
    assert consecutive_skip_count([]) == 0


def test_check_skip_allowed_counts_preceding_run() -> None:
    rotation = _make_rotation(["A", "B", "C", "D"])
    chain = [_record(0, True), _record(1, True), _record(2, False)]
    check_skip_allowed(rotation, chain, chain[2])

    chain = [_record(0, True), _record(1, True), _record(2, True), _record(3, False)]
    with pytest.raises(SkipNotAllowed):
        check_skip_allowed(rotation, chain, chain[3])
