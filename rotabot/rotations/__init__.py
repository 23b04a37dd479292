"""Rotation engine — definitions, assignment ledger, cycle, skips, and scheduling."""

from rotabot.rotations.cursor import RotationCursor, RotationLocks, pick_next_member
from rotabot.rotations.cycle import CycleResult, RotationScheduler, SweepResult
from rotabot.rotations.delivery import AssignmentNotifier, deliver_with_retry
from rotabot.rotations.eligibility import next_run_at, should_run
from rotabot.rotations.engine import SchedulerEngine
from rotabot.rotations.ledger import AssignmentLedger
from rotabot.rotations.models import AssignmentRecord, RotationDefinition
from rotabot.rotations.recurrence import Frequency, RecurrenceSpec, next_occurrence
from rotabot.rotations.skip import SkipEngine, SkipResult
from rotabot.rotations.store import RotationStore

__all__ = [
    "AssignmentLedger",
    "AssignmentNotifier",
    "AssignmentRecord",
    "CycleResult",
    "Frequency",
    "RecurrenceSpec",
    "RotationCursor",
    "RotationDefinition",
    "RotationLocks",
    "RotationScheduler",
    "RotationStore",
    "SchedulerEngine",
    "SkipEngine",
    "SkipResult",
    "SweepResult",
    "deliver_with_retry",
    "next_occurrence",
    "next_run_at",
    "pick_next_member",
    "should_run",
]
