"""Shared test fixtures."""

from pathlib import Path

import pytest

from rotabot.rotations.ledger import AssignmentLedger
from rotabot.rotations.store import RotationStore


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("rotabot.config.settings.turso_database_url", "")


@pytest.fixture
def store(tmp_path: Path, _no_turso: None) -> RotationStore:
    """Create a RotationStore backed by a temp database."""
    return RotationStore(db_path=tmp_path / "test.db")


@pytest.fixture
def ledger(tmp_path: Path, _no_turso: None) -> AssignmentLedger:
    """Create an AssignmentLedger sharing the temp database."""
    return AssignmentLedger(db_path=tmp_path / "test.db")
