from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any

_MIGRATION_PATH = (
    Path(__file__).resolve().parents[4] / "alembic" / "versions" / "20261017_0001_security_v1.py"
)


class _RecordingOp:
    def __init__(self) -> None:
        self.statements: list[str] = []

    def execute(self, statement: str) -> None:
        self.statements.append(" ".join(statement.split()))


def _load_migration() -> ModuleType:
    spec = importlib.util.spec_from_file_location("security_v1_migration", _MIGRATION_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _upgrade_statements(monkeypatch: Any) -> list[str]:
    module = _load_migration()
    recorder = _RecordingOp()
    monkeypatch.setattr(module, "op", recorder)
    module.upgrade()
    return recorder.statements


def test_upgrade_enforces_single_pending_request_per_owner_and_type(monkeypatch: Any) -> None:
    statements = _upgrade_statements(monkeypatch)

    pending_indexes = [
        statement
        for statement in statements
        if "ON verification_requests" in statement and "WHERE state = 'pending'" in statement
    ]

    assert len(pending_indexes) == 1
    assert pending_indexes[0].startswith("CREATE UNIQUE INDEX")
    assert "ON verification_requests (user_id, verification_type) WHERE" in pending_indexes[0]


def test_upgrade_creates_attempt_lockout_columns(monkeypatch: Any) -> None:
    statements = _upgrade_statements(monkeypatch)

    table = next(
        statement
        for statement in statements
        if statement.startswith("CREATE TABLE IF NOT EXISTS verification_requests")
    )

    assert "failed_attempts INTEGER NOT NULL DEFAULT 0" in table
    assert "locked_until TIMESTAMPTZ NULL" in table
