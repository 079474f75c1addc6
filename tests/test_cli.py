"""Tests for the nada operator CLI."""

from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.orm import Session
from typer.testing import CliRunner

from nada.cli.main import app, console
from nada.services.ledger import AuditEntry, SqlTransactionLedger
from tests.support import NOW, seed_user

runner = CliRunner()


@pytest.fixture(autouse=True)
def _cli_session(session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    @contextmanager
    def _get_session() -> Generator[Session, None, None]:
        yield session

    monkeypatch.setattr("db.connection.get_session", _get_session)
    monkeypatch.setattr(console, "width", 200)


def test_limits(session: Session) -> None:
    seed_user(session, "reader-1", points=1500, nada_points=2)
    result = runner.invoke(app, ["limits", "--user", "reader-1"])
    assert result.exit_code == 0
    assert "1500" in result.output
    assert "10 / 10" in result.output


def test_limits_unknown_user() -> None:
    result = runner.invoke(app, ["limits", "--user", "ghost"])
    assert result.exit_code == 1
    assert "ghost" in result.output


def test_audit_empty() -> None:
    result = runner.invoke(app, ["audit", "--user", "reader-1"])
    assert result.exit_code == 0
    assert "No audit entries found" in result.output


def test_audit_lists_entries(session: Session) -> None:
    SqlTransactionLedger(session).append_audit(
        AuditEntry(
            user_id="reader-1",
            action="exchange_attempt",
            details={"failed_check": "rate_limit"},
            ip_address="10.0.0.7",
            success=False,
            timestamp=NOW,
        )
    )
    result = runner.invoke(app, ["audit", "--user", "reader-1", "--failed-only"])
    assert result.exit_code == 0
    assert "rate_limit" in result.output
    assert "10.0.0.7" in result.output


def test_score_new_account(session: Session) -> None:
    seed_user(session, "reader-1", age=timedelta(hours=1), now=datetime.now(UTC))
    result = runner.invoke(app, ["score", "--user", "reader-1", "--points", "2000"])
    assert result.exit_code == 0
    assert "Risk score: 45" in result.output
    assert "High value exchange" in result.output
