"""Tests for nada.services.ledger SQL implementations."""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from db.enums import TransactionType
from db.models import UserProgress, WalletAuditLog
from nada.services._helpers import load_json
from nada.services.errors import LedgerUnavailableError
from nada.services.ledger import AuditEntry, SqlTransactionLedger, SqlUserProfileStore
from tests.support import NOW, seed_exchange, seed_user


def _ledger(session: Session, sleeps: list[float] | None = None, attempts: int = 3) -> SqlTransactionLedger:
    record = sleeps.append if sleeps is not None else (lambda _s: None)
    return SqlTransactionLedger(session, retry_attempts=attempts, retry_delay=0.5, retry_backoff=1.5, sleep=record)


class TestCountExchanges:
    def test_counts_window_inclusive(self, session: Session) -> None:
        seed_exchange(session, "u1", NOW - timedelta(minutes=5))
        seed_exchange(session, "u1", NOW - timedelta(minutes=1))
        seed_exchange(session, "u1", NOW - timedelta(minutes=6))
        assert _ledger(session).count_exchanges_since("u1", NOW - timedelta(minutes=5)) == 2

    def test_only_exchange_type(self, session: Session) -> None:
        seed_exchange(session, "u1", NOW, TransactionType.REWARD)
        seed_exchange(session, "u1", NOW, TransactionType.PURCHASE)
        seed_exchange(session, "u1", NOW)
        assert _ledger(session).count_exchanges_since("u1", NOW - timedelta(hours=1)) == 1

    def test_only_requested_user(self, session: Session) -> None:
        seed_exchange(session, "u2", NOW)
        assert _ledger(session).count_exchanges_since("u1", NOW - timedelta(hours=1)) == 0

    def test_since_in_other_timezone(self, session: Session) -> None:
        from zoneinfo import ZoneInfo

        seed_exchange(session, "u1", NOW - timedelta(seconds=30))
        since = (NOW - timedelta(minutes=1)).astimezone(ZoneInfo("Asia/Tokyo"))
        assert _ledger(session).count_exchanges_since("u1", since) == 1


class TestRecentAuditIps:
    def test_most_recent_first_and_limited(self, session: Session) -> None:
        ledger = _ledger(session)
        for i in range(7):
            ledger.append_audit(
                AuditEntry(
                    user_id="u1",
                    action="exchange_attempt",
                    ip_address=f"10.0.0.{i}",
                    timestamp=NOW - timedelta(minutes=i),
                )
            )
        assert ledger.recent_audit_ip_addresses("u1", 5) == [f"10.0.0.{i}" for i in range(5)]

    def test_keeps_missing_ips(self, session: Session) -> None:
        ledger = _ledger(session)
        ledger.append_audit(AuditEntry(user_id="u1", action="a", timestamp=NOW))
        assert ledger.recent_audit_ip_addresses("u1", 5) == [None]


class TestAppendAudit:
    def test_persists_json_details(self, session: Session) -> None:
        ledger = _ledger(session)
        ledger.append_audit(
            AuditEntry(
                user_id="u1",
                action="exchange_attempt",
                details={"failed_check": "rate_limit", "checks": [{"check": "amount_cap", "allowed": True}]},
                ip_address="10.0.0.1",
                user_agent="Mozilla/5.0",
                success=False,
                timestamp=NOW,
            )
        )
        row = session.scalars(select(WalletAuditLog)).one()
        assert row.success is False
        assert row.user_agent == "Mozilla/5.0"
        assert load_json(row.details) == {
            "failed_check": "rate_limit",
            "checks": [{"check": "amount_cap", "allowed": True}],
        }

    def test_failed_insert_leaves_session_usable(self, session: Session) -> None:
        seed_user(session, "u1")
        ledger = _ledger(session)
        with pytest.raises(LedgerUnavailableError):
            ledger.append_audit(AuditEntry(user_id=None, action="exchange_attempt"))  # type: ignore[arg-type]

        assert session.get(UserProgress, "u1") is not None
        ledger.append_audit(AuditEntry(user_id="u1", action="exchange_attempt"))
        assert len(ledger.list_audit_entries("u1")) == 1


class TestListAuditEntries:
    def test_failed_only(self, session: Session) -> None:
        ledger = _ledger(session)
        ledger.append_audit(AuditEntry(user_id="u1", action="a", success=True, timestamp=NOW))
        ledger.append_audit(AuditEntry(user_id="u1", action="a", success=False, timestamp=NOW))
        entries = ledger.list_audit_entries("u1", failed_only=True)
        assert len(entries) == 1
        assert entries[0]["success"] is False


class TestRetries:
    def test_transient_errors_retried(self, session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
        seed_exchange(session, "u1", NOW)
        real_scalar = session.scalar
        calls: list[int] = []

        def flaky(*args: object, **kwargs: object) -> object:
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("SELECT", {}, Exception("connection reset by peer"))
            return real_scalar(*args, **kwargs)

        monkeypatch.setattr(session, "scalar", flaky)
        sleeps: list[float] = []
        count = _ledger(session, sleeps).count_exchanges_since("u1", NOW - timedelta(minutes=1))
        assert count == 1
        assert sleeps == [0.5, 0.75]

    def test_exhausted_retries_raise_ledger_error(self, session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
        def down(*args: object, **kwargs: object) -> object:
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(session, "scalar", down)
        sleeps: list[float] = []
        with pytest.raises(LedgerUnavailableError):
            _ledger(session, sleeps, attempts=3).count_exchanges_since("u1", NOW)
        assert len(sleeps) == 2

    def test_non_transient_error_not_retried(self, session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(*args: object, **kwargs: object) -> object:
            raise ProgrammingError("SELECT", {}, Exception("no such column"))

        monkeypatch.setattr(session, "scalar", broken)
        sleeps: list[float] = []
        with pytest.raises(LedgerUnavailableError):
            _ledger(session, sleeps).count_exchanges_since("u1", NOW)
        assert sleeps == []


class TestUserProfileStore:
    def test_created_at_round_trip(self, session: Session) -> None:
        seed_user(session, "u1", age=timedelta(hours=3))
        created = SqlUserProfileStore(session).get_account_created_at("u1")
        assert created is not None
        assert created == NOW - timedelta(hours=3)

    def test_unknown_user(self, session: Session) -> None:
        assert SqlUserProfileStore(session).get_account_created_at("ghost") is None
