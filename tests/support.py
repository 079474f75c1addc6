"""Test doubles, fixed clock and seed helpers shared across the suite."""

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from db.enums import TransactionType
from db.models import UserProgress, WalletTransactions
from nada.services._helpers import new_id, to_iso
from nada.services.errors import LedgerUnavailableError
from nada.services.ledger import AuditEntry

# Local noon keeps every "earlier today" offset used in tests on the same day.
NOW: datetime = datetime.now().astimezone().replace(hour=12, minute=0, second=0, microsecond=0)


class FakeLedger:
    """In-memory TransactionLedger with failure switches."""

    def __init__(self) -> None:
        self.exchanges: dict[str, list[datetime]] = {}
        self.audit: list[AuditEntry] = []
        self.fail_reads: bool = False
        self.fail_writes: bool = False
        self.write_error: Exception = LedgerUnavailableError("audit store down")

    def add_exchange(self, user_id: str, at: datetime) -> None:
        self.exchanges.setdefault(user_id, []).append(at)

    def count_exchanges_since(self, user_id: str, since: datetime) -> int:
        if self.fail_reads:
            raise LedgerUnavailableError("ledger down")
        return sum(1 for t in self.exchanges.get(user_id, []) if t >= since)

    def recent_audit_ip_addresses(self, user_id: str, limit: int) -> list[str | None]:
        if self.fail_reads:
            raise LedgerUnavailableError("ledger down")
        mine = sorted((e for e in self.audit if e.user_id == user_id), key=lambda e: e.timestamp, reverse=True)
        return [e.ip_address for e in mine[:limit]]

    def append_audit(self, entry: AuditEntry) -> None:
        if self.fail_writes:
            raise self.write_error
        self.audit.append(entry)


class FakeProfiles:
    """In-memory UserProfileStore."""

    def __init__(self) -> None:
        self.created: dict[str, datetime] = {}
        self.fail: bool = False

    def get_account_created_at(self, user_id: str) -> datetime | None:
        if self.fail:
            raise LedgerUnavailableError("profiles down")
        return self.created.get(user_id)


def seed_user(
    session: Session,
    user_id: str = "user-1",
    points: int = 3000,
    nada_points: int = 0,
    age: timedelta = timedelta(days=10),
    now: datetime = NOW,
) -> UserProgress:
    created: str = to_iso(now - age)
    user: UserProgress = UserProgress(
        user_id=user_id,
        points=points,
        nada_points=nada_points,
        created_at=created,
        updated_at=created,
    )
    session.add(user)
    session.flush()
    return user


def seed_exchange(
    session: Session,
    user_id: str,
    at: datetime,
    transaction_type: TransactionType = TransactionType.EXCHANGE,
) -> WalletTransactions:
    tx: WalletTransactions = WalletTransactions(
        id=new_id(),
        user_id=user_id,
        transaction_type=transaction_type.value,
        points_amount=50,
        nada_amount=1,
        created_at=to_iso(at),
    )
    session.add(tx)
    session.flush()
    return tx
