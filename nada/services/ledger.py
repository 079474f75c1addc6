"""Ledger and account collaborators used by the wallet guard.

``TransactionLedger`` and ``UserProfileStore`` are the only store operations
the guard needs. The SQL implementations wrap every driver error in
``LedgerUnavailableError`` so callers map failures in one place.
"""

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, TypeVar

from sqlalchemy import Select, and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from db.enums import TransactionType
from db.models import UserProgress, WalletAuditLog, WalletTransactions
from nada.services._helpers import dump_json, load_json, new_id, parse_iso, to_iso, utc_now
from nada.services._types import AuditEntryDict
from nada.services.errors import LedgerUnavailableError
from nada.services.retry import with_retry

T = TypeVar("T")


@dataclass(slots=True)
class AuditEntry:
    user_id: str
    action: str
    details: Mapping[str, object] = field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    success: bool = True
    timestamp: datetime = field(default_factory=utc_now)


class TransactionLedger(Protocol):
    def count_exchanges_since(self, user_id: str, since: datetime) -> int: ...

    def recent_audit_ip_addresses(self, user_id: str, limit: int) -> list[str | None]: ...

    def append_audit(self, entry: AuditEntry) -> None: ...


class UserProfileStore(Protocol):
    def get_account_created_at(self, user_id: str) -> datetime | None: ...


def audit_row_to_dict(row: WalletAuditLog) -> AuditEntryDict:
    return AuditEntryDict(
        id=row.id,
        user_id=row.user_id,
        action=row.action,
        details=load_json(row.details),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        success=bool(row.success),
        timestamp=row.timestamp,
    )


class _SqlStore:
    """Session-bound store; reads are retried inside a savepoint."""

    def __init__(
        self,
        session: Session,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        retry_backoff: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        guard = get_settings().guard
        self.session: Session = session
        self.retry_attempts: int = retry_attempts if retry_attempts is not None else guard.retry_attempts
        self.retry_delay: float = retry_delay if retry_delay is not None else guard.retry_delay
        self.retry_backoff: float = retry_backoff if retry_backoff is not None else guard.retry_backoff
        self._sleep = sleep

    def _read(self, query: Callable[[], T]) -> T:
        def _attempt() -> T:
            with self.session.begin_nested():
                return query()

        try:
            return with_retry(
                _attempt,
                attempts=self.retry_attempts,
                delay=self.retry_delay,
                backoff=self.retry_backoff,
                sleep=self._sleep,
            )
        except SQLAlchemyError as e:
            raise LedgerUnavailableError(f"{type(self).__name__} read failed: {e}") from e


class SqlTransactionLedger(_SqlStore):
    """Wallet transactions + audit log backed by the ORM session."""

    def count_exchanges_since(self, user_id: str, since: datetime) -> int:
        stmt: Select[tuple[int]] = (
            select(func.count())
            .select_from(WalletTransactions)
            .where(
                and_(
                    WalletTransactions.user_id == user_id,
                    WalletTransactions.transaction_type == TransactionType.EXCHANGE.value,
                    WalletTransactions.created_at >= to_iso(since),
                )
            )
        )
        return self._read(lambda: self.session.scalar(stmt) or 0)

    def recent_audit_ip_addresses(self, user_id: str, limit: int) -> list[str | None]:
        stmt: Select[tuple[str | None]] = (
            select(WalletAuditLog.ip_address)
            .where(WalletAuditLog.user_id == user_id)
            .order_by(WalletAuditLog.timestamp.desc())
            .limit(limit)
        )
        return self._read(lambda: list(self.session.scalars(stmt).all()))

    def append_audit(self, entry: AuditEntry) -> None:
        row: WalletAuditLog = WalletAuditLog(
            id=new_id(),
            user_id=entry.user_id,
            action=entry.action,
            details=dump_json(entry.details),
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            success=entry.success,
            timestamp=to_iso(entry.timestamp),
        )
        try:
            with self.session.begin_nested():
                self.session.add(row)
        except SQLAlchemyError as e:
            raise LedgerUnavailableError(f"audit insert failed: {e}") from e

    def record_exchange(self, user_id: str, points_amount: int, nada_amount: int, at: datetime) -> WalletTransactions:
        tx: WalletTransactions = WalletTransactions(
            id=new_id(),
            user_id=user_id,
            transaction_type=TransactionType.EXCHANGE.value,
            points_amount=points_amount,
            nada_amount=nada_amount,
            created_at=to_iso(at),
        )
        self.session.add(tx)
        self.session.flush()
        return tx

    def list_audit_entries(
        self,
        user_id: str,
        limit: int = 50,
        failed_only: bool = False,
    ) -> list[AuditEntryDict]:
        conditions = [WalletAuditLog.user_id == user_id]
        if failed_only:
            conditions.append(WalletAuditLog.success.is_(False))
        stmt: Select[tuple[WalletAuditLog]] = (
            select(WalletAuditLog)
            .where(and_(*conditions))
            .order_by(WalletAuditLog.timestamp.desc())
            .limit(limit)
        )
        rows: Sequence[WalletAuditLog] = self._read(lambda: self.session.scalars(stmt).all())
        return [audit_row_to_dict(r) for r in rows]


class SqlUserProfileStore(_SqlStore):
    """Account lookups against ``user_progress``."""

    def get_account(self, user_id: str) -> UserProgress | None:
        return self._read(lambda: self.session.get(UserProgress, user_id))

    def get_account_created_at(self, user_id: str) -> datetime | None:
        account: UserProgress | None = self.get_account(user_id)
        return parse_iso(account.created_at) if account is not None else None
