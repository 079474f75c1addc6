"""Points -> NADA exchange: runs the wallet guard, then commits the debit."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from config import GuardSettings, get_settings
from db.enums import AuditAction, GuardCheck
from db.models import UserProgress
from nada.services._helpers import to_iso, utc_now
from nada.services._types import CheckRecord, ExchangeAuditDetails, FraudRecord, ProgressDict
from nada.services.errors import AccountNotFoundError, InvalidExchangeError
from nada.services.ledger import SqlTransactionLedger, SqlUserProfileStore
from nada.services.wallet_guard import FraudCheck, WalletGuard

logger = structlog.get_logger(__name__)


@dataclass
class ExchangeResult:
    allowed: bool
    user_id: str
    points_to_exchange: int
    failed_check: GuardCheck | None = None
    reason: str | None = None
    retry_after: int | None = None
    remaining_today: int | None = None
    fraud: FraudCheck | None = None
    nada_awarded: int = 0
    points: int = 0
    nada_points: int = 0
    checks: list[CheckRecord] = field(default_factory=list)

    @property
    def progress(self) -> ProgressDict:
        return ProgressDict(userId=self.user_id, points=self.points, nadaPoints=self.nada_points)


@dataclass
class ExchangeLimits:
    user_id: str
    points: int
    nada_points: int
    exchange_rate: int
    max_single_exchange: int
    daily_limit: int
    remaining_today: int
    rate_limited: bool
    retry_after: int | None


def _fraud_record(fraud: FraudCheck | None) -> FraudRecord | None:
    if fraud is None:
        return None
    return FraudRecord(suspicious=fraud.suspicious, risk_score=fraud.risk_score, reasons=list(fraud.reasons))


class ExchangeService:
    """Validates and applies points exchanges for one request/session."""

    def __init__(
        self,
        session: Session,
        guard: WalletGuard | None = None,
        settings: GuardSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session: Session = session
        self.settings: GuardSettings = settings or get_settings().guard
        retry = dict(
            retry_attempts=self.settings.retry_attempts,
            retry_delay=self.settings.retry_delay,
            retry_backoff=self.settings.retry_backoff,
        )
        self.ledger: SqlTransactionLedger = SqlTransactionLedger(session, **retry)
        self.profiles: SqlUserProfileStore = SqlUserProfileStore(session, **retry)
        self.clock: Callable[[], datetime] = clock
        self.guard: WalletGuard = guard or WalletGuard(self.ledger, self.profiles, self.settings, clock)

    def _require_account(self, user_id: str) -> UserProgress:
        account: UserProgress | None = self.profiles.get_account(user_id)
        if account is None:
            raise AccountNotFoundError(f"No wallet for user {user_id}")
        return account

    def _validate_amount(self, points_to_exchange: object) -> int:
        rate: int = self.settings.exchange_rate
        if isinstance(points_to_exchange, bool) or not isinstance(points_to_exchange, int):
            raise InvalidExchangeError("pointsToExchange must be an integer")
        if points_to_exchange <= 0:
            raise InvalidExchangeError("pointsToExchange must be positive")
        if points_to_exchange % rate:
            raise InvalidExchangeError(f"pointsToExchange must be a multiple of {rate}")
        return points_to_exchange

    def exchange_points(
        self,
        user_id: str,
        points_to_exchange: int,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ExchangeResult:
        points: int = self._validate_amount(points_to_exchange)
        account: UserProgress = self._require_account(user_id)
        result: ExchangeResult = ExchangeResult(
            allowed=False,
            user_id=user_id,
            points_to_exchange=points,
            points=account.points,
            nada_points=account.nada_points,
        )

        starting_points: int = account.points
        try:
            if self._run_checks(result, account, ip_address, user_agent):
                self._apply(result, account)
                result.allowed = True
        finally:
            self._audit(result, starting_points, ip_address, user_agent)

        logger.info(
            "Exchange processed",
            user_id=user_id,
            points=points,
            allowed=result.allowed,
            failed_check=result.failed_check.value if result.failed_check else None,
            risk_score=result.fraud.risk_score if result.fraud else None,
        )
        return result

    def _run_checks(
        self,
        result: ExchangeResult,
        account: UserProgress,
        ip_address: str | None,
        user_agent: str | None,
    ) -> bool:
        """Run the checks in order; False at the first denial."""
        points: int = result.points_to_exchange

        def deny(check: GuardCheck, reason: str | None) -> bool:
            result.failed_check = check
            result.reason = reason
            return False

        amount = self.guard.check_exchange_amount(points)
        result.checks.append(CheckRecord(check=GuardCheck.AMOUNT_CAP.value, allowed=amount.allowed, reason=amount.reason))
        if not amount.allowed:
            return deny(GuardCheck.AMOUNT_CAP, amount.reason)

        rate = self.guard.check_rate_limit(result.user_id)
        result.checks.append(
            CheckRecord(
                check=GuardCheck.RATE_LIMIT.value,
                allowed=rate.allowed,
                reason=rate.reason,
                retry_after=rate.retry_after,
            )
        )
        if not rate.allowed:
            result.retry_after = rate.retry_after
            return deny(GuardCheck.RATE_LIMIT, rate.reason)

        daily = self.guard.check_daily_limit(result.user_id)
        result.remaining_today = daily.remaining
        result.checks.append(
            CheckRecord(
                check=GuardCheck.DAILY_LIMIT.value,
                allowed=daily.allowed,
                reason=daily.reason,
                remaining=daily.remaining,
            )
        )
        if not daily.allowed:
            return deny(GuardCheck.DAILY_LIMIT, daily.reason)

        balance = self.guard.validate_minimum_balance(account.points, points)
        result.checks.append(
            CheckRecord(
                check=GuardCheck.MINIMUM_BALANCE.value,
                allowed=balance.allowed,
                reason=balance.reason,
                remaining=balance.remaining,
            )
        )
        if not balance.allowed:
            return deny(GuardCheck.MINIMUM_BALANCE, balance.reason)

        fraud = self.guard.check_fraud_patterns(result.user_id, points, ip_address, user_agent)
        result.fraud = fraud
        enforce: bool = self.settings.deny_on_suspicious
        result.checks.append(
            CheckRecord(
                check=GuardCheck.FRAUD.value,
                allowed=not (enforce and fraud.suspicious),
                reason="; ".join(fraud.reasons) or None,
            )
        )
        if enforce and fraud.suspicious:
            return deny(GuardCheck.FRAUD, "Exchange flagged as suspicious. Please contact support.")

        return True

    def _apply(self, result: ExchangeResult, account: UserProgress) -> None:
        points: int = result.points_to_exchange
        nada: int = points // self.settings.exchange_rate
        now: datetime = self.clock()

        account.points -= points
        account.nada_points += nada
        account.updated_at = to_iso(now)
        self.ledger.record_exchange(result.user_id, points, nada, now)

        result.nada_awarded = nada
        result.points = account.points
        result.nada_points = account.nada_points
        if result.remaining_today is not None:
            result.remaining_today = max(result.remaining_today - 1, 0)

    def _audit(
        self,
        result: ExchangeResult,
        starting_points: int,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        details: ExchangeAuditDetails = ExchangeAuditDetails(
            points_to_exchange=result.points_to_exchange,
            current_points=starting_points,
            checks=result.checks,
            failed_check=result.failed_check.value if result.failed_check else None,
            fraud=_fraud_record(result.fraud),
            nada_awarded=result.nada_awarded,
        )
        self.guard.create_audit_log(
            result.user_id,
            AuditAction.EXCHANGE_ATTEMPT.value,
            details,
            ip_address=ip_address,
            user_agent=user_agent,
            success=result.allowed,
        )

    def get_limits(self, user_id: str) -> ExchangeLimits:
        account: UserProgress = self._require_account(user_id)
        daily = self.guard.check_daily_limit(user_id)
        rate = self.guard.check_rate_limit(user_id)
        return ExchangeLimits(
            user_id=user_id,
            points=account.points,
            nada_points=account.nada_points,
            exchange_rate=self.settings.exchange_rate,
            max_single_exchange=self.settings.max_single_exchange,
            daily_limit=self.settings.daily_limit_max,
            remaining_today=daily.remaining,
            rate_limited=not rate.allowed,
            retry_after=rate.retry_after,
        )
