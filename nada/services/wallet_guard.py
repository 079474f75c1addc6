"""Wallet transaction guard: rate limits, daily quota, caps and fraud scoring.

Every check returns a result object; policy denials are never raised.
Store-backed limit checks fail open when the ledger is unavailable, and
audit writes are best-effort.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import structlog

from config import GuardSettings, get_settings
from nada.services._helpers import utc_now
from nada.services.errors import LedgerError
from nada.services.ledger import AuditEntry, TransactionLedger, UserProfileStore

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class RateLimitCheck:
    allowed: bool
    reason: str | None = None
    retry_after: int | None = None


@dataclass(slots=True)
class DailyLimitCheck:
    allowed: bool
    remaining: int
    reason: str | None = None


@dataclass(slots=True)
class AmountCheck:
    allowed: bool
    reason: str | None = None


@dataclass(slots=True)
class BalanceCheck:
    allowed: bool
    remaining: int
    reason: str | None = None


@dataclass(slots=True)
class FraudCheck:
    suspicious: bool
    risk_score: int
    reasons: list[str] = field(default_factory=list)


def check_exchange_amount(points_to_exchange: int, max_single_exchange: int = 5000) -> AmountCheck:
    if points_to_exchange > max_single_exchange:
        return AmountCheck(
            allowed=False,
            reason=f"Maximum single exchange is {max_single_exchange} points.",
        )
    return AmountCheck(allowed=True)


def validate_minimum_balance(current_points: int, points_to_exchange: int) -> BalanceCheck:
    remaining: int = current_points - points_to_exchange
    if remaining < 0:
        return BalanceCheck(allowed=False, remaining=remaining, reason="Insufficient points for exchange.")
    return BalanceCheck(allowed=True, remaining=remaining)


class WalletGuard:
    """Pre-commit gate for points exchanges.

    The guard never mutates balances. Callers run the checks in order
    (amount cap, rate limit, daily limit, minimum balance, fraud), stop at
    the first denial, and always finish with ``create_audit_log``.
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        profiles: UserProfileStore,
        settings: GuardSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ledger: TransactionLedger = ledger
        self.profiles: UserProfileStore = profiles
        self.settings: GuardSettings = settings or get_settings().guard
        self.clock: Callable[[], datetime] = clock

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def start_of_day(self, now: datetime | None = None) -> datetime:
        """Midnight of the current day in the configured (or server-local) zone."""
        tz: ZoneInfo | None = ZoneInfo(self.settings.timezone) if self.settings.timezone else None
        local: datetime = (now or self.clock()).astimezone(tz)
        return local.replace(hour=0, minute=0, second=0, microsecond=0)

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    def check_rate_limit(self, user_id: str) -> RateLimitCheck:
        window: int = self.settings.rate_limit_window_seconds
        since: datetime = self.clock() - timedelta(seconds=window)
        try:
            count: int = self.ledger.count_exchanges_since(user_id, since)
        except LedgerError as e:
            logger.warning("Rate limit check failed, allowing", user_id=user_id, error=str(e))
            return RateLimitCheck(allowed=True)

        limit: int = self.settings.rate_limit_max
        if count >= limit:
            logger.info("Rate limit exceeded", user_id=user_id, count=count, limit=limit)
            return RateLimitCheck(
                allowed=False,
                reason=f"Rate limit exceeded. Maximum {limit} exchanges per {window // 60} minutes.",
                retry_after=window,
            )
        return RateLimitCheck(allowed=True)

    def check_daily_limit(self, user_id: str) -> DailyLimitCheck:
        limit: int = self.settings.daily_limit_max
        try:
            count: int = self.ledger.count_exchanges_since(user_id, self.start_of_day())
        except LedgerError as e:
            logger.warning("Daily limit check failed, allowing", user_id=user_id, error=str(e))
            return DailyLimitCheck(allowed=True, remaining=limit)

        if count >= limit:
            logger.info("Daily limit reached", user_id=user_id, count=count, limit=limit)
            return DailyLimitCheck(
                allowed=False,
                remaining=0,
                reason=f"Daily exchange limit reached. Maximum {limit} exchanges per day.",
            )
        return DailyLimitCheck(allowed=True, remaining=limit - count)

    def check_exchange_amount(self, points_to_exchange: int) -> AmountCheck:
        return check_exchange_amount(points_to_exchange, self.settings.max_single_exchange)

    def validate_minimum_balance(self, current_points: int, points_to_exchange: int) -> BalanceCheck:
        return validate_minimum_balance(current_points, points_to_exchange)

    # ------------------------------------------------------------------
    # Fraud scoring
    # ------------------------------------------------------------------

    def check_fraud_patterns(
        self,
        user_id: str,
        points_to_exchange: int,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> FraudCheck:
        """Additive risk score; a failing signal contributes nothing."""
        s: GuardSettings = self.settings
        now: datetime = self.clock()
        reasons: list[str] = []
        score: int = 0

        if points_to_exchange >= s.high_value_threshold:
            reasons.append("High value exchange")
            score += s.high_value_weight

        if self._rapid_succession(user_id, now):
            reasons.append("Rapid successive exchanges")
            score += s.rapid_weight

        if self._new_account(user_id, now):
            reasons.append(f"New account (less than {s.new_account_hours} hours old)")
            score += s.new_account_weight

        if ip_address and self._many_ip_addresses(user_id):
            reasons.append("Multiple IP addresses detected")
            score += s.ip_weight

        result: FraudCheck = FraudCheck(
            suspicious=score >= s.suspicious_threshold,
            risk_score=score,
            reasons=reasons,
        )
        if result.suspicious:
            logger.info(
                "Suspicious exchange pattern",
                user_id=user_id,
                risk_score=score,
                reasons=reasons,
                user_agent=user_agent,
            )
        return result

    def _rapid_succession(self, user_id: str, now: datetime) -> bool:
        since: datetime = now - timedelta(seconds=self.settings.rapid_window_seconds)
        try:
            recent: int = self.ledger.count_exchanges_since(user_id, since)
        except LedgerError as e:
            logger.warning("Fraud signal unavailable", signal="rapid_succession", user_id=user_id, error=str(e))
            return False
        return recent >= self.settings.rapid_min_count

    def _new_account(self, user_id: str, now: datetime) -> bool:
        try:
            created_at: datetime | None = self.profiles.get_account_created_at(user_id)
        except LedgerError as e:
            logger.warning("Fraud signal unavailable", signal="new_account", user_id=user_id, error=str(e))
            return False
        if created_at is None:
            return False
        return now - created_at < timedelta(hours=self.settings.new_account_hours)

    def _many_ip_addresses(self, user_id: str) -> bool:
        try:
            ips: list[str | None] = self.ledger.recent_audit_ip_addresses(user_id, self.settings.ip_lookback)
        except LedgerError as e:
            logger.warning("Fraud signal unavailable", signal="ip_diversity", user_id=user_id, error=str(e))
            return False
        return len(set(ips)) > self.settings.ip_max_distinct

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def create_audit_log(
        self,
        user_id: str,
        action: str,
        details: Mapping[str, object],
        ip_address: str | None = None,
        user_agent: str | None = None,
        success: bool = True,
    ) -> None:
        """Append an audit entry. Never raises."""
        entry: AuditEntry = AuditEntry(
            user_id=user_id,
            action=action,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            timestamp=self.clock(),
        )
        try:
            self.ledger.append_audit(entry)
        except Exception as e:
            logger.warning("Failed to create audit log", user_id=user_id, action=action, error=str(e))
