"""Enumeration types for the NADA wallet guard."""

from enum import Enum


class TransactionType(str, Enum):
    """Kind of wallet ledger row."""

    EXCHANGE = "exchange"
    REWARD = "reward"
    PURCHASE = "purchase"


class AuditAction(str, Enum):
    """Audited wallet operations."""

    EXCHANGE_ATTEMPT = "exchange_attempt"


class GuardCheck(str, Enum):
    """Individual checks run by the wallet guard, in orchestration order."""

    AMOUNT_CAP = "amount_cap"
    RATE_LIMIT = "rate_limit"
    DAILY_LIMIT = "daily_limit"
    MINIMUM_BALANCE = "minimum_balance"
    FRAUD = "fraud"
