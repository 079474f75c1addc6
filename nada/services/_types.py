"""Typed dicts for audit payloads and route-facing return values.

Keeps service methods explicit about their shape instead of returning bare dicts.
"""

import sys

if sys.version_info >= (3, 12):
    from typing import TypedDict
else:
    from typing_extensions import TypedDict

from nada.services._helpers import JsonDict

# -- Audit -----------------------------------------------------------------


class CheckRecord(TypedDict, total=False):
    check: str
    allowed: bool
    reason: str | None
    retry_after: int | None
    remaining: int | None


class FraudRecord(TypedDict):
    suspicious: bool
    risk_score: int
    reasons: list[str]


class ExchangeAuditDetails(TypedDict, total=False):
    points_to_exchange: int
    current_points: int
    checks: list[CheckRecord]
    failed_check: str | None
    fraud: FraudRecord | None
    nada_awarded: int


class AuditEntryDict(TypedDict):
    id: str
    user_id: str
    action: str
    details: JsonDict | None
    ip_address: str | None
    user_agent: str | None
    success: bool
    timestamp: str


# -- Wallet ----------------------------------------------------------------


class ProgressDict(TypedDict):
    userId: str
    points: int
    nadaPoints: int


# -- Health ----------------------------------------------------------------


class DbInfoDict(TypedDict, total=False):
    database: str
    tables_missing: list[str]
    schema_initialized: bool
    ledger_readable: bool
    error: str
