"""Wallet exchange and audit request/response schemas."""

from pydantic import Field

from app.schemas.common import CamelModel


class ExchangeRequest(CamelModel):
    points_to_exchange: int = Field(..., gt=0, strict=True)


class ProgressResponse(CamelModel):
    user_id: str
    points: int
    nada_points: int


class FraudResponse(CamelModel):
    suspicious: bool
    risk_score: int
    reasons: list[str]


class ExchangeResponse(CamelModel):
    success: bool
    nada_awarded: int
    remaining_today: int | None
    progress: ProgressResponse
    fraud: FraudResponse | None


class ExchangeDeniedResponse(CamelModel):
    error: str
    check: str
    retry_after: int | None = None
    remaining: int | None = None
    fraud: FraudResponse | None = None


class ExchangeLimitsResponse(CamelModel):
    user_id: str
    points: int
    nada_points: int
    exchange_rate: int
    max_single_exchange: int
    daily_limit: int
    remaining_today: int
    rate_limited: bool
    retry_after: int | None


class AuditEntryResponse(CamelModel):
    id: str
    user_id: str
    action: str
    details: dict[str, object] | None
    ip_address: str | None
    user_agent: str | None
    success: bool
    timestamp: str
