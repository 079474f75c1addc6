"""Wallet exchange endpoints. Thin routes; logic lives in the services."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.dependencies import get_api_key, get_client_ip, get_db, get_user_agent
from app.schemas.wallet import (
    ExchangeDeniedResponse,
    ExchangeLimitsResponse,
    ExchangeRequest,
    ExchangeResponse,
    FraudResponse,
    ProgressResponse,
)
from db.enums import GuardCheck
from nada.services.errors import AccountNotFoundError, InvalidExchangeError, LedgerUnavailableError
from nada.services.exchange import ExchangeLimits, ExchangeResult, ExchangeService
from nada.services.wallet_guard import FraudCheck

router = APIRouter(prefix="/api/users", tags=["wallet"])

_DENIAL_STATUS: dict[GuardCheck, int] = {
    GuardCheck.AMOUNT_CAP: 400,
    GuardCheck.RATE_LIMIT: 429,
    GuardCheck.DAILY_LIMIT: 429,
    GuardCheck.MINIMUM_BALANCE: 400,
    GuardCheck.FRAUD: 403,
}


def _fraud_response(fraud: FraudCheck | None) -> FraudResponse | None:
    if fraud is None:
        return None
    return FraudResponse(suspicious=fraud.suspicious, risk_score=fraud.risk_score, reasons=fraud.reasons)


def _denied(result: ExchangeResult) -> JSONResponse:
    check: GuardCheck = result.failed_check or GuardCheck.AMOUNT_CAP
    body: ExchangeDeniedResponse = ExchangeDeniedResponse(
        error=result.reason or "Exchange denied",
        check=check.value,
        retry_after=result.retry_after,
        remaining=result.remaining_today if check is GuardCheck.DAILY_LIMIT else None,
        fraud=_fraud_response(result.fraud),
    )
    headers: dict[str, str] = {"Retry-After": str(result.retry_after)} if result.retry_after else {}
    return JSONResponse(
        status_code=_DENIAL_STATUS[check],
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )


@router.post(
    "/{user_id}/exchange-points",
    response_model=ExchangeResponse,
    responses={
        400: {"model": ExchangeDeniedResponse},
        403: {"model": ExchangeDeniedResponse},
        429: {"model": ExchangeDeniedResponse},
    },
)
def exchange_points(
    user_id: str,
    body: ExchangeRequest,
    db: Session = Depends(get_db),
    ip_address: str | None = Depends(get_client_ip),
    user_agent: str | None = Depends(get_user_agent),
    _key: str = Depends(get_api_key),
) -> ExchangeResponse | JSONResponse:
    svc = ExchangeService(db)
    try:
        result: ExchangeResult = svc.exchange_points(
            user_id, body.points_to_exchange, ip_address=ip_address, user_agent=user_agent
        )
    except InvalidExchangeError as e:
        raise HTTPException(400, detail=str(e))
    except AccountNotFoundError as e:
        raise HTTPException(404, detail=str(e))
    except LedgerUnavailableError as e:
        raise HTTPException(503, detail=str(e))

    if not result.allowed:
        return _denied(result)

    return ExchangeResponse(
        success=True,
        nada_awarded=result.nada_awarded,
        remaining_today=result.remaining_today,
        progress=ProgressResponse(user_id=user_id, points=result.points, nada_points=result.nada_points),
        fraud=_fraud_response(result.fraud),
    )


@router.get("/{user_id}/exchange-limits", response_model=ExchangeLimitsResponse)
def exchange_limits(
    user_id: str,
    db: Session = Depends(get_db),
) -> ExchangeLimitsResponse:
    svc = ExchangeService(db)
    try:
        limits: ExchangeLimits = svc.get_limits(user_id)
    except AccountNotFoundError as e:
        raise HTTPException(404, detail=str(e))
    except LedgerUnavailableError as e:
        raise HTTPException(503, detail=str(e))
    return ExchangeLimitsResponse(**asdict(limits))
