"""Audit review endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.dependencies import get_api_key, get_db
from app.schemas.wallet import AuditEntryResponse
from nada.services.errors import LedgerUnavailableError
from nada.services.ledger import SqlTransactionLedger

router = APIRouter(prefix="/api/users", tags=["audit"])


@router.get("/{user_id}/audit-log", response_model=list[AuditEntryResponse])
def audit_log(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    failed_only: bool = Query(False, alias="failedOnly"),
    db: Session = Depends(get_db),
    _key: str = Depends(get_api_key),
) -> list[AuditEntryResponse]:
    try:
        entries = SqlTransactionLedger(db).list_audit_entries(user_id, limit=limit, failed_only=failed_only)
    except LedgerUnavailableError as e:
        raise HTTPException(503, detail=str(e))
    return [AuditEntryResponse(**e) for e in entries]
