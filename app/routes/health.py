"""Readiness report for the wallet store."""

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from config import get_settings
from db.connection import get_engine, missing_tables
from nada.services._helpers import utc_now
from nada.services._types import DbInfoDict
from nada.services.errors import LedgerError
from nada.services.ledger import SqlTransactionLedger

logger: logging.Logger = logging.getLogger(__name__)


def _ledger_readable(engine: Engine) -> str | None:
    """Run the rate-limit count once, without retries. Returns the error, if any."""
    with Session(engine) as session:
        try:
            SqlTransactionLedger(session, retry_attempts=1).count_exchanges_since("", utc_now())
        except LedgerError as e:
            return str(e)
    return None


def get_db_info(engine: Engine | None = None) -> DbInfoDict:
    """Schema and ledger readiness. Never raises.

    The limit checks fail open, so an unreadable ledger means exchanges go
    through unthrottled; this is what ``ledger_readable`` reports.
    """
    info: DbInfoDict = DbInfoDict()
    try:
        info["database"] = get_settings().database.db_info_for_logging()
        engine = engine or get_engine()
        missing: list[str] = missing_tables(engine)
        info["tables_missing"] = missing
        info["schema_initialized"] = not missing
        if missing:
            info["ledger_readable"] = False
            return info

        error: str | None = _ledger_readable(engine)
        info["ledger_readable"] = error is None
        if error:
            logger.warning("Ledger read failed: %s", error)
            info["error"] = error
    except Exception as e:
        logger.exception("Health DB check failed: %s", e)
        info.update(schema_initialized=False, ledger_readable=False, error=str(e))
    return info
