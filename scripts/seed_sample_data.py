"""Seed sample wallet data for local testing.

Idempotent: skips seeding if any user_progress rows exist.
Run: python scripts/seed_sample_data.py
"""

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

# Ensure project root is on sys.path so 'config' and 'db' resolve
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.orm import Session  # noqa: E402

from db.connection import get_session, init_database  # noqa: E402
from db.enums import AuditAction, TransactionType  # noqa: E402
from db.models import UserProgress, WalletAuditLog, WalletTransactions  # noqa: E402
from nada.services._helpers import dump_json, new_id, to_iso  # noqa: E402


def _ts(**delta: float) -> str:
    return to_iso(datetime.now(UTC) - timedelta(**delta))


# (user_id, points, nada_points, account age)
USERS = [
    ("reader-veteran", 12_000, 40, timedelta(days=365)),
    ("reader-regular", 3_000, 5, timedelta(days=10)),
    ("reader-newcomer", 2_500, 0, timedelta(hours=1)),
]


def seed(session: Session) -> None:
    existing = session.query(UserProgress).first()
    if existing:
        print("Sample data already seeded, skipping.")
        return

    print("Seeding sample data...")

    for user_id, points, nada, age in USERS:
        created = to_iso(datetime.now(UTC) - age)
        session.add(
            UserProgress(
                user_id=user_id,
                points=points,
                nada_points=nada,
                created_at=created,
                updated_at=created,
            )
        )
    session.flush()

    # Three exchanges earlier today for the regular reader
    for hours in (1, 2, 3):
        session.add(
            WalletTransactions(
                id=new_id(),
                user_id="reader-regular",
                transaction_type=TransactionType.EXCHANGE.value,
                points_amount=100,
                nada_amount=2,
                created_at=_ts(hours=hours),
            )
        )

    # Newcomer fired two exchanges within the last minute
    for seconds in (10, 30):
        session.add(
            WalletTransactions(
                id=new_id(),
                user_id="reader-newcomer",
                transaction_type=TransactionType.EXCHANGE.value,
                points_amount=50,
                nada_amount=1,
                created_at=_ts(seconds=seconds),
            )
        )

    # Veteran audit history from several networks
    for i, ip in enumerate(["203.0.113.4", "198.51.100.7", "192.0.2.10", "203.0.113.99"]):
        session.add(
            WalletAuditLog(
                id=new_id(),
                user_id="reader-veteran",
                action=AuditAction.EXCHANGE_ATTEMPT.value,
                details=dump_json({"points_to_exchange": 500, "failed_check": None}),
                ip_address=ip,
                user_agent="Mozilla/5.0",
                success=True,
                timestamp=_ts(days=i + 1),
            )
        )

    session.flush()
    print(f"  {len(USERS)} users")
    print("  5 exchange transactions")
    print("  4 audit entries")
    print("Done.")


if __name__ == "__main__":
    init_database()
    with get_session() as session:
        seed(session)
