"""SQLAlchemy ORM models for the wallet tables.

Timestamps are stored as ISO-8601 UTC text (see nada.services._helpers.to_iso).
"""

from uuid import uuid4

from sqlalchemy import Index, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


def generate_uuid() -> str:
    return str(uuid4())


class UserProgress(Base):
    __tablename__ = "user_progress"

    user_id: Mapped[str] = mapped_column(primary_key=True)
    points: Mapped[int] = mapped_column(nullable=False, default=0)
    nada_points: Mapped[int] = mapped_column(nullable=False, default=0)
    created_at: Mapped[str] = mapped_column(nullable=False)
    updated_at: Mapped[str] = mapped_column(nullable=False)


class WalletTransactions(Base):
    __tablename__ = "wallet_transactions"

    id: Mapped[str] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(nullable=False)
    transaction_type: Mapped[str] = mapped_column(nullable=False)
    points_amount: Mapped[int] = mapped_column(nullable=False, default=0)
    nada_amount: Mapped[int] = mapped_column(nullable=False, default=0)
    created_at: Mapped[str] = mapped_column(nullable=False)

    __table_args__ = (
        Index("ix_wallet_transactions_user_type_created", "user_id", "transaction_type", "created_at"),
    )


class WalletAuditLog(Base):
    __tablename__ = "wallet_audit_log"

    id: Mapped[str] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(nullable=False)
    details: Mapped[str | None] = mapped_column()
    ip_address: Mapped[str | None] = mapped_column()
    user_agent: Mapped[str | None] = mapped_column()
    success: Mapped[bool] = mapped_column(nullable=False, default=True)
    timestamp: Mapped[str] = mapped_column(nullable=False)

    __table_args__ = (Index("ix_wallet_audit_log_user_timestamp", "user_id", "timestamp"),)
