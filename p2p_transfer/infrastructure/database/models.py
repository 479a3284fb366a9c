"""
SQLAlchemy ORM models for users, wallets and transfers.

The wallet lives on the user row; ``wallet_version`` is the optimistic
concurrency counter bumped on every balance write.
"""

from datetime import datetime

import inflection
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    declared_attr,
    mapped_column,
)

from p2p_transfer.utils.datetime_helpers import utc_now


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Generate table name from class name (lowercase, plural)."""
        return inflection.pluralize(inflection.underscore(cls.__name__))


class UserRecord(Base):
    """ORM model for users and their wallet."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    password: Mapped[str] = mapped_column(String(200), nullable=False)
    document_type: Mapped[str] = mapped_column(String(4), nullable=False)
    document_number: Mapped[str] = mapped_column(
        String(14), nullable=False, unique=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    wallet_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_user_records_balance"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserRecord(id={self.id}, balance={self.balance}, "
            f"version={self.wallet_version})>"
        )


class TransferRecord(Base):
    """ORM model for transfer attempts."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    idempotency_key: Mapped[str] = mapped_column(
        String(36), nullable=False, index=True
    )
    # copy of idempotency_key while the attempt holds it, NULL once
    # FAILED or REJECTED; the unique constraint allows one holder per key
    active_key: Mapped[str | None] = mapped_column(
        String(36), nullable=True, unique=True
    )
    payer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_records.id"), nullable=False
    )
    payee_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_records.id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transfer_records_amount"),
        Index("ix_transfer_records_payer_created", "payer_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<TransferRecord(id={self.id}, status={self.status})>"
