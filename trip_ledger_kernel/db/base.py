"""
Module: trip_ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the type annotation map for consistent column types and the
    TimestampedBase mixin for row creation timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, domain/, or outer layers.

Invariants enforced:
    - Integer minor units: amounts are persisted as BigInteger cents.
      NEVER use float or Numeric columns for monetary amounts.
    - Timestamps are timezone-aware.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model in the system inherits from Base (or TimestampedBase).
        Models declare their own primary keys; trip ledger ids are
        prefixed strings (``trip_...``, ``p_...``), not UUID columns.

    Guarantees:
        - datetime maps to DateTime(timezone=True) -- always timezone-aware.
        - int maps to BigInteger -- safe for cent amounts and sequences.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }


class TimestampedBase(Base):
    """
    Abstract base with a creation timestamp.

    Contract:
        ``created_at`` is set to server NOW() on INSERT.  Ledger rows are
        append-only, so there is no ``updated_at``.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
