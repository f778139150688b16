"""
db/base.py

Declarative base and the timestamp mixin shared by metrics tables.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, MetaData, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Unique and primary keys get stable names so upserts can target them.
NAMING_CONVENTION: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for the metrics schema."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _timestamp_column(**kwargs) -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        **kwargs,
    )


class TimestampMixin:
    """
    Row bookkeeping columns.

    ORM updates refresh updated_at through onupdate; the bulk upsert sets it
    in its own SET clause.
    """

    created_at: Mapped[datetime] = _timestamp_column()
    updated_at: Mapped[datetime] = _timestamp_column(onupdate=_utcnow)
