"""Tour model definition."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
DocumentJSON = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_version(current: int | None) -> int:
    """Version counter for the tour row: 0 on insert, +1 on every update."""
    return 0 if current is None else current + 1


class Tour(Base):
    """
    Tour aggregate.

    Stops are stored as an ordered JSON array on the tour row, so a tour and
    its stops are always written together. ``version`` is SQLAlchemy's
    version counter: every flushed UPDATE sets it to the next value and is
    conditional on the previous one, so a concurrent writer that lost the race
    gets a ``StaleDataError`` instead of overwriting the other change.
    """

    __tablename__ = "tours"

    # Surrogate key; assigned by the database on insert, so it gives the
    # creation order even when timestamps tie
    seq: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    # Public identifier
    id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        unique=True,
        nullable=False,
        default=uuid4,
    )

    # Tour document
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    activities: Mapped[list[str]] = mapped_column(DocumentJSON, nullable=False, default=list)
    launch_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    stops: Mapped[list[dict[str, Any]]] = mapped_column(DocumentJSON, nullable=False, default=list)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": next_version,
    }

    def __repr__(self) -> str:
        return (
            f"<Tour(id={self.id}, title='{self.title}', "
            f"version={self.version}, stops={len(self.stops or [])})>"
        )
