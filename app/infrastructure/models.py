from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

NATURAL_KEY_COLUMNS = ("project_name", "assessment_date", "pillar_title", "practice_name")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class RatingORM(Base):
    """
    One rating row. Practice rollups store the bare practice name, aspect rows
    store ``"<prefix>:<aspect>"`` in ``practice_name``.
    """

    __tablename__ = "ratings"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    assessment_date: Mapped[str] = mapped_column(String(10), nullable=False)
    pillar_title: Mapped[str] = mapped_column(String(100), nullable=False)
    practice_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rating: Mapped[str | None] = mapped_column(String(50), nullable=True)
    findings: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (UniqueConstraint(*NATURAL_KEY_COLUMNS, name="uq_ratings_natural_key"),)

    def __repr__(self) -> str:
        return (
            f"RatingORM({self.project_name!r}, {self.assessment_date!r}, "
            f"{self.pillar_title!r}, {self.practice_name!r}, rating={self.rating!r})"
        )
