"""
Persistence gateway for rating rows.

The application layer only sees ``RatingsGateway``; ``SqlRatingsGateway`` is the
SQLAlchemy implementation wired in at start-up.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..domain.models import PersistedRating, RatingFilters, RatingLevel
from .exceptions import handle_database_error
from .logging import get_logger
from .models import RatingORM
from .repositories_rating import RatingRepo
from .uow import UnitOfWork

logger = get_logger(__name__)


@runtime_checkable
class RatingsGateway(Protocol):
    def fetch_ratings(self, filters: RatingFilters) -> list[PersistedRating]: ...

    def upsert_ratings(self, rows: Iterable[PersistedRating]) -> int: ...


def collapse_duplicates(rows: Iterable[PersistedRating]) -> list[PersistedRating]:
    """Keep the last row for each natural key, in first-seen key order."""
    latest: dict[tuple[str, str, str, str], PersistedRating] = {}
    for row in rows:
        latest[row.natural_key] = row
    return list(latest.values())


def to_persisted(orm: RatingORM) -> PersistedRating:
    rating = RatingLevel.parse(orm.rating)
    if rating is None and orm.rating:
        logger.warning(
            "Stored rating %r for %s/%s is not a known level; treating as unrated",
            orm.rating,
            orm.pillar_title,
            orm.practice_name,
        )
    return PersistedRating(
        project_name=orm.project_name,
        assessment_date=orm.assessment_date,
        pillar_title=orm.pillar_title,
        practice_name=orm.practice_name,
        rating=rating,
        findings=orm.findings,
    )


class SqlRatingsGateway:
    """
    ``RatingsGateway`` backed by the ``ratings`` table.

    Every ``upsert_ratings`` call runs in one transaction: all rows are written
    or none are. Store failures surface as ``DatabaseError`` subclasses.
    """

    def __init__(self, SessionLocal: sessionmaker):
        self.uow = UnitOfWork(SessionLocal)

    def fetch_ratings(self, filters: RatingFilters) -> list[PersistedRating]:
        try:
            with self.uow.read() as s:
                rows = RatingRepo(s).find(
                    filters.project_name,
                    filters.assessment_date,
                    pillar_title=filters.pillar_title,
                    practice_prefix=filters.practice_prefix,
                    practice_name=filters.practice_name,
                )
                return [to_persisted(row) for row in rows]
        except SQLAlchemyError as e:
            raise handle_database_error(e, "fetch ratings") from e

    def upsert_ratings(self, rows: Iterable[PersistedRating]) -> int:
        unique_rows = collapse_duplicates(rows)
        if not unique_rows:
            return 0
        records = [row.as_record() for row in unique_rows]
        try:
            with self.uow.begin() as s:
                written = RatingRepo(s).upsert_many(records)
        except SQLAlchemyError as e:
            raise handle_database_error(e, "upsert ratings") from e
        logger.debug("Upserted %d rating rows", written)
        return written
