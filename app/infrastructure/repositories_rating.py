# app/infrastructure/repositories_rating.py
from __future__ import annotations

import builtins
from collections.abc import Sequence
from typing import Any

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..domain.keys import LIKE_ESCAPE, like_pattern
from .logging import log_database_operation as log_op
from .models import NATURAL_KEY_COLUMNS, RatingORM, utcnow
from .repositories_base import BaseRepository as GenericBaseRepository

UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


class RatingRepo(GenericBaseRepository[RatingORM]):
    model = RatingORM

    def __init__(self, session: Session):
        super().__init__(session)

    # -------- Read --------

    @log_op("rating.find")
    def find(
        self,
        project_name: str,
        assessment_date: str,
        pillar_title: str | None = None,
        practice_prefix: str | None = None,
        practice_name: str | None = None,
    ) -> builtins.list[RatingORM]:
        """
        Rows for one project/date, optionally narrowed to a pillar.

        ``practice_prefix`` and ``practice_name`` are alternatives: a row matches
        when it is an aspect row under the prefix or the named practice row.
        """
        filters: list[Any] = [
            RatingORM.project_name == project_name,
            RatingORM.assessment_date == assessment_date,
        ]
        if pillar_title is not None:
            filters.append(RatingORM.pillar_title == pillar_title)

        practice_filters = []
        if practice_prefix is not None:
            practice_filters.append(
                RatingORM.practice_name.like(like_pattern(practice_prefix), escape=LIKE_ESCAPE)
            )
        if practice_name is not None:
            practice_filters.append(RatingORM.practice_name == practice_name)
        if practice_filters:
            filters.append(or_(*practice_filters))

        return super().list(*filters, order_by=[RatingORM.pillar_title, RatingORM.practice_name])

    @log_op("rating.get_by_key")
    def get_by_key(
        self, project_name: str, assessment_date: str, pillar_title: str, practice_name: str
    ) -> RatingORM | None:
        return super().first(
            RatingORM.project_name == project_name,
            RatingORM.assessment_date == assessment_date,
            RatingORM.pillar_title == pillar_title,
            RatingORM.practice_name == practice_name,
        )

    # -------- Write --------

    @log_op("rating.upsert_many")
    def upsert_many(self, records: Sequence[dict[str, Any]]) -> int:
        """
        Insert or update rows on the natural key.

        Records must already be unique on the natural key. Runs inside the
        caller's transaction.
        """
        if not records:
            return 0

        now = utcnow()
        values = [{**record, "created_at": now, "updated_at": now} for record in records]

        dialect = self.s.get_bind().dialect.name
        insert = UPSERT_DIALECTS.get(dialect)
        if insert is None:
            return self._merge_rows(values)

        stmt = insert(RatingORM).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(NATURAL_KEY_COLUMNS),
            set_={
                "rating": stmt.excluded.rating,
                "findings": stmt.excluded.findings,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.s.execute(stmt)
        return len(values)

    def _merge_rows(self, values: Sequence[dict[str, Any]]) -> int:
        # Portable path for dialects without ON CONFLICT support
        for record in values:
            existing = self.get_by_key(*(record[column] for column in NATURAL_KEY_COLUMNS))
            if existing is None:
                super().create(**record)
            else:
                super().update(
                    existing,
                    rating=record["rating"],
                    findings=record["findings"],
                    updated_at=record["updated_at"],
                )
        return len(values)
