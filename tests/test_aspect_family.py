import pytest

from app.domain.models import AssessmentContext, PersistedRating, RatingLevel
from app.domain.services import AspectFamily
from app.domain.taxonomy import find_practice_by_slug
from app.infrastructure.exceptions import UnknownAspectError

CTX = AssessmentContext("Acme", "2024-01-01")


def _training() -> AspectFamily:
    pillar, practice = find_practice_by_slug("training-and-upskilling")
    return AspectFamily(pillar.title, practice)


def _row(practice_name, rating=None, findings=None):
    return PersistedRating("Acme", "2024-01-01", "People", practice_name, rating, findings)


class TestHydrate:
    """Loading stored rows into fresh family state."""

    def test_no_rows_gives_defaults(self):
        family = _training()
        assert family.hydrate([]) == 0
        assert all(a.rating is None and a.findings == "" for a in family.aspects)
        assert family.practice_findings is None

    def test_matching_rows_are_applied(self):
        family = _training()
        applied = family.hydrate(
            [
                _row("Training:Training Programs", RatingLevel.SOMEWHAT_IN_PLACE, "Quarterly"),
                _row("Training and Upskilling", RatingLevel.LARGELY_IN_PLACE, "Overall note"),
            ]
        )
        assert applied == 1
        aspect = family.aspect("Training Programs")
        assert aspect.rating is RatingLevel.SOMEWHAT_IN_PLACE
        assert aspect.findings == "Quarterly"
        assert family.practice_findings == "Overall note"
        # Rollup rating is recomputed, never copied
        assert family.overall() is RatingLevel.NOT_IN_PLACE

    def test_unknown_and_foreign_rows_are_ignored(self):
        family = _training()
        applied = family.hydrate(
            [
                _row("Training:Retired Aspect", RatingLevel.LARGELY_IN_PLACE),
                _row("ChangeManagement:Change Strategy", RatingLevel.LARGELY_IN_PLACE),
            ]
        )
        assert applied == 0
        assert family.breakdown().rated == 0

    def test_unparseable_rating_becomes_unrated(self):
        family = _training()
        family.hydrate([_row("Training:Training Programs", "Fully in Place", "kept")])
        aspect = family.aspect("Training Programs")
        assert aspect.rating is None
        assert aspect.findings == "kept"

    def test_hydrate_resets_previous_state(self):
        family = _training()
        family.apply(family.with_next_rating("Training Programs"))
        family.hydrate([])
        assert family.aspect("Training Programs").rating is None


class TestUpdates:
    """Copy-then-apply updates and row building."""

    def test_with_next_rating_does_not_mutate(self):
        family = _training()
        updated = family.with_next_rating("Training Programs")
        assert updated.rating is RatingLevel.LARGELY_IN_PLACE
        assert family.aspect("Training Programs").rating is None

        family.apply(updated)
        assert family.aspect("Training Programs").rating is RatingLevel.LARGELY_IN_PLACE

    def test_overall_with_replacement_previews_change(self):
        family = _training()
        updated = family.with_next_rating("Training Programs")
        # 2 / 14
        assert family.overall(updated) is RatingLevel.NOT_IN_PLACE
        assert family.overall() is None

    def test_unknown_aspect_raises(self):
        family = _training()
        with pytest.raises(UnknownAspectError):
            family.with_next_rating("Not An Aspect")

    def test_rows_use_composite_names(self):
        family = _training()
        family.practice_findings = "Summary"
        rows = family.rows(CTX)
        assert len(rows) == 8
        assert rows[0].practice_name == "Training:Employee AI Literacy"
        assert all(r.pillar_title == "People" for r in rows)
        rollup = rows[-1]
        assert rollup.practice_name == "Training and Upskilling"
        assert rollup.rating is None
        assert rollup.findings == "Summary"

    def test_non_expandable_practice_rejected(self):
        from app.domain.taxonomy import get_pillar

        with pytest.raises(ValueError):
            AspectFamily("Strategy", get_pillar("Strategy").practice("Scalability"))
