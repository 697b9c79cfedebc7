import pytest

from app.domain.models import MAX_RATING_SCORE, RatingLevel
from app.domain.services import next_rating, rating_score


def test_unrated_starts_at_largely():
    assert next_rating(None) is RatingLevel.LARGELY_IN_PLACE


def test_cycle_order():
    assert next_rating(RatingLevel.LARGELY_IN_PLACE) is RatingLevel.SOMEWHAT_IN_PLACE
    assert next_rating(RatingLevel.SOMEWHAT_IN_PLACE) is RatingLevel.NOT_IN_PLACE
    assert next_rating(RatingLevel.NOT_IN_PLACE) is RatingLevel.LARGELY_IN_PLACE


@pytest.mark.parametrize("start", list(RatingLevel))
def test_three_steps_close_the_cycle(start):
    assert next_rating(next_rating(next_rating(start))) is start


def test_scores_are_explicit():
    assert rating_score(RatingLevel.LARGELY_IN_PLACE) == 2
    assert rating_score(RatingLevel.SOMEWHAT_IN_PLACE) == 1
    assert rating_score(RatingLevel.NOT_IN_PLACE) == 0
    assert rating_score(None) == 0
    assert MAX_RATING_SCORE == 2
    assert RatingLevel.SOMEWHAT_IN_PLACE.score == 1


def test_wire_values():
    assert [level.value for level in RatingLevel] == [
        "Largely in Place",
        "Somewhat in Place",
        "Not in Place",
    ]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Largely in Place", RatingLevel.LARGELY_IN_PLACE),
        ("  somewhat in place ", RatingLevel.SOMEWHAT_IN_PLACE),
        ("NotInPlace", RatingLevel.NOT_IN_PLACE),
        ("LARGELY_IN_PLACE", RatingLevel.LARGELY_IN_PLACE),
        (RatingLevel.NOT_IN_PLACE, RatingLevel.NOT_IN_PLACE),
    ],
)
def test_parse_accepts_values_and_names(raw, expected):
    assert RatingLevel.parse(raw) is expected


@pytest.mark.parametrize("raw", [None, "", "   ", "Fully in Place", 2, 1.5, ["Largely in Place"]])
def test_parse_rejects_everything_else(raw):
    assert RatingLevel.parse(raw) is None
