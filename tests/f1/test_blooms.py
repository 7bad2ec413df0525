"""Tests for the Bloom's Taxonomy vocabulary."""

import pytest

from bloomtrack.core.blooms import (
    BLOOMS_LEVEL_METADATA,
    BLOOMS_LEVEL_ORDER,
    BloomsLevel,
    empty_level_scores,
    parse_level,
)


def test_order_is_lowest_to_highest():
    assert BLOOMS_LEVEL_ORDER[0] == BloomsLevel.REMEMBER
    assert BLOOMS_LEVEL_ORDER[-1] == BloomsLevel.CREATE
    assert len(BLOOMS_LEVEL_ORDER) == 6
    assert [BLOOMS_LEVEL_METADATA[level].order for level in BLOOMS_LEVEL_ORDER] == [
        1, 2, 3, 4, 5, 6,
    ]


def test_empty_level_scores_covers_every_level():
    scores = empty_level_scores()
    assert set(scores) == set(BloomsLevel)
    assert all(value == 0.0 for value in scores.values())


@pytest.mark.parametrize("value", ["APPLY", "apply", " Apply ", BloomsLevel.APPLY])
def test_parse_level_accepts_any_case(value):
    assert parse_level(value) == BloomsLevel.APPLY


def test_parse_level_rejects_unknown():
    with pytest.raises(ValueError, match="Unknown Bloom's level"):
        parse_level("SYNTHESIZE")
