"""Bloom's Taxonomy vocabulary.

Six cognitive levels, lowest to highest, used as labels for
weighting assessment scores.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BloomsLevel(str, Enum):
    """Cognitive levels of Bloom's Taxonomy."""

    REMEMBER = "REMEMBER"
    UNDERSTAND = "UNDERSTAND"
    APPLY = "APPLY"
    ANALYZE = "ANALYZE"
    EVALUATE = "EVALUATE"
    CREATE = "CREATE"


BLOOMS_LEVEL_ORDER: tuple[BloomsLevel, ...] = (
    BloomsLevel.REMEMBER,
    BloomsLevel.UNDERSTAND,
    BloomsLevel.APPLY,
    BloomsLevel.ANALYZE,
    BloomsLevel.EVALUATE,
    BloomsLevel.CREATE,
)

# Percentages keyed by level
LevelScores = dict[BloomsLevel, float]


@dataclass(frozen=True)
class LevelMetadata:
    """Display information for a level."""

    name: str
    order: int
    description: str


BLOOMS_LEVEL_METADATA: dict[BloomsLevel, LevelMetadata] = {
    BloomsLevel.REMEMBER: LevelMetadata(
        "Remember", 1, "Recall facts and basic concepts"
    ),
    BloomsLevel.UNDERSTAND: LevelMetadata(
        "Understand", 2, "Explain ideas or concepts"
    ),
    BloomsLevel.APPLY: LevelMetadata(
        "Apply", 3, "Use information in new situations"
    ),
    BloomsLevel.ANALYZE: LevelMetadata(
        "Analyze", 4, "Draw connections among ideas"
    ),
    BloomsLevel.EVALUATE: LevelMetadata(
        "Evaluate", 5, "Justify a stand or decision"
    ),
    BloomsLevel.CREATE: LevelMetadata(
        "Create", 6, "Produce new or original work"
    ),
}


def empty_level_scores() -> LevelScores:
    """All six levels at 0%."""
    return {level: 0.0 for level in BLOOMS_LEVEL_ORDER}


def parse_level(value: BloomsLevel | str) -> BloomsLevel:
    """Parse a level from an enum, its value, or a case-insensitive name.

    Raises:
        ValueError: If the value names no level.
    """
    if isinstance(value, BloomsLevel):
        return value
    try:
        return BloomsLevel(str(value).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown Bloom's level: {value!r}") from None
