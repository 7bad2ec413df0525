"""Topic mastery calculation.

Responsibilities:
- Convert assessment results into per-level mastery percentages
- Fold new results into an existing topic mastery (recency-weighted)
- Compute the weighted overall mastery across Bloom's levels
- Apply linear time-based decay bounded by a configured floor
- Classify percentages into mastery levels

All functions are pure: records go in, new records come out.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Literal, Mapping

import structlog

from bloomtrack.config.app_config import MasteryConfig
from bloomtrack.core.blooms import (
    BLOOMS_LEVEL_ORDER,
    BloomsLevel,
    LevelScores,
    empty_level_scores,
    parse_level,
)

logger = structlog.get_logger(__name__)

ProgressTrend = Literal["improving", "declining", "stable"]

# =============================================================================
# TYPES
# =============================================================================


class MasteryLevel(str, Enum):
    """Classification of a mastery percentage."""

    NOVICE = "NOVICE"
    DEVELOPING = "DEVELOPING"
    PROFICIENT = "PROFICIENT"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"


class MasteryCalculationError(Exception):
    """Error combining mastery records."""

    pass


@dataclass
class LevelResult:
    """Raw score obtained on one cognitive level."""

    score: float
    max_score: float


@dataclass
class AssessmentResult:
    """Outcome of one assessment for one student on one topic."""

    student_id: str
    topic_id: str
    subject_id: str
    assessment_id: str
    level_results: dict[BloomsLevel, LevelResult]
    completed_at: datetime

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AssessmentResult:
        """Build from a JSON-like mapping.

        level_results maps level names to {"score": x, "max_score": y}.

        Raises:
            ValueError: On unknown levels, or one level given twice
                under different spellings ("apply" and "APPLY").
        """
        level_results: dict[BloomsLevel, LevelResult] = {}
        for key, raw in (data.get("level_results") or {}).items():
            level = parse_level(key)
            if level in level_results:
                raise ValueError(f"Duplicate Bloom's level: {key!r}")
            level_results[level] = LevelResult(
                score=float(raw["score"]), max_score=float(raw["max_score"])
            )
        completed_at = data.get("completed_at")
        if isinstance(completed_at, str):
            completed_at = datetime.fromisoformat(completed_at)
        return cls(
            student_id=data["student_id"],
            topic_id=data["topic_id"],
            subject_id=data.get("subject_id", ""),
            assessment_id=data.get("assessment_id", ""),
            level_results=level_results,
            completed_at=as_utc(completed_at or datetime.now(timezone.utc)),
        )


@dataclass
class TopicMastery:
    """Mastery of a student on a topic, per cognitive level."""

    student_id: str
    topic_id: str
    subject_id: str
    levels: LevelScores = field(default_factory=empty_level_scores)
    overall_mastery: float = 0.0
    last_assessment_date: datetime | None = None
    assessment_count: int = 0
    last_decay_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "student_id": self.student_id,
            "topic_id": self.topic_id,
            "subject_id": self.subject_id,
            "levels": {level.value: self.levels.get(level, 0.0) for level in BLOOMS_LEVEL_ORDER},
            "overall_mastery": self.overall_mastery,
            "last_assessment_date": (
                self.last_assessment_date.isoformat()
                if self.last_assessment_date
                else None
            ),
            "assessment_count": self.assessment_count,
        }


# =============================================================================
# HELPERS
# =============================================================================


def as_utc(value: datetime) -> datetime:
    """Normalise to UTC; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clamp_percentage(value: float) -> float:
    """Clamp a percentage to [0, 100]. NaN becomes 0."""
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(100.0, float(value)))


def average(values: Iterable[float]) -> float:
    """Mean of values, 0 for an empty iterable."""
    items = list(values)
    if not items:
        return 0.0
    return sum(items) / len(items)


# =============================================================================
# CALCULATION
# =============================================================================


def calculate_mastery_from_result(result: AssessmentResult) -> LevelScores:
    """Per-level percentages for the levels an assessment covered.

    Levels with a non-positive max_score were not assessed and are omitted.
    """
    scores: LevelScores = {}
    for level in BLOOMS_LEVEL_ORDER:
        level_result = result.level_results.get(level)
        if level_result is None or level_result.max_score <= 0:
            continue
        scores[level] = clamp_percentage(
            level_result.score / level_result.max_score * 100
        )
    return scores


def calculate_overall_mastery(
    levels: Mapping[BloomsLevel, float],
    weights: Mapping[BloomsLevel, float],
) -> float:
    """Weighted average of level percentages.

    Weights are normalised by their sum; a missing level counts as 0.
    With all weights at zero the plain mean is used.
    """
    values = {level: clamp_percentage(levels.get(level, 0.0)) for level in BLOOMS_LEVEL_ORDER}
    total_weight = sum(max(0.0, weights.get(level, 0.0)) for level in BLOOMS_LEVEL_ORDER)

    if total_weight <= 0:
        return clamp_percentage(average(values.values()))

    weighted = sum(
        values[level] * max(0.0, weights.get(level, 0.0)) for level in BLOOMS_LEVEL_ORDER
    )
    return clamp_percentage(weighted / total_weight)


def update_mastery_with_result(
    current: TopicMastery | None,
    result: AssessmentResult,
    config: MasteryConfig,
) -> TopicMastery:
    """Fold an assessment result into a topic mastery.

    Assessed levels move towards the new score by recent_assessment_weight;
    levels the assessment did not cover keep their value.

    Raises:
        MasteryCalculationError: If result and mastery belong to different
            student/topic pairs.
    """
    new_scores = calculate_mastery_from_result(result)
    completed_at = as_utc(result.completed_at)

    if current is None:
        levels = empty_level_scores()
        levels.update(new_scores)
        return TopicMastery(
            student_id=result.student_id,
            topic_id=result.topic_id,
            subject_id=result.subject_id,
            levels=levels,
            overall_mastery=calculate_overall_mastery(levels, config.blooms_weights),
            last_assessment_date=completed_at,
            assessment_count=1,
        )

    if current.student_id != result.student_id or current.topic_id != result.topic_id:
        raise MasteryCalculationError(
            f"Result for {result.student_id}/{result.topic_id} cannot update "
            f"mastery of {current.student_id}/{current.topic_id}"
        )

    weight = config.recent_assessment_weight
    levels = {level: current.levels.get(level, 0.0) for level in BLOOMS_LEVEL_ORDER}
    for level, new_value in new_scores.items():
        levels[level] = clamp_percentage(levels[level] * (1 - weight) + new_value * weight)

    last_date = completed_at
    if current.last_assessment_date and as_utc(current.last_assessment_date) > completed_at:
        last_date = as_utc(current.last_assessment_date)

    # Decay already charged past this result stays charged
    last_decay_date = current.last_decay_date
    if last_decay_date is None or as_utc(last_decay_date) <= completed_at:
        last_decay_date = None if last_date == completed_at else last_decay_date

    return replace(
        current,
        subject_id=current.subject_id or result.subject_id,
        levels=levels,
        overall_mastery=calculate_overall_mastery(levels, config.blooms_weights),
        last_assessment_date=last_date,
        assessment_count=current.assessment_count + 1,
        last_decay_date=last_decay_date,
    )


def apply_mastery_decay(
    mastery: TopicMastery,
    now: datetime,
    config: MasteryConfig,
) -> TopicMastery:
    """Apply linear decay for the time elapsed since the last assessment.

    Each level loses decay_rate_per_day points per day past the grace
    period, down to minimum_level. Levels already under the floor are kept.
    Decay already applied up to last_decay_date is not applied again.
    Returns a new record; the input is not modified.
    """
    decay = config.decay
    if not decay.enabled or mastery.last_assessment_date is None:
        return mastery

    now = as_utc(now)
    start = as_utc(mastery.last_assessment_date) + timedelta(days=decay.grace_period_days)
    if mastery.last_decay_date is not None and as_utc(mastery.last_decay_date) > start:
        start = as_utc(mastery.last_decay_date)

    decay_days = (now - start).total_seconds() / 86400
    if decay_days <= 0:
        return mastery

    points = decay.decay_rate_per_day * decay_days
    levels: LevelScores = {}
    for level in BLOOMS_LEVEL_ORDER:
        value = clamp_percentage(mastery.levels.get(level, 0.0))
        floor = min(value, decay.minimum_level)
        levels[level] = max(value - points, floor)

    logger.debug(
        "mastery.decayed",
        student_id=mastery.student_id,
        topic_id=mastery.topic_id,
        decay_days=round(decay_days, 2),
        points=round(points, 2),
    )

    return replace(
        mastery,
        levels=levels,
        overall_mastery=calculate_overall_mastery(levels, config.blooms_weights),
        last_decay_date=now,
    )


# =============================================================================
# CLASSIFICATION
# =============================================================================


def get_mastery_level(
    percentage: float,
    thresholds: Mapping[str, float] | None = None,
) -> MasteryLevel:
    """Classify a percentage into a MasteryLevel."""
    t = {"expert": 90.0, "advanced": 80.0, "proficient": 70.0, "developing": 60.0}
    if thresholds:
        t.update(thresholds)

    if percentage >= t["expert"]:
        return MasteryLevel.EXPERT
    elif percentage >= t["advanced"]:
        return MasteryLevel.ADVANCED
    elif percentage >= t["proficient"]:
        return MasteryLevel.PROFICIENT
    elif percentage >= t["developing"]:
        return MasteryLevel.DEVELOPING
    else:
        return MasteryLevel.NOVICE


def is_topic_mastered(mastery: TopicMastery, config: MasteryConfig) -> bool:
    """Whether the overall mastery reaches the mastered threshold."""
    return mastery.overall_mastery >= config.mastered_threshold


def identify_level_gaps(
    levels: Mapping[BloomsLevel, float], threshold: float
) -> list[BloomsLevel]:
    """Levels below threshold, in taxonomy order."""
    return [level for level in BLOOMS_LEVEL_ORDER if levels.get(level, 0.0) < threshold]


def calculate_progress_trend(
    history: list[tuple[datetime, float]],
    tolerance: float = 5.0,
) -> ProgressTrend:
    """Compare earliest and latest overall mastery in a history.

    Args:
        history: (recorded_at, overall_mastery) pairs, any order.
        tolerance: Minimum change in points to count as a trend.
    """
    if len(history) < 2:
        return "stable"

    ordered = sorted(history, key=lambda item: as_utc(item[0]))
    delta = ordered[-1][1] - ordered[0][1]
    if delta > tolerance:
        return "improving"
    if delta < -tolerance:
        return "declining"
    return "stable"
