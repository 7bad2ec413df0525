"""Mastery service.

Orchestrates the repositories and the pure mastery functions:
- record assessment results (decay, fold in, persist, snapshot)
- batch decay of stored masteries
- student, class and leaderboard analytics
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import structlog

from bloomtrack.config.app_config import MasteryConfig, get_mastery_config
from bloomtrack.core.mastery_analytics import (
    ClassMasteryAnalytics,
    Leaderboard,
    PARTITION_TYPES,
    StudentMasteryAnalytics,
    build_class_analytics,
    build_leaderboard,
    build_student_analytics,
)
from bloomtrack.core.mastery_calculator import (
    AssessmentResult,
    ProgressTrend,
    TopicMastery,
    apply_mastery_decay,
    calculate_progress_trend,
    update_mastery_with_result,
)
from bloomtrack.db import mastery_repository as masteries
from bloomtrack.db import registry_repository as registry
from bloomtrack.db.database import get_db
from bloomtrack.db.registry_repository import EntityNotFoundError

logger = structlog.get_logger(__name__)

DEFAULT_GROWTH_PERIOD_DAYS = 30


def _now() -> datetime:
    return datetime.now(timezone.utc)


def record_assessment_result(
    result: AssessmentResult,
    config: MasteryConfig | None = None,
) -> TopicMastery:
    """Record a result and update the student's topic mastery.

    The stored mastery is decayed up to the result's completion date
    before the result is folded in. The raw result, the mastery and its
    snapshot are written in one transaction.

    Raises:
        EntityNotFoundError: If the student or topic doesn't exist
    """
    config = config or get_mastery_config()

    if registry.get_student(result.student_id) is None:
        raise EntityNotFoundError("student", result.student_id)
    topic = registry.get_topic(result.topic_id)
    if topic is None:
        raise EntityNotFoundError("topic", result.topic_id)

    result = replace(result, subject_id=topic.subject_id)
    with get_db() as conn:
        masteries.save_assessment_result(result, conn=conn)

        current = masteries.get_topic_mastery(result.student_id, result.topic_id, conn=conn)
        if current is not None:
            current = apply_mastery_decay(current, result.completed_at, config)

        updated = update_mastery_with_result(current, result, config)
        masteries.upsert_topic_mastery(updated, conn=conn)
        masteries.append_history(updated, result.completed_at, conn=conn)

    logger.info(
        "mastery.updated",
        student_id=updated.student_id,
        topic_id=updated.topic_id,
        overall=round(updated.overall_mastery, 2),
        assessments=updated.assessment_count,
    )
    return updated


def apply_decay_to_all(
    config: MasteryConfig | None = None,
    now: datetime | None = None,
) -> int:
    """Decay and persist every stored mastery.

    Returns:
        Number of masteries that changed
    """
    config = config or get_mastery_config()
    now = now or _now()

    changed = 0
    for mastery in masteries.list_all_masteries():
        decayed = apply_mastery_decay(mastery, now, config)
        if decayed is mastery:
            continue
        with get_db() as conn:
            masteries.upsert_topic_mastery(decayed, conn=conn)
            if decayed.levels != mastery.levels:
                masteries.append_history(decayed, now, conn=conn)
                changed += 1

    logger.info("mastery.decay_applied", changed=changed, at=now.isoformat())
    return changed


def get_student_mastery(
    student_id: str,
    config: MasteryConfig | None = None,
    now: datetime | None = None,
) -> list[TopicMastery]:
    """A student's masteries with decay applied for display.

    Stored values are not modified.

    Raises:
        EntityNotFoundError: If the student doesn't exist
    """
    config = config or get_mastery_config()
    now = now or _now()

    if registry.get_student(student_id) is None:
        raise EntityNotFoundError("student", student_id)

    return [
        apply_mastery_decay(m, now, config)
        for m in masteries.list_masteries_for_student(student_id)
    ]


def get_student_analytics(
    student_id: str,
    config: MasteryConfig | None = None,
    now: datetime | None = None,
    growth_period_days: int = DEFAULT_GROWTH_PERIOD_DAYS,
) -> StudentMasteryAnalytics:
    """Analytics for a student, with growth over the given period.

    Raises:
        EntityNotFoundError: If the student doesn't exist
    """
    config = config or get_mastery_config()
    now = now or _now()

    current = get_student_mastery(student_id, config, now)
    baseline = masteries.get_snapshot_before(
        student_id, now - timedelta(days=growth_period_days)
    )

    return build_student_analytics(
        student_id,
        current,
        registry.get_topic_names(),
        registry.get_subject_names(),
        config,
        baseline=baseline or None,
        growth_period_days=growth_period_days,
    )


def get_class_analytics(
    class_id: str,
    config: MasteryConfig | None = None,
    now: datetime | None = None,
) -> ClassMasteryAnalytics:
    """Analytics for every student enrolled in a class.

    Raises:
        EntityNotFoundError: If the class doesn't exist
    """
    config = config or get_mastery_config()
    now = now or _now()

    if registry.get_class(class_id) is None:
        raise EntityNotFoundError("class", class_id)

    students = [(s.student_id, s.name) for s in registry.list_class_students(class_id)]
    class_masteries = [
        apply_mastery_decay(m, now, config)
        for m in masteries.list_masteries_for_class(class_id)
    ]

    return build_class_analytics(
        class_id, students, class_masteries, registry.get_topic_names(), config
    )


def get_leaderboard(
    partition_type: str,
    partition_id: str | None = None,
    limit: int = 10,
    config: MasteryConfig | None = None,
    now: datetime | None = None,
) -> Leaderboard:
    """Leaderboard for a class, subject, topic, or all students.

    Raises:
        ValueError: On unknown partition type, missing partition_id or bad limit
        EntityNotFoundError: If the partition entity doesn't exist
    """
    config = config or get_mastery_config()
    now = now or _now()

    if partition_type not in PARTITION_TYPES:
        raise ValueError(
            f"Unknown partition type '{partition_type}'. "
            f"Expected one of: {', '.join(PARTITION_TYPES)}"
        )
    if partition_type != "global" and not partition_id:
        raise ValueError(f"partition_id is required for '{partition_type}' leaderboards")

    if partition_type == "class":
        if registry.get_class(partition_id) is None:
            raise EntityNotFoundError("class", partition_id)
        selected = masteries.list_masteries_for_class(partition_id)
    elif partition_type == "subject":
        if registry.get_subject(partition_id) is None:
            raise EntityNotFoundError("subject", partition_id)
        selected = masteries.list_masteries_for_subject(partition_id)
    elif partition_type == "topic":
        if registry.get_topic(partition_id) is None:
            raise EntityNotFoundError("topic", partition_id)
        selected = masteries.list_masteries_for_topic(partition_id)
    else:
        partition_id = None
        selected = masteries.list_all_masteries()

    names = {s.student_id: s.name for s in registry.list_students()}
    return build_leaderboard(
        partition_type,
        partition_id,
        [apply_mastery_decay(m, now, config) for m in selected],
        names,
        limit=limit,
        thresholds=config.level_thresholds,
    )


def get_topic_trend(student_id: str, topic_id: str) -> ProgressTrend:
    """Progress trend of a student on a topic from stored history.

    Raises:
        EntityNotFoundError: If the student or topic doesn't exist
    """
    if registry.get_student(student_id) is None:
        raise EntityNotFoundError("student", student_id)
    if registry.get_topic(topic_id) is None:
        raise EntityNotFoundError("topic", topic_id)

    return calculate_progress_trend(masteries.get_history(student_id, topic_id))
