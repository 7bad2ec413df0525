"""Mastery analytics.

Roll topic masteries up into student, class and leaderboard views.

Inputs are plain TopicMastery lists (already decayed if the caller wants
decayed values); outputs are dataclasses with to_dict() for serialization.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Mapping, Sequence

from bloomtrack.config.app_config import MasteryConfig
from bloomtrack.core.blooms import (
    BLOOMS_LEVEL_METADATA,
    BLOOMS_LEVEL_ORDER,
    BloomsLevel,
    LevelScores,
)
from bloomtrack.core.mastery_calculator import (
    MasteryLevel,
    TopicMastery,
    average,
    clamp_percentage,
    get_mastery_level,
    identify_level_gaps,
    is_topic_mastered,
)

PartitionType = Literal["class", "subject", "topic", "global"]
PARTITION_TYPES: tuple[str, ...] = ("class", "subject", "topic", "global")


def _levels_to_dict(levels: LevelScores) -> dict[str, float]:
    return {level.value: round(levels.get(level, 0.0), 2) for level in BLOOMS_LEVEL_ORDER}


def _average_levels(masteries: Sequence[TopicMastery]) -> LevelScores:
    return {
        level: clamp_percentage(average(m.levels.get(level, 0.0) for m in masteries))
        for level in BLOOMS_LEVEL_ORDER
    }


# =============================================================================
# STUDENT ANALYTICS
# =============================================================================


@dataclass
class SubjectMastery:
    subject_id: str
    subject_name: str
    mastery: float
    topic_count: int


@dataclass
class TopicGap:
    """A topic below the gap threshold for a student."""

    topic_id: str
    topic_name: str
    overall_mastery: float
    level_gaps: list[BloomsLevel]

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "topic_name": self.topic_name,
            "overall_mastery": round(self.overall_mastery, 2),
            "level_gaps": [level.value for level in self.level_gaps],
        }


@dataclass
class MasteryGrowth:
    """Change against a baseline snapshot, in points.

    Only topics present in both the current masteries and the baseline
    are compared.
    """

    period_days: int | None
    overall: float
    by_level: LevelScores
    topic_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_days": self.period_days,
            "overall": self.overall,
            "by_level": _levels_to_dict(self.by_level),
            "topic_count": self.topic_count,
        }


def _build_growth(
    masteries: Sequence[TopicMastery],
    baseline: Sequence[TopicMastery],
    period_days: int | None,
) -> MasteryGrowth | None:
    """Growth over the topics shared with the baseline, None if there are none."""
    base_by_topic = {m.topic_id: m for m in baseline}
    shared = [m for m in masteries if m.topic_id in base_by_topic]
    if not shared:
        return None
    base = [base_by_topic[m.topic_id] for m in shared]

    current_levels = _average_levels(shared)
    base_levels = _average_levels(base)
    return MasteryGrowth(
        period_days=period_days,
        overall=round(
            average(m.overall_mastery for m in shared)
            - average(m.overall_mastery for m in base),
            1,
        ),
        by_level={
            level: round(current_levels[level] - base_levels[level], 1)
            for level in BLOOMS_LEVEL_ORDER
        },
        topic_count=len(shared),
    )


@dataclass
class StudentMasteryAnalytics:
    """Aggregated mastery of one student."""

    student_id: str
    overall_mastery: float
    blooms_levels: LevelScores
    total_topics: int
    mastered_topics: int
    mastery_level: MasteryLevel
    mastery_by_subject: list[SubjectMastery] = field(default_factory=list)
    mastery_gaps: list[TopicGap] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    growth: MasteryGrowth | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "student_id": self.student_id,
            "overall_mastery": round(self.overall_mastery, 2),
            "blooms_levels": _levels_to_dict(self.blooms_levels),
            "total_topics": self.total_topics,
            "mastered_topics": self.mastered_topics,
            "mastery_level": self.mastery_level.value,
            "mastery_by_subject": [asdict(s) for s in self.mastery_by_subject],
            "mastery_gaps": [g.to_dict() for g in self.mastery_gaps],
            "recommendations": list(self.recommendations),
            "growth": self.growth.to_dict() if self.growth else None,
        }


def _build_recommendations(
    blooms_levels: LevelScores,
    gaps: list[TopicGap],
    config: MasteryConfig,
) -> list[str]:
    """Rule-based study recommendations, weakest areas first."""
    recommendations: list[str] = []

    weak_levels = sorted(
        identify_level_gaps(blooms_levels, config.gap_threshold),
        key=lambda level: blooms_levels.get(level, 0.0),
    )
    for level in weak_levels[:2]:
        meta = BLOOMS_LEVEL_METADATA[level]
        recommendations.append(
            f"Practice {meta.name.lower()}-level tasks: {meta.description.lower()} "
            f"(currently {blooms_levels.get(level, 0.0):.0f}%)."
        )

    for gap in gaps[:3]:
        recommendations.append(
            f"Review '{gap.topic_name}' ({gap.overall_mastery:.0f}% mastery)."
        )

    if not recommendations:
        strong = [
            level
            for level in BLOOMS_LEVEL_ORDER
            if blooms_levels.get(level, 0.0) >= config.mastered_threshold
        ]
        if strong and strong[-1] != BloomsLevel.CREATE:
            next_level = BLOOMS_LEVEL_ORDER[BLOOMS_LEVEL_ORDER.index(strong[-1]) + 1]
            recommendations.append(
                f"Challenge yourself with {BLOOMS_LEVEL_METADATA[next_level].name.lower()}-level tasks."
            )
        else:
            recommendations.append("Keep up the consistent practice across all levels.")

    return recommendations


def build_student_analytics(
    student_id: str,
    masteries: Sequence[TopicMastery],
    topic_names: Mapping[str, str],
    subject_names: Mapping[str, str],
    config: MasteryConfig,
    baseline: Sequence[TopicMastery] | None = None,
    growth_period_days: int | None = None,
) -> StudentMasteryAnalytics:
    """Aggregate a student's topic masteries.

    Args:
        student_id: Student whose masteries are given.
        masteries: The student's topic masteries.
        topic_names: topic_id -> display name.
        subject_names: subject_id -> display name.
        config: Mastery configuration (thresholds).
        baseline: Earlier masteries to compute growth against.
        growth_period_days: Length of the growth period, reported as is.
    """
    overall = clamp_percentage(average(m.overall_mastery for m in masteries))
    blooms_levels = _average_levels(masteries)

    by_subject: dict[str, list[TopicMastery]] = defaultdict(list)
    for m in masteries:
        by_subject[m.subject_id].append(m)
    mastery_by_subject = [
        SubjectMastery(
            subject_id=subject_id,
            subject_name=subject_names.get(subject_id, subject_id),
            mastery=round(average(m.overall_mastery for m in items), 2),
            topic_count=len(items),
        )
        for subject_id, items in sorted(by_subject.items())
    ]

    gaps = [
        TopicGap(
            topic_id=m.topic_id,
            topic_name=topic_names.get(m.topic_id, m.topic_id),
            overall_mastery=m.overall_mastery,
            level_gaps=identify_level_gaps(m.levels, config.gap_threshold),
        )
        for m in masteries
        if m.overall_mastery < config.gap_threshold
    ]
    gaps.sort(key=lambda g: g.overall_mastery)

    growth = None
    if baseline is not None:
        growth = _build_growth(masteries, baseline, growth_period_days)

    return StudentMasteryAnalytics(
        student_id=student_id,
        overall_mastery=overall,
        blooms_levels=blooms_levels,
        total_topics=len(masteries),
        mastered_topics=sum(1 for m in masteries if is_topic_mastered(m, config)),
        mastery_level=get_mastery_level(overall, config.level_thresholds),
        mastery_by_subject=mastery_by_subject,
        mastery_gaps=gaps,
        recommendations=_build_recommendations(blooms_levels, gaps, config) if masteries else [],
        growth=growth,
    )


# =============================================================================
# CLASS ANALYTICS
# =============================================================================


@dataclass
class TopicClassMastery:
    topic_id: str
    topic_name: str
    average_mastery: float
    blooms_levels: LevelScores
    student_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "topic_name": self.topic_name,
            "average_mastery": round(self.average_mastery, 2),
            "blooms_levels": _levels_to_dict(self.blooms_levels),
            "student_count": self.student_count,
        }


@dataclass
class StudentClassMastery:
    student_id: str
    student_name: str
    overall_mastery: float
    blooms_levels: LevelScores
    mastery_level: MasteryLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "overall_mastery": round(self.overall_mastery, 2),
            "blooms_levels": _levels_to_dict(self.blooms_levels),
            "mastery_level": self.mastery_level.value,
        }


@dataclass
class StrugglingStudent:
    student_id: str
    student_name: str
    mastery: float


@dataclass
class ClassTopicGap:
    """A topic where the class average is below the gap threshold."""

    topic_id: str
    topic_name: str
    average_mastery: float
    level_gaps: list[BloomsLevel]
    struggling_students: list[StrugglingStudent]

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "topic_name": self.topic_name,
            "average_mastery": round(self.average_mastery, 2),
            "level_gaps": [level.value for level in self.level_gaps],
            "struggling_students": [
                {**asdict(s), "mastery": round(s.mastery, 2)}
                for s in self.struggling_students
            ],
        }


@dataclass
class ClassMasteryAnalytics:
    """Aggregated mastery of a class."""

    class_id: str
    student_count: int
    overall_mastery: float
    blooms_levels: LevelScores
    mastery_distribution: dict[MasteryLevel, int]
    topic_mastery: list[TopicClassMastery] = field(default_factory=list)
    student_mastery: list[StudentClassMastery] = field(default_factory=list)
    mastery_gaps: list[ClassTopicGap] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "class_id": self.class_id,
            "student_count": self.student_count,
            "overall_mastery": round(self.overall_mastery, 2),
            "blooms_levels": _levels_to_dict(self.blooms_levels),
            "mastery_distribution": {
                level.value: count for level, count in self.mastery_distribution.items()
            },
            "topic_mastery": [t.to_dict() for t in self.topic_mastery],
            "student_mastery": [s.to_dict() for s in self.student_mastery],
            "mastery_gaps": [g.to_dict() for g in self.mastery_gaps],
        }


def build_class_analytics(
    class_id: str,
    students: Sequence[tuple[str, str]],
    masteries: Sequence[TopicMastery],
    topic_names: Mapping[str, str],
    config: MasteryConfig,
) -> ClassMasteryAnalytics:
    """Aggregate the masteries of every student enrolled in a class.

    Args:
        class_id: Class identifier.
        students: (student_id, student_name) pairs of enrolled students.
        masteries: Topic masteries of those students.
        topic_names: topic_id -> display name.
        config: Mastery configuration (thresholds).

    Students without any mastery count as NOVICE at 0%.
    """
    names = dict(students)
    by_student: dict[str, list[TopicMastery]] = defaultdict(list)
    by_topic: dict[str, list[TopicMastery]] = defaultdict(list)
    for m in masteries:
        if m.student_id not in names:
            continue
        by_student[m.student_id].append(m)
        by_topic[m.topic_id].append(m)

    distribution = {level: 0 for level in MasteryLevel}
    student_rows: list[StudentClassMastery] = []
    for student_id, student_name in students:
        items = by_student.get(student_id, [])
        overall = clamp_percentage(average(m.overall_mastery for m in items))
        mastery_level = get_mastery_level(overall, config.level_thresholds)
        distribution[mastery_level] += 1
        student_rows.append(
            StudentClassMastery(
                student_id=student_id,
                student_name=student_name,
                overall_mastery=overall,
                blooms_levels=_average_levels(items),
                mastery_level=mastery_level,
            )
        )
    student_rows.sort(key=lambda s: (-s.overall_mastery, s.student_name))

    topic_rows: list[TopicClassMastery] = []
    gaps: list[ClassTopicGap] = []
    for topic_id, items in sorted(by_topic.items()):
        topic_name = topic_names.get(topic_id, topic_id)
        avg = clamp_percentage(average(m.overall_mastery for m in items))
        levels = _average_levels(items)
        topic_rows.append(
            TopicClassMastery(
                topic_id=topic_id,
                topic_name=topic_name,
                average_mastery=avg,
                blooms_levels=levels,
                student_count=len(items),
            )
        )
        if avg < config.gap_threshold:
            struggling = sorted(
                (
                    StrugglingStudent(
                        student_id=m.student_id,
                        student_name=names[m.student_id],
                        mastery=m.overall_mastery,
                    )
                    for m in items
                    if m.overall_mastery < config.gap_threshold
                ),
                key=lambda s: s.mastery,
            )
            gaps.append(
                ClassTopicGap(
                    topic_id=topic_id,
                    topic_name=topic_name,
                    average_mastery=avg,
                    level_gaps=identify_level_gaps(levels, config.gap_threshold),
                    struggling_students=struggling,
                )
            )
    gaps.sort(key=lambda g: g.average_mastery)

    return ClassMasteryAnalytics(
        class_id=class_id,
        student_count=len(students),
        overall_mastery=clamp_percentage(average(s.overall_mastery for s in student_rows)),
        blooms_levels=_average_levels([m for items in by_student.values() for m in items]),
        mastery_distribution=distribution,
        topic_mastery=topic_rows,
        student_mastery=student_rows,
        mastery_gaps=gaps,
    )


# =============================================================================
# LEADERBOARD
# =============================================================================


@dataclass
class LeaderboardEntry:
    rank: int
    student_id: str
    student_name: str
    overall_mastery: float
    blooms_levels: LevelScores
    mastery_level: MasteryLevel
    topic_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "overall_mastery": round(self.overall_mastery, 2),
            "blooms_levels": _levels_to_dict(self.blooms_levels),
            "mastery_level": self.mastery_level.value,
            "topic_count": self.topic_count,
        }


@dataclass
class Leaderboard:
    partition_type: str
    partition_id: str | None
    total_students: int
    entries: list[LeaderboardEntry]

    def to_dict(self) -> dict[str, Any]:
        return {
            "partition_type": self.partition_type,
            "partition_id": self.partition_id,
            "total_students": self.total_students,
            "entries": [e.to_dict() for e in self.entries],
        }


def build_leaderboard(
    partition_type: str,
    partition_id: str | None,
    masteries: Sequence[TopicMastery],
    student_names: Mapping[str, str],
    limit: int = 10,
    thresholds: Mapping[str, float] | None = None,
) -> Leaderboard:
    """Rank students by mean overall mastery within a partition.

    The caller selects the masteries belonging to the partition. Ties share
    a rank (1, 1, 3) and are listed by name.

    Raises:
        ValueError: On unknown partition_type or non-positive limit.
    """
    if partition_type not in PARTITION_TYPES:
        raise ValueError(
            f"Unknown partition type '{partition_type}'. "
            f"Expected one of: {', '.join(PARTITION_TYPES)}"
        )
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")

    by_student: dict[str, list[TopicMastery]] = defaultdict(list)
    for m in masteries:
        by_student[m.student_id].append(m)

    rows = []
    for student_id, items in by_student.items():
        overall = round(clamp_percentage(average(m.overall_mastery for m in items)), 2)
        rows.append((student_id, student_names.get(student_id, student_id), overall, items))
    rows.sort(key=lambda row: (-row[2], row[1]))

    entries: list[LeaderboardEntry] = []
    rank = 0
    previous: float | None = None
    for position, (student_id, name, overall, items) in enumerate(rows, start=1):
        if overall != previous:
            rank = position
            previous = overall
        if position > limit:
            break
        entries.append(
            LeaderboardEntry(
                rank=rank,
                student_id=student_id,
                student_name=name,
                overall_mastery=overall,
                blooms_levels=_average_levels(items),
                mastery_level=get_mastery_level(overall, thresholds),
                topic_count=len(items),
            )
        )

    return Leaderboard(
        partition_type=partition_type,
        partition_id=partition_id,
        total_students=len(rows),
        entries=entries,
    )
