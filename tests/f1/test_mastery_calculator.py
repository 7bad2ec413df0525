"""Tests for topic mastery calculation."""

from datetime import datetime, timedelta, timezone

import pytest

from bloomtrack.config.app_config import DecayConfig, MasteryConfig
from bloomtrack.core.blooms import BLOOMS_LEVEL_ORDER, BloomsLevel
from bloomtrack.core.mastery_calculator import (
    AssessmentResult,
    LevelResult,
    MasteryCalculationError,
    MasteryLevel,
    TopicMastery,
    apply_mastery_decay,
    calculate_mastery_from_result,
    calculate_overall_mastery,
    calculate_progress_trend,
    clamp_percentage,
    get_mastery_level,
    identify_level_gaps,
    is_topic_mastered,
    update_mastery_with_result,
)

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _result(level_results, completed_at=T0, student_id="stu001", topic_id="top001"):
    return AssessmentResult(
        student_id=student_id,
        topic_id=topic_id,
        subject_id="sub001",
        assessment_id="quiz-1",
        level_results=level_results,
        completed_at=completed_at,
    )


def _mastery(value, last=T0, **kwargs):
    levels = {level: value for level in BLOOMS_LEVEL_ORDER}
    return TopicMastery(
        student_id="stu001",
        topic_id="top001",
        subject_id="sub001",
        levels=levels,
        overall_mastery=value,
        last_assessment_date=last,
        assessment_count=1,
        **kwargs,
    )


@pytest.fixture
def config():
    return MasteryConfig()


class TestClampPercentage:
    """Tests for clamp_percentage."""

    @pytest.mark.parametrize(
        "value,expected",
        [(-5, 0.0), (0, 0.0), (42.5, 42.5), (100, 100.0), (130, 100.0)],
    )
    def test_clamps_to_range(self, value, expected):
        assert clamp_percentage(value) == expected

    def test_nan_becomes_zero(self):
        assert clamp_percentage(float("nan")) == 0.0


class TestCalculateMasteryFromResult:
    """Tests for per-level percentages of a single result."""

    def test_converts_scores_to_percentages(self):
        """score / max_score * 100 per level."""
        scores = calculate_mastery_from_result(
            _result(
                {
                    BloomsLevel.REMEMBER: LevelResult(8, 10),
                    BloomsLevel.APPLY: LevelResult(3, 4),
                }
            )
        )
        assert scores == {BloomsLevel.REMEMBER: 80.0, BloomsLevel.APPLY: 75.0}

    def test_skips_levels_without_max_score(self):
        """Levels with max_score 0 were not assessed."""
        scores = calculate_mastery_from_result(
            _result({BloomsLevel.CREATE: LevelResult(0, 0)})
        )
        assert scores == {}

    def test_clamps_scores_above_max(self):
        """Bonus points never push a level above 100%."""
        scores = calculate_mastery_from_result(
            _result({BloomsLevel.REMEMBER: LevelResult(12, 10)})
        )
        assert scores[BloomsLevel.REMEMBER] == 100.0


class TestCalculateOverallMastery:
    """Tests for the weighted overall score."""

    def test_uniform_levels_give_same_overall(self, config):
        levels = {level: 80.0 for level in BLOOMS_LEVEL_ORDER}
        assert calculate_overall_mastery(levels, config.blooms_weights) == pytest.approx(80.0)

    def test_missing_levels_count_as_zero(self, config):
        """Only REMEMBER at 100% with weight 0.10 gives 10%."""
        overall = calculate_overall_mastery(
            {BloomsLevel.REMEMBER: 100.0}, config.blooms_weights
        )
        assert overall == pytest.approx(10.0)

    def test_weights_are_normalised(self):
        """Weights need not sum to 1."""
        weights = {BloomsLevel.REMEMBER: 2.0, BloomsLevel.CREATE: 2.0}
        levels = {BloomsLevel.REMEMBER: 100.0, BloomsLevel.CREATE: 50.0}
        assert calculate_overall_mastery(levels, weights) == pytest.approx(75.0)

    def test_zero_weights_fall_back_to_mean(self):
        levels = {level: 60.0 for level in BLOOMS_LEVEL_ORDER}
        assert calculate_overall_mastery(levels, {}) == pytest.approx(60.0)


class TestUpdateMasteryWithResult:
    """Tests for folding results into a topic mastery."""

    def test_first_result_creates_mastery(self, config):
        """A new mastery takes the assessed levels directly."""
        mastery = update_mastery_with_result(
            None,
            _result({level: LevelResult(8, 10) for level in BLOOMS_LEVEL_ORDER}),
            config,
        )
        assert mastery.assessment_count == 1
        assert mastery.overall_mastery == pytest.approx(80.0)
        assert mastery.last_assessment_date == T0

    def test_recent_result_weighted(self, config):
        """Assessed levels move by recent_assessment_weight (0.3)."""
        current = update_mastery_with_result(
            None, _result({BloomsLevel.REMEMBER: LevelResult(10, 10)}), config
        )
        updated = update_mastery_with_result(
            current,
            _result(
                {BloomsLevel.REMEMBER: LevelResult(5, 10)},
                completed_at=T0 + timedelta(days=1),
            ),
            config,
        )
        assert updated.levels[BloomsLevel.REMEMBER] == pytest.approx(85.0)
        assert updated.overall_mastery == pytest.approx(8.5)
        assert updated.assessment_count == 2
        assert updated.last_assessment_date == T0 + timedelta(days=1)

    def test_unassessed_levels_keep_value(self, config):
        current = _mastery(70.0)
        updated = update_mastery_with_result(
            current, _result({BloomsLevel.CREATE: LevelResult(10, 10)}), config
        )
        assert updated.levels[BloomsLevel.REMEMBER] == pytest.approx(70.0)
        assert updated.levels[BloomsLevel.CREATE] == pytest.approx(79.0)

    def test_overall_is_recomputed(self, config):
        """Weighted sum is recomputed on every update."""
        current = _mastery(50.0)
        updated = update_mastery_with_result(
            current, _result({BloomsLevel.APPLY: LevelResult(10, 10)}), config
        )
        expected = calculate_overall_mastery(updated.levels, config.blooms_weights)
        assert updated.overall_mastery == pytest.approx(expected)
        assert updated.overall_mastery > 50.0

    def test_does_not_mutate_current(self, config):
        current = _mastery(50.0)
        update_mastery_with_result(
            current, _result({BloomsLevel.APPLY: LevelResult(10, 10)}), config
        )
        assert current.levels[BloomsLevel.APPLY] == 50.0
        assert current.assessment_count == 1

    def test_rejects_mismatched_student(self, config):
        with pytest.raises(MasteryCalculationError):
            update_mastery_with_result(
                _mastery(50.0),
                _result({BloomsLevel.APPLY: LevelResult(1, 1)}, student_id="stu002"),
                config,
            )

    def test_older_result_keeps_latest_date(self, config):
        current = _mastery(50.0, last=T0 + timedelta(days=5))
        updated = update_mastery_with_result(
            current, _result({BloomsLevel.APPLY: LevelResult(1, 1)}), config
        )
        assert updated.last_assessment_date == T0 + timedelta(days=5)

    def test_older_result_keeps_decay_marker(self, config):
        current = _mastery(
            50.0, last=T0 + timedelta(days=5), last_decay_date=T0 + timedelta(days=30)
        )
        updated = update_mastery_with_result(
            current, _result({BloomsLevel.APPLY: LevelResult(1, 1)}), config
        )
        assert updated.last_decay_date == T0 + timedelta(days=30)

    def test_latest_result_clears_decay_marker(self, config):
        current = _mastery(50.0, last_decay_date=T0 + timedelta(days=10))
        updated = update_mastery_with_result(
            current,
            _result({BloomsLevel.APPLY: LevelResult(1, 1)}, completed_at=T0 + timedelta(days=20)),
            config,
        )
        assert updated.last_assessment_date == T0 + timedelta(days=20)
        assert updated.last_decay_date is None

    def test_result_before_last_decay_does_not_reopen_decayed_days(self, config):
        """Days already charged by a decay pass are not charged again."""
        decayed = apply_mastery_decay(_mastery(80.0), T0 + timedelta(days=30), config)
        assert decayed.levels[BloomsLevel.APPLY] == pytest.approx(68.5)

        late = _result(
            {level: LevelResult(68.5, 100) for level in BLOOMS_LEVEL_ORDER},
            completed_at=T0 + timedelta(days=20),
        )
        updated = update_mastery_with_result(decayed, late, config)
        assert updated.last_decay_date == T0 + timedelta(days=30)

        again = apply_mastery_decay(updated, T0 + timedelta(days=30), config)
        for level in BLOOMS_LEVEL_ORDER:
            assert again.levels[level] == pytest.approx(68.5)


class TestAssessmentResultFromDict:
    """Tests for AssessmentResult.from_dict."""

    def test_parses_levels_case_insensitively(self):
        result = AssessmentResult.from_dict(
            {
                "student_id": "stu001",
                "topic_id": "top001",
                "level_results": {"apply": {"score": 3, "max_score": 4}},
                "completed_at": "2026-03-01T09:00:00+00:00",
            }
        )
        assert result.level_results[BloomsLevel.APPLY] == LevelResult(3.0, 4.0)
        assert result.completed_at == T0

    def test_rejects_same_level_in_two_spellings(self):
        with pytest.raises(ValueError, match="Duplicate"):
            AssessmentResult.from_dict(
                {
                    "student_id": "stu001",
                    "topic_id": "top001",
                    "level_results": {
                        "apply": {"score": 1, "max_score": 4},
                        "APPLY": {"score": 4, "max_score": 4},
                    },
                }
            )


class TestApplyMasteryDecay:
    """Tests for linear time-based decay."""

    def test_no_decay_within_grace_period(self, config):
        mastery = _mastery(80.0)
        decayed = apply_mastery_decay(mastery, T0 + timedelta(days=7), config)
        assert decayed.levels == mastery.levels

    def test_linear_decay_after_grace_period(self, config):
        """20 days past the 7-day grace at 0.5 points/day loses 10 points."""
        decayed = apply_mastery_decay(_mastery(80.0), T0 + timedelta(days=27), config)
        for level in BLOOMS_LEVEL_ORDER:
            assert decayed.levels[level] == pytest.approx(70.0)
        assert decayed.overall_mastery == pytest.approx(70.0)

    def test_decay_never_goes_below_floor(self, config):
        decayed = apply_mastery_decay(_mastery(25.0), T0 + timedelta(days=400), config)
        for level in BLOOMS_LEVEL_ORDER:
            assert decayed.levels[level] == pytest.approx(20.0)

    def test_levels_below_floor_are_untouched(self, config):
        """Decay never raises a level up to the floor."""
        decayed = apply_mastery_decay(_mastery(10.0), T0 + timedelta(days=400), config)
        assert decayed.levels[BloomsLevel.REMEMBER] == pytest.approx(10.0)

    def test_disabled_decay(self):
        config = MasteryConfig(decay=DecayConfig(enabled=False))
        mastery = _mastery(80.0)
        assert apply_mastery_decay(mastery, T0 + timedelta(days=100), config) is mastery

    def test_without_assessment_date(self, config):
        mastery = _mastery(80.0, last=None)
        assert apply_mastery_decay(mastery, T0 + timedelta(days=100), config) is mastery

    def test_decay_is_not_applied_twice(self, config):
        """A second pass only decays the time since the first pass."""
        first = apply_mastery_decay(_mastery(80.0), T0 + timedelta(days=27), config)
        again = apply_mastery_decay(first, T0 + timedelta(days=27), config)
        assert again.levels[BloomsLevel.APPLY] == pytest.approx(70.0)

        later = apply_mastery_decay(first, T0 + timedelta(days=37), config)
        assert later.levels[BloomsLevel.APPLY] == pytest.approx(65.0)

    def test_input_not_mutated(self, config):
        mastery = _mastery(80.0)
        apply_mastery_decay(mastery, T0 + timedelta(days=27), config)
        assert mastery.levels[BloomsLevel.APPLY] == 80.0
        assert mastery.last_decay_date is None

    def test_naive_now_treated_as_utc(self, config):
        naive_now = (T0 + timedelta(days=27)).replace(tzinfo=None)
        decayed = apply_mastery_decay(_mastery(80.0), naive_now, config)
        assert decayed.overall_mastery == pytest.approx(70.0)


class TestGetMasteryLevel:
    """Tests for threshold-based classification."""

    @pytest.mark.parametrize(
        "percentage,expected",
        [
            (95, MasteryLevel.EXPERT),
            (90, MasteryLevel.EXPERT),
            (89.9, MasteryLevel.ADVANCED),
            (80, MasteryLevel.ADVANCED),
            (70, MasteryLevel.PROFICIENT),
            (60, MasteryLevel.DEVELOPING),
            (59.9, MasteryLevel.NOVICE),
            (0, MasteryLevel.NOVICE),
        ],
    )
    def test_default_thresholds(self, percentage, expected):
        assert get_mastery_level(percentage) == expected

    def test_custom_thresholds(self):
        assert get_mastery_level(85, {"expert": 85}) == MasteryLevel.EXPERT


class TestGapsAndTrends:
    """Tests for mastered flag, level gaps and progress trend."""

    def test_is_topic_mastered(self, config):
        assert is_topic_mastered(_mastery(80.0), config)
        assert not is_topic_mastered(_mastery(79.9), config)

    def test_identify_level_gaps_in_taxonomy_order(self):
        levels = {
            BloomsLevel.REMEMBER: 90.0,
            BloomsLevel.UNDERSTAND: 40.0,
            BloomsLevel.APPLY: 70.0,
            BloomsLevel.ANALYZE: 30.0,
            BloomsLevel.EVALUATE: 65.0,
            BloomsLevel.CREATE: 10.0,
        }
        assert identify_level_gaps(levels, 60.0) == [
            BloomsLevel.UNDERSTAND,
            BloomsLevel.ANALYZE,
            BloomsLevel.CREATE,
        ]

    def test_trend_improving(self):
        history = [(T0, 50.0), (T0 + timedelta(days=3), 62.0)]
        assert calculate_progress_trend(history) == "improving"

    def test_trend_declining_unordered_input(self):
        history = [(T0 + timedelta(days=3), 40.0), (T0, 60.0)]
        assert calculate_progress_trend(history) == "declining"

    def test_trend_stable_within_tolerance(self):
        history = [(T0, 50.0), (T0 + timedelta(days=1), 53.0)]
        assert calculate_progress_trend(history) == "stable"

    def test_trend_single_point_is_stable(self):
        assert calculate_progress_trend([(T0, 50.0)]) == "stable"
