"""
Unit tests for the insight engine.

These tests verify component grading against optimal ranges, headline selection
for sleep and recovery scores, and that missing components are left out.
"""

from typing import Optional

import pytest

from daily_scores.service.score_analysis.common.data_models import (
    InsightStatus,
    RecoveryScoreResult,
    ScoreComponent,
    SleepScoreResult,
)
from daily_scores.service.score_analysis.insights.directive import MAINTAIN_HABITS
from daily_scores.service.score_analysis.insights.insight_engine import (
    generate_recovery_insights,
    generate_sleep_insights,
    range_status,
    score_status,
)
from tests.factories import TEST_DATE


def sleep_result(
    asleep_minutes: float = 480,
    deep_minutes: Optional[float] = 90,
    rem_minutes: Optional[float] = 125,
    efficiency: float = 93.0,
    onset_minutes: float = 10,
    score: int = 90,
) -> SleepScoreResult:
    return SleepScoreResult(
        date=TEST_DATE,
        final_score=score,
        components=[],
        time_in_bed_seconds=asleep_minutes * 60 / efficiency * 100,
        time_asleep_seconds=asleep_minutes * 60,
        deep_sleep_seconds=deep_minutes * 60 if deep_minutes is not None else None,
        rem_sleep_seconds=rem_minutes * 60 if rem_minutes is not None else None,
        sleep_efficiency=efficiency,
        time_to_fall_asleep_minutes=onset_minutes,
    )


def recovery_result(hrv: float, rhr: float, sleep: float, final_score: int, rhr_available: bool = True):
    return RecoveryScoreResult(
        date=TEST_DATE,
        final_score=final_score,
        hrv_component=ScoreComponent(
            name="hrv", score=hrv, max_score=120, weight=0.6, contribution=hrv * 0.6, current_value=60, baseline_value=50
        ),
        rhr_component=ScoreComponent(
            name="rhr",
            score=rhr,
            max_score=120,
            weight=0.25,
            contribution=rhr * 0.25,
            current_value=52 if rhr_available else None,
            baseline_value=55,
            available=rhr_available,
        ),
        sleep_component=ScoreComponent(
            name="sleep", score=sleep, max_score=100, weight=0.15, contribution=sleep * 0.15, current_value=sleep
        ),
        directive=MAINTAIN_HABITS,
    )


class TestStatus:
    @pytest.mark.parametrize(
        "value, status",
        [
            (92, InsightStatus.OPTIMAL),
            (90, InsightStatus.OPTIMAL),
            (87, InsightStatus.GOOD),
            (80, InsightStatus.FAIR),
            (70, InsightStatus.POOR),
            (98, InsightStatus.GOOD),
        ],
    )
    def test_range_status(self, value, status):
        assert range_status(value, 90, 95) == status

    def test_range_status_with_zero_lower_bound(self):
        assert range_status(0, 0, 15) == InsightStatus.OPTIMAL
        assert range_status(30, 0, 15) == InsightStatus.POOR

    @pytest.mark.parametrize(
        "score, status",
        [(95, InsightStatus.OPTIMAL), (85, InsightStatus.GOOD), (70, InsightStatus.FAIR), (40, InsightStatus.POOR)],
    )
    def test_score_status(self, score, status):
        assert score_status(score) == status


class TestSleepInsights:
    def test_balanced_night(self):
        insight = generate_sleep_insights(sleep_result())

        assert [c.name for c in insight.components] == ["Duration", "Deep Sleep", "REM Sleep", "Efficiency", "Onset"]
        assert all(c.status == InsightStatus.OPTIMAL for c in insight.components)
        assert insight.headline == "Your sleep was well balanced across all key metrics. Great job!"
        assert insight.score == 90

    def test_headline_names_strength_and_weakness(self):
        insight = generate_sleep_insights(sleep_result(onset_minutes=40))

        assert insight.headline == (
            "While your sleep duration was on point, long sleep onset delayed restorative processes."
        )
        assert insight.recommendation == "Build a calming wind-down routine to help you fall asleep faster."

    def test_deep_sleep_range_scales_with_time_asleep(self):
        insight = generate_sleep_insights(sleep_result(deep_minutes=30))
        deep = next(c for c in insight.components if c.name == "Deep Sleep")

        assert deep.status == InsightStatus.POOR
        assert deep.optimal_range == "1h 2m-1h 50m"
        assert "Deep Sleep" in insight.recommendation

    def test_components_without_stage_data_are_omitted(self):
        insight = generate_sleep_insights(sleep_result(deep_minutes=None, rem_minutes=None))
        assert [c.name for c in insight.components] == ["Duration", "Efficiency", "Onset"]

    def test_every_component_off(self):
        insight = generate_sleep_insights(
            sleep_result(asleep_minutes=240, deep_minutes=5, rem_minutes=5, efficiency=60, onset_minutes=60)
        )

        assert all(c.status == InsightStatus.POOR for c in insight.components)
        assert insight.headline == "Every part of your sleep fell outside its optimal range last night."
        assert insight.recommendation.startswith("Aim to be in bed 30 minutes earlier")


class TestRecoveryInsights:
    def test_well_recovered(self):
        insight = generate_recovery_insights(recovery_result(hrv=108, rhr=105, sleep=85, final_score=100))

        assert insight.headline == "Your body is in a stable, well-recovered state, ready for a productive day."
        assert insight.recommendation.startswith("Your body is primed.")
        hrv = insight.components[0]
        assert hrv.name == "Heart Rate Variability"
        assert "20% above baseline" in hrv.explanation

    def test_limiter_headline(self):
        insight = generate_recovery_insights(recovery_result(hrv=70, rhr=100, sleep=90, final_score=74))

        assert insight.headline == "Suboptimal HRV is limiting your body's ability to recover."
        assert insight.recommendation.startswith("You are well-recovered.")

    def test_mixed_signals(self):
        insight = generate_recovery_insights(recovery_result(hrv=70, rhr=70, sleep=70, final_score=50))

        assert insight.headline == "Mixed signals detected. Monitor your recovery closely today."
        assert insight.recommendation.startswith("Recovery is compromised.")

    def test_unavailable_rhr_is_left_out(self):
        insight = generate_recovery_insights(
            recovery_result(hrv=100, rhr=50, sleep=90, final_score=92, rhr_available=False)
        )
        assert [c.name for c in insight.components] == ["Heart Rate Variability", "Sleep Quality"]
