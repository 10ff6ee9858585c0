"""
Sleep scoring models.

The point-table model is the canonical sleep score: five components scored
through step tables whose maxima sum to 100, added up without any further
weighting. The continuous-curve model in ``legacy_sleep_score`` implements the
same ``SleepScorer`` interface and is only used when a session lacks the stage
data the point tables need.
"""

import datetime as dt
from abc import ABC, abstractmethod
from typing import List

from daily_scores.service.score_analysis.common.constants import SleepPoints, SleepReference
from daily_scores.service.score_analysis.common.data_models import (
    Baseline,
    ScoreComponent,
    SleepScoreModel,
    SleepScoreResult,
    SleepSession,
)
from daily_scores.service.score_analysis.common.formatting import format_duration, format_time
from daily_scores.service.score_analysis.common.normalization import StepTable, clamp, signed_minutes_from, step_lookup

DURATION_TABLE = StepTable(SleepPoints.DURATION_HOURS)
DEEP_SLEEP_TABLE = StepTable(SleepPoints.DEEP_MINUTES)
REM_SLEEP_TABLE = StepTable(
    SleepPoints.REM_MINUTES
    + ((0.0, lambda minutes: minutes / SleepPoints.REM_LINEAR_BAND_MINUTES * SleepPoints.REM_LINEAR_BAND_POINTS),)
)
EFFICIENCY_TABLE = StepTable(SleepPoints.EFFICIENCY_PCT)


def duration_points(hours_asleep: float) -> float:
    return step_lookup(hours_asleep, DURATION_TABLE)


def deep_sleep_points(deep_minutes: float) -> float:
    return step_lookup(deep_minutes, DEEP_SLEEP_TABLE)


def rem_sleep_points(rem_minutes: float) -> float:
    return step_lookup(rem_minutes, REM_SLEEP_TABLE)


def efficiency_points(efficiency_pct: float) -> float:
    return step_lookup(efficiency_pct, EFFICIENCY_TABLE)


def consistency_points(deviation_minutes: float) -> float:
    """Full points at or before the target bedtime, one point lost per 10 minutes later than it."""
    if deviation_minutes <= 0:
        return float(SleepPoints.CONSISTENCY_MAX)
    return max(0.0, SleepPoints.CONSISTENCY_MAX - deviation_minutes / SleepPoints.CONSISTENCY_MINUTES_PER_POINT)


class SleepScorer(ABC):
    """A sleep scoring model: pure function of one session and a baseline snapshot."""

    model: SleepScoreModel

    def __init__(self, default_target_bedtime: dt.time = SleepReference.DEFAULT_TARGET_BEDTIME):
        self.default_target_bedtime = default_target_bedtime

    @abstractmethod
    def can_score(self, session: SleepSession) -> bool:
        """Whether the session carries everything this model needs."""

    @abstractmethod
    def score(self, session: SleepSession, baseline: Baseline) -> SleepScoreResult:
        """Score ``session`` against ``baseline``."""

    def target_bedtime(self, baseline: Baseline) -> dt.time:
        return baseline.bedtime14 or self.default_target_bedtime

    @staticmethod
    def is_low_confidence(baseline: Baseline) -> bool:
        return baseline.calibrating or baseline.bedtime14 is None


class PointTableSleepScorer(SleepScorer):
    """Canonical sleep score built from the five point tables."""

    model = SleepScoreModel.POINT_TABLE

    def can_score(self, session: SleepSession) -> bool:
        return session.has_stage_data

    def score(self, session: SleepSession, baseline: Baseline) -> SleepScoreResult:
        if not self.can_score(session):
            raise ValueError(f"Sleep session for {session.date} has no sleep stage data")

        hours_asleep = session.hours_asleep
        deep_minutes = session.deep_sleep_seconds / 60
        rem_minutes = session.rem_sleep_seconds / 60
        efficiency = session.efficiency_pct
        target = self.target_bedtime(baseline)
        deviation = signed_minutes_from(session.bedtime, target)

        components = [
            self._duration_component(session, duration_points(hours_asleep)),
            self._deep_sleep_component(session, deep_sleep_points(deep_minutes)),
            self._rem_component(session, rem_sleep_points(rem_minutes)),
            self._efficiency_component(efficiency, efficiency_points(efficiency)),
            self._consistency_component(session, baseline, target, deviation, consistency_points(deviation)),
        ]

        # Table maxima already sum to 100, so points are the final contributions.
        total = sum(component.contribution for component in components)
        final_score = int(round(clamp(total, 0, 100)))

        return SleepScoreResult(
            date=session.date,
            final_score=final_score,
            components=components,
            time_in_bed_seconds=session.time_in_bed_seconds,
            time_asleep_seconds=session.time_asleep_seconds,
            deep_sleep_seconds=session.deep_sleep_seconds,
            rem_sleep_seconds=session.rem_sleep_seconds,
            sleep_efficiency=efficiency,
            time_to_fall_asleep_minutes=session.fall_asleep_minutes,
            model=self.model,
            key_findings=key_findings(session, components),
            low_confidence=self.is_low_confidence(baseline),
        )

    @staticmethod
    def _duration_component(session: SleepSession, points: float) -> ScoreComponent:
        hours = session.hours_asleep
        low, high = SleepReference.OPTIMAL_DURATION_HOURS
        if low <= hours <= high:
            qualifier = "optimal range 7h 30m - 8h 30m"
        elif 6.0 <= hours < low:
            qualifier = "below optimal range 7h 30m - 8h 30m"
        elif hours < 6.0:
            qualifier = "significantly below recommended minimum"
        else:
            qualifier = "above optimal range 7h 30m - 8h 30m"
        return ScoreComponent(
            name="duration",
            score=points,
            max_score=SleepPoints.DURATION_MAX,
            contribution=points,
            current_value=session.time_asleep_seconds,
            description=(
                f"Sleep Duration: {format_duration(session.time_asleep_seconds)} ({qualifier}). "
                f"Score: {points:g}/{SleepPoints.DURATION_MAX}."
            ),
        )

    @staticmethod
    def _deep_sleep_component(session: SleepSession, points: float) -> ScoreComponent:
        deep_seconds = session.deep_sleep_seconds
        deep_pct = deep_seconds / session.time_asleep_seconds * 100
        low, high = SleepReference.OPTIMAL_DEEP_PCT
        if deep_seconds / 60 >= SleepPoints.DEEP_MINUTES[0][0]:
            qualifier = "excellent"
        elif low <= deep_pct <= high:
            qualifier = "optimal range 13-23%"
        elif deep_pct < low:
            qualifier = "below optimal range 13-23%"
        else:
            qualifier = "above optimal range 13-23%"
        return ScoreComponent(
            name="deep_sleep",
            score=points,
            max_score=SleepPoints.DEEP_MAX,
            contribution=points,
            current_value=deep_seconds,
            description=(
                f"Deep Sleep: {format_duration(deep_seconds)} ({qualifier}). Score: {points:g}/{SleepPoints.DEEP_MAX}."
            ),
        )

    @staticmethod
    def _rem_component(session: SleepSession, points: float) -> ScoreComponent:
        rem_seconds = session.rem_sleep_seconds
        rem_pct = rem_seconds / session.time_asleep_seconds * 100
        low, high = SleepReference.OPTIMAL_REM_PCT
        if rem_seconds / 60 >= SleepReference.EXCELLENT_REM_MINUTES:
            qualifier = "excellent"
        elif low <= rem_pct <= high:
            qualifier = "optimal range 20-25%"
        elif rem_pct < low:
            qualifier = "below optimal range 20-25%"
        else:
            qualifier = "above optimal range 20-25%"
        return ScoreComponent(
            name="rem_sleep",
            score=points,
            max_score=SleepPoints.REM_MAX,
            contribution=points,
            current_value=rem_seconds,
            description=(
                f"REM Sleep: {format_duration(rem_seconds)} ({qualifier}). Score: {points:.0f}/{SleepPoints.REM_MAX}."
            ),
        )

    @staticmethod
    def _efficiency_component(efficiency: float, points: float) -> ScoreComponent:
        if efficiency >= 95:
            qualifier = "excellent"
        elif efficiency >= 90:
            qualifier = "good"
        elif efficiency >= 85:
            qualifier = "fair"
        else:
            qualifier = "could improve"
        return ScoreComponent(
            name="efficiency",
            score=points,
            max_score=SleepPoints.EFFICIENCY_MAX,
            contribution=points,
            current_value=efficiency,
            description=f"Sleep Efficiency: {efficiency:.1f}% ({qualifier}). Score: {points:g}/{SleepPoints.EFFICIENCY_MAX}.",
        )

    @staticmethod
    def _consistency_component(
        session: SleepSession, baseline: Baseline, target: dt.time, deviation: float, points: float
    ) -> ScoreComponent:
        source = "14-day average" if baseline.bedtime14 is not None else "default target"
        timing = "later" if deviation > 0 else "earlier"
        return ScoreComponent(
            name="consistency",
            score=points,
            max_score=SleepPoints.CONSISTENCY_MAX,
            contribution=points,
            current_value=deviation,
            description=(
                f"Sleep Consistency: {points:.0f}/{SleepPoints.CONSISTENCY_MAX}. You went to bed at "
                f"{format_time(session.bedtime)}, your target bedtime is {format_time(target)} ({source}). "
                f"You were {abs(deviation):.0f} minutes {timing} than target. Full points at or before the "
                f"target, then one point is lost per {SleepPoints.CONSISTENCY_MINUTES_PER_POINT} minutes late."
            ),
        )


def key_findings(session: SleepSession, components: List[ScoreComponent]) -> List[str]:
    """Short findings about last night's sleep, one per aspect."""
    findings = []

    hours = session.hours_asleep
    low, high = SleepReference.OPTIMAL_DURATION_HOURS
    if low <= hours <= high:
        findings.append(f"Optimal sleep duration ({hours:.1f} hours)")
    elif hours < 7:
        findings.append(f"Sleep duration below recommended ({hours:.1f} hours)")
    else:
        findings.append(f"Sleep duration above recommended ({hours:.1f} hours)")

    if session.deep_sleep_seconds is not None:
        deep_pct = session.deep_sleep_seconds / session.time_asleep_seconds * 100
        low, high = SleepReference.OPTIMAL_DEEP_PCT
        if low <= deep_pct <= high:
            findings.append(f"Deep sleep within optimal range ({deep_pct:.1f}%)")
        elif deep_pct < low:
            findings.append(f"Deep sleep below optimal ({deep_pct:.1f}%)")
        else:
            findings.append(f"Deep sleep above optimal ({deep_pct:.1f}%)")

    if session.rem_sleep_seconds is not None:
        rem_minutes = session.rem_sleep_seconds / 60
        rem_pct = session.rem_sleep_seconds / session.time_asleep_seconds * 100
        low, high = SleepReference.OPTIMAL_REM_PCT
        if rem_minutes >= SleepReference.EXCELLENT_REM_MINUTES:
            findings.append(f"Excellent REM sleep duration ({rem_minutes:.0f} min)")
        elif low <= rem_pct <= high:
            findings.append(f"REM sleep within optimal range ({rem_pct:.1f}%)")
        elif rem_pct < low:
            findings.append(f"REM sleep below optimal ({rem_pct:.1f}%)")
        else:
            findings.append(f"REM sleep above optimal ({rem_pct:.1f}%)")

    efficiency = session.efficiency_pct
    if efficiency >= SleepReference.EXCELLENT_EFFICIENCY_PCT:
        findings.append(f"Excellent sleep efficiency ({efficiency:.0f}%)")
    elif efficiency >= SleepReference.GOOD_EFFICIENCY_PCT:
        findings.append(f"Good sleep efficiency ({efficiency:.0f}%)")
    else:
        findings.append(f"Sleep efficiency could improve ({efficiency:.0f}%)")

    consistency = next((c for c in components if c.name == "consistency"), None)
    if consistency is not None:
        ratio = consistency.score / consistency.max_score
        if ratio >= 0.8:
            findings.append("Consistent sleep schedule maintained")
        elif ratio >= 0.6:
            findings.append("Minor deviation from usual sleep schedule")
        else:
            findings.append("Significant deviation from usual sleep schedule")

    return findings
