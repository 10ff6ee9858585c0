"""
Continuous-curve sleep model.

Older scoring model kept as a fallback for sessions without sleep stage data.
Every component is a smooth 0-100 curve instead of a step table, and the final
score is their weighted mean. Components the session cannot provide are left
out and the remaining weights are rescaled.
"""

import math
from typing import List

from loguru import logger

from daily_scores.service.score_analysis.common.constants import LegacySleepCurve, SleepReference
from daily_scores.service.score_analysis.common.data_models import (
    Baseline,
    ScoreComponent,
    SleepScoreModel,
    SleepScoreResult,
    SleepSession,
)
from daily_scores.service.score_analysis.common.normalization import clamp, minutes_between, smooth_penalty_curve
from daily_scores.service.score_analysis.core_metrics.sleep_scorers import SleepScorer, key_findings


def duration_curve(hours_asleep: float) -> float:
    """Gaussian around the target duration."""
    z = (hours_asleep - LegacySleepCurve.DURATION_TARGET_HOURS) / LegacySleepCurve.DURATION_SIGMA_HOURS
    return 100 * math.exp(-0.5 * z**2)


def consistency_curve(deviation_minutes: float) -> float:
    return 100 * math.exp(-LegacySleepCurve.CONSISTENCY_DECAY_PER_MINUTE * deviation_minutes)


class ContinuousCurveSleepScorer(SleepScorer):
    model = SleepScoreModel.CONTINUOUS_CURVE

    def can_score(self, session: SleepSession) -> bool:
        return session.time_asleep_seconds > 0 and session.time_in_bed_seconds > 0

    def score(self, session: SleepSession, baseline: Baseline) -> SleepScoreResult:
        target = self.target_bedtime(baseline)
        deviation = minutes_between(session.bedtime, target)
        efficiency = session.efficiency_pct

        components: List[ScoreComponent] = [
            self._component("duration", duration_curve(session.hours_asleep), LegacySleepCurve.DURATION_WEIGHT,
                            session.time_asleep_seconds),
            self._component("efficiency", clamp(efficiency, 0, 100), LegacySleepCurve.EFFICIENCY_WEIGHT, efficiency),
            self._component("consistency", consistency_curve(deviation), LegacySleepCurve.CONSISTENCY_WEIGHT,
                            deviation),
        ]
        if session.deep_sleep_seconds is not None:
            deep_pct = session.deep_sleep_seconds / session.time_asleep_seconds * 100
            components.append(
                self._component("deep_sleep", smooth_penalty_curve(deep_pct, *SleepReference.OPTIMAL_DEEP_PCT),
                                LegacySleepCurve.DEEP_WEIGHT, session.deep_sleep_seconds)
            )
        if session.rem_sleep_seconds is not None:
            rem_pct = session.rem_sleep_seconds / session.time_asleep_seconds * 100
            components.append(
                self._component("rem_sleep", smooth_penalty_curve(rem_pct, *SleepReference.OPTIMAL_REM_PCT),
                                LegacySleepCurve.REM_WEIGHT, session.rem_sleep_seconds)
            )

        total_weight = sum(c.weight for c in components)
        components = [c.model_copy(update={"contribution": c.score * c.weight / total_weight}) for c in components]
        final_score = int(round(clamp(sum(c.contribution for c in components), 0, 100)))
        logger.debug(f"Continuous-curve sleep score for {session.date}: {final_score} from {len(components)} components")

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
            low_confidence=True,
        )

    @staticmethod
    def _component(name: str, score: float, weight: float, current_value: float) -> ScoreComponent:
        return ScoreComponent(
            name=name,
            score=score,
            max_score=100,
            weight=weight,
            contribution=score * weight,
            current_value=current_value,
            description=f"{name.replace('_', ' ').capitalize()}: {score:.0f}/100 (weight {weight:.0%}).",
        )
