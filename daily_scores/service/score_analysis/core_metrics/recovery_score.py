"""
Recovery score calculation.

The recovery score blends three components against the personal baseline:
HRV (60%), resting heart rate (25%, lower is better) and the night's sleep
score (15%).
"""

import asyncio
import datetime as dt
import math
from typing import Dict, Optional, Tuple

from loguru import logger

from daily_scores.service.health_data_service import HealthDataProvider
from daily_scores.service.score_analysis.baselining.baseline_engine import BaselineEngine
from daily_scores.service.score_analysis.common.constants import RecoveryWeights
from daily_scores.service.score_analysis.common.data_models import (
    Baseline,
    RecoveryScoreResult,
    ScoreComponent,
    SleepScoreResult,
)
from daily_scores.service.score_analysis.common.errors import DataUnavailableError, InsufficientHistoryError
from daily_scores.service.score_analysis.common.normalization import clamp
from daily_scores.service.score_analysis.core_metrics.sleep_score import SleepScoreCalculator
from daily_scores.service.score_analysis.insights.directive import generate_directive


def hrv_score(hrv_today: float, hrv_baseline: float) -> float:
    """100 at baseline, +/-30 per doubling/halving, clamped to [0, 120]."""
    raw = 100 * (1 + math.log10(hrv_today / hrv_baseline))
    return clamp(raw, RecoveryWeights.HRV_MIN, RecoveryWeights.HRV_MAX)


def rhr_score(rhr_today: float, rhr_baseline: float) -> float:
    """100 at baseline, higher when today's resting heart rate is lower, clamped to [50, 120]."""
    raw = 100 * rhr_baseline / rhr_today
    return clamp(raw, RecoveryWeights.RHR_MIN, RecoveryWeights.RHR_MAX)


class RecoveryScoreCalculator:
    """Calculate daily recovery scores, memoized per date and baseline generation."""

    def __init__(
        self,
        provider: HealthDataProvider,
        baseline_engine: BaselineEngine,
        sleep_calculator: Optional[SleepScoreCalculator] = None,
    ):
        self.provider = provider
        self.baseline_engine = baseline_engine
        self.sleep_calculator = sleep_calculator or SleepScoreCalculator(provider, baseline_engine)
        self._cache: Dict[dt.date, Tuple[int, RecoveryScoreResult]] = {}

    async def calculate_recovery_score(self, date: dt.date) -> RecoveryScoreResult:
        """
        Calculate the recovery score for ``date``.

        Args:
            date: Day to score; the sleep component uses the night that ended on it

        Returns:
            Recovery score with HRV, RHR and sleep components and the day's directive

        Raises:
            DataUnavailableError: If HRV or the sleep session is missing for the date
            InsufficientHistoryError: If no HRV baseline exists yet
        """
        entry = self._cache.get(date)
        if entry is not None and entry[0] == self.baseline_engine.generation:
            logger.debug(f"Using cached recovery score for {date}")
            return entry[1]

        hrv_today, rhr_today = await asyncio.gather(self.provider.latest_hrv(date), self.provider.latest_rhr(date))
        if hrv_today is None and rhr_today is None:
            logger.warning(f"No HRV or RHR for {date}")
            raise DataUnavailableError(date, "no HRV or resting heart rate recorded")
        if hrv_today is None or hrv_today <= 0:
            logger.warning(f"No usable HRV for {date}")
            raise DataUnavailableError(date, "no HRV recorded")

        sleep = await self.sleep_calculator.calculate_sleep_score(date)

        generation = self.baseline_engine.generation
        baseline = self.baseline_engine.baseline
        if baseline.hrv60 is None or baseline.hrv60 <= 0:
            logger.warning(f"No HRV baseline yet, cannot score recovery for {date}")
            raise InsufficientHistoryError(date, "HRV baseline not established yet")

        hrv_component = self._hrv_component(hrv_today, baseline.hrv60)
        rhr_component = self._rhr_component(rhr_today, baseline)
        sleep_component = self._sleep_component(sleep)

        total = hrv_component.contribution + rhr_component.contribution + sleep_component.contribution
        final_score = int(round(clamp(total, 0, 100)))
        low_confidence = baseline.calibrating or not rhr_component.available or sleep.low_confidence

        result = RecoveryScoreResult(
            date=date,
            final_score=final_score,
            hrv_component=hrv_component,
            rhr_component=rhr_component,
            sleep_component=sleep_component,
            directive=generate_directive(final_score, sleep.final_score),
            low_confidence=low_confidence,
        )
        logger.info(
            f"Recovery score for {date}: {final_score} (HRV {hrv_component.contribution:.1f}, "
            f"RHR {rhr_component.contribution:.1f}, sleep {sleep_component.contribution:.1f}, "
            f"low_confidence={low_confidence})"
        )

        self._cache[date] = (generation, result)
        return result

    def clear_cache(self) -> None:
        self._cache.clear()
        self.sleep_calculator.clear_cache()

    @staticmethod
    def _hrv_component(hrv_today: float, hrv_baseline: float) -> ScoreComponent:
        score = hrv_score(hrv_today, hrv_baseline)
        ratio = hrv_today / hrv_baseline
        if ratio >= 1.2:
            label = "Excellent HRV, well above your baseline"
        elif ratio >= 1.0:
            label = "Good HRV, at or above your baseline"
        elif ratio >= 0.8:
            label = "Reduced HRV, slightly below your baseline"
        else:
            label = "Low HRV, well below your baseline"
        return ScoreComponent(
            name="hrv",
            score=score,
            max_score=RecoveryWeights.HRV_MAX,
            weight=RecoveryWeights.HRV,
            contribution=score * RecoveryWeights.HRV,
            current_value=hrv_today,
            baseline_value=hrv_baseline,
            description=f"{label}: {hrv_today:.0f} ms vs {hrv_baseline:.0f} ms baseline.",
        )

    @staticmethod
    def _rhr_component(rhr_today: Optional[float], baseline: Baseline) -> ScoreComponent:
        if rhr_today is None or rhr_today <= 0 or baseline.rhr60 is None:
            logger.warning("Resting heart rate or its baseline missing, using neutral RHR score")
            return ScoreComponent(
                name="rhr",
                score=RecoveryWeights.RHR_NEUTRAL,
                max_score=RecoveryWeights.RHR_MAX,
                weight=RecoveryWeights.RHR,
                contribution=RecoveryWeights.RHR_NEUTRAL * RecoveryWeights.RHR,
                current_value=rhr_today,
                baseline_value=baseline.rhr60,
                description="Resting heart rate unavailable, neutral score used.",
                available=False,
            )

        score = rhr_score(rhr_today, baseline.rhr60)
        ratio = baseline.rhr60 / rhr_today
        if ratio >= 1.1:
            label = "Excellent RHR, well below your baseline"
        elif ratio >= 1.0:
            label = "Good RHR, at or below your baseline"
        elif ratio >= 0.9:
            label = "Elevated RHR, slightly above your baseline"
        else:
            label = "High RHR, well above your baseline"
        return ScoreComponent(
            name="rhr",
            score=score,
            max_score=RecoveryWeights.RHR_MAX,
            weight=RecoveryWeights.RHR,
            contribution=score * RecoveryWeights.RHR,
            current_value=rhr_today,
            baseline_value=baseline.rhr60,
            description=f"{label}: {rhr_today:.0f} bpm vs {baseline.rhr60:.0f} bpm baseline.",
        )

    @staticmethod
    def _sleep_component(sleep: SleepScoreResult) -> ScoreComponent:
        score = sleep.final_score
        if score >= 85:
            label = "Excellent sleep quality"
        elif score >= 70:
            label = "Good sleep quality"
        elif score >= 50:
            label = "Fair sleep quality"
        else:
            label = "Poor sleep quality"
        return ScoreComponent(
            name="sleep",
            score=score,
            max_score=100,
            weight=RecoveryWeights.SLEEP,
            contribution=score * RecoveryWeights.SLEEP,
            current_value=score,
            description=f"{label}: sleep score {score}/100.",
        )
