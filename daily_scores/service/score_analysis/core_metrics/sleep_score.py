"""
Sleep score calculation.

This module computes the daily sleep score for one night from the stored sleep
session and the current baseline snapshot, memoizing results per date.
"""

import datetime as dt
from typing import Dict, Optional, Tuple

from loguru import logger

from daily_scores.service.health_data_service import HealthDataProvider
from daily_scores.service.score_analysis.baselining.baseline_engine import BaselineEngine
from daily_scores.service.score_analysis.common.data_models import SleepScoreResult, SleepSession
from daily_scores.service.score_analysis.common.errors import DataUnavailableError
from daily_scores.service.score_analysis.core_metrics.legacy_sleep_score import ContinuousCurveSleepScorer
from daily_scores.service.score_analysis.core_metrics.sleep_scorers import PointTableSleepScorer, SleepScorer


class SleepScoreCalculator:
    """
    Calculate daily sleep scores.

    Results are cached per date together with the baseline generation they were
    computed against, so a baseline refresh invalidates them.
    """

    def __init__(
        self,
        provider: HealthDataProvider,
        baseline_engine: BaselineEngine,
        scorer: Optional[SleepScorer] = None,
        fallback_scorer: Optional[SleepScorer] = None,
        use_fallback: bool = True,
    ):
        """
        Initialize the sleep score calculator.

        Args:
            provider: Source of sleep sessions
            baseline_engine: Owner of the baseline snapshot
            scorer: Canonical scoring model, the point-table model by default
            fallback_scorer: Model used when the canonical one cannot score a session
            use_fallback: Whether to fall back at all; if not, such sessions are reported unavailable
        """
        self.provider = provider
        self.baseline_engine = baseline_engine
        self.scorer = scorer or PointTableSleepScorer()
        if use_fallback:
            self.fallback_scorer = fallback_scorer or ContinuousCurveSleepScorer(self.scorer.default_target_bedtime)
        else:
            self.fallback_scorer = None
        self._cache: Dict[dt.date, Tuple[int, SleepScoreResult]] = {}

    async def calculate_sleep_score(self, date: dt.date) -> SleepScoreResult:
        """
        Calculate the sleep score for the night that ended on ``date``.

        Args:
            date: Wake date of the night to score

        Returns:
            Sleep score with its component breakdown

        Raises:
            DataUnavailableError: If no usable sleep session is recorded for the date
        """
        cached = self._cached(date)
        if cached is not None:
            return cached

        session = await self.provider.sleep_session(date)
        if session is None:
            logger.warning(f"No sleep session for {date}")
            raise DataUnavailableError(date, "no sleep session recorded")
        if session.time_in_bed_seconds <= 0 or session.time_asleep_seconds <= 0:
            logger.warning(f"Sleep session for {date} has no time in bed or asleep")
            raise DataUnavailableError(date, "sleep session has no recorded sleep")

        generation = self.baseline_engine.generation
        baseline = self.baseline_engine.baseline
        result = self._scorer_for(session).score(session, baseline)

        logger.info(f"Sleep score for {date}: {result.final_score} ({result.model.value})")
        for component in result.components:
            logger.debug(f"  {component.name}: {component.score:.1f}/{component.max_score:g}")

        self._cache[date] = (generation, result)
        return result

    def clear_cache(self) -> None:
        self._cache.clear()

    def _cached(self, date: dt.date) -> Optional[SleepScoreResult]:
        entry = self._cache.get(date)
        if entry is None:
            return None
        generation, result = entry
        if generation != self.baseline_engine.generation:
            del self._cache[date]
            return None
        logger.debug(f"Using cached sleep score for {date}")
        return result

    def _scorer_for(self, session: SleepSession) -> SleepScorer:
        if self.scorer.can_score(session):
            return self.scorer
        if self.fallback_scorer is not None and self.fallback_scorer.can_score(session):
            logger.warning(f"Sleep session for {session.date} has no stage data, using {self.fallback_scorer.model.value}")
            return self.fallback_scorer
        raise DataUnavailableError(session.date, "sleep session has no sleep stage data")
