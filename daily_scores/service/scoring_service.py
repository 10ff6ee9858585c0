import datetime as dt
from typing import Callable, List, Optional

from loguru import logger

from daily_scores.service.baseline_store import ScoreHistoryEntry, ScoreType, SqliteBaselineStore, history_entry_for
from daily_scores.service.score_analysis.baselining.baseline_engine import BaselineEngine
from daily_scores.service.score_analysis.common.data_models import Baseline, DailyScores, SleepScoreResult
from daily_scores.service.score_analysis.common.errors import StoreFailureError
from daily_scores.service.score_analysis.core_metrics.recovery_score import RecoveryScoreCalculator
from daily_scores.service.score_analysis.core_metrics.sleep_score import SleepScoreCalculator


class DailyScoringService:
    """Service producing the daily recovery and sleep scores.

    Keeps the baseline loaded and fresh, runs both calculators for a date and records
    every computed score, together with the baseline it was computed against, in the
    score history.
    """

    def __init__(
        self,
        baseline_engine: BaselineEngine,
        sleep_calculator: SleepScoreCalculator,
        recovery_calculator: RecoveryScoreCalculator,
        history_store: Optional[SqliteBaselineStore] = None,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ):
        self.baseline_engine = baseline_engine
        self.sleep_calculator = sleep_calculator
        self.recovery_calculator = recovery_calculator
        self.history_store = history_store
        self.clock = clock

    async def ensure_baseline(self, now: Optional[dt.datetime] = None) -> Baseline:
        """Load the baseline on first use and refresh it when it is due."""
        if not self.baseline_engine.loaded:
            await self.baseline_engine.load()
        if self.baseline_engine.should_refresh(now or self.clock()):
            await self.baseline_engine.refresh()
        return self.baseline_engine.baseline

    async def score_day(self, date: dt.date) -> DailyScores:
        """
        Compute both scores and the directive for ``date``.

        Args:
            date: Day to score

        Returns:
            Recovery and sleep scores with the day's directive

        Raises:
            DataUnavailableError: If the HRV reading or sleep session for the date is missing
        """
        await self.ensure_baseline()
        recovery = await self.recovery_calculator.calculate_recovery_score(date)
        sleep = await self.sleep_calculator.calculate_sleep_score(date)

        self._record(date, ScoreType.RECOVERY, recovery.final_score)
        self._record(date, ScoreType.SLEEP, sleep.final_score)

        return DailyScores(
            date=date,
            recovery=recovery,
            sleep=sleep,
            directive=recovery.directive,
            low_confidence=recovery.low_confidence or sleep.low_confidence,
        )

    async def score_sleep(self, date: dt.date) -> SleepScoreResult:
        """Compute only the sleep score, for days without an HRV reading."""
        await self.ensure_baseline()
        sleep = await self.sleep_calculator.calculate_sleep_score(date)
        self._record(date, ScoreType.SLEEP, sleep.final_score)
        return sleep

    def history(self, score_type: Optional[ScoreType] = None, limit: Optional[int] = None) -> List[ScoreHistoryEntry]:
        if self.history_store is None:
            return []
        return list(self.history_store.list_score_history(score_type=score_type, limit=limit))

    def _record(self, date: dt.date, score_type: ScoreType, score: int) -> None:
        if self.history_store is None:
            return
        entry = history_entry_for(date, score_type, score, self.baseline_engine.baseline)
        try:
            self.history_store.add_score_history_entry(entry)
        except StoreFailureError as e:
            logger.error(f"Failed to record {score_type.value} score for {date}: {e}")
