from functools import cached_property
from pathlib import Path
from typing import Optional

from loguru import logger

from daily_scores.config import ScoringSettings
from daily_scores.service.baseline_store import (
    BaselineStore,
    JsonBaselineStore,
    MemoryBaselineStore,
    SqliteBaselineStore,
)
from daily_scores.service.health_data_service import DuckDBHealthDataProvider
from daily_scores.service.score_analysis.baselining.baseline_engine import BaselineEngine
from daily_scores.service.score_analysis.common.errors import StoreFailureError
from daily_scores.service.score_analysis.core_metrics.recovery_score import RecoveryScoreCalculator
from daily_scores.service.score_analysis.core_metrics.sleep_score import SleepScoreCalculator
from daily_scores.service.score_analysis.core_metrics.sleep_scorers import PointTableSleepScorer
from daily_scores.service.scoring_service import DailyScoringService
from daily_scores.utils import get_user_directory


class ServiceFactory:
    def __init__(self, settings: ScoringSettings):
        self.settings = settings

    @cached_property
    def data_dir(self) -> Path:
        return get_user_directory(self.settings.out_dir, self.settings.user_id)

    @cached_property
    def health_data_provider(self) -> DuckDBHealthDataProvider:
        return DuckDBHealthDataProvider.from_path(self.data_dir / "health_data.duckdb")

    @cached_property
    def score_store(self) -> Optional[SqliteBaselineStore]:
        try:
            return SqliteBaselineStore(self.data_dir)
        except StoreFailureError as e:
            logger.error(f"Score store unavailable, scores will not be recorded: {e}")
            return None

    @cached_property
    def baseline_store(self) -> BaselineStore:
        if self.settings.baseline_store == "json":
            return JsonBaselineStore(self.data_dir / "baseline.json")
        if self.score_store is None:
            return MemoryBaselineStore()
        return self.score_store

    @cached_property
    def baseline_engine(self) -> BaselineEngine:
        return BaselineEngine(
            self.health_data_provider,
            self.baseline_store,
            settings=self.settings.baseline,
        )

    @cached_property
    def sleep_score_calculator(self) -> SleepScoreCalculator:
        return SleepScoreCalculator(
            self.health_data_provider,
            self.baseline_engine,
            scorer=PointTableSleepScorer(self.settings.sleep.default_target_bedtime),
            use_fallback=self.settings.sleep.use_legacy_fallback,
        )

    @cached_property
    def recovery_score_calculator(self) -> RecoveryScoreCalculator:
        return RecoveryScoreCalculator(
            self.health_data_provider,
            self.baseline_engine,
            sleep_calculator=self.sleep_score_calculator,
        )

    @cached_property
    def scoring_service(self) -> DailyScoringService:
        return DailyScoringService(
            self.baseline_engine,
            self.sleep_score_calculator,
            self.recovery_score_calculator,
            history_store=self.score_store,
        )
