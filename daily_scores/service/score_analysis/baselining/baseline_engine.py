"""
Baseline engine for daily scores.

This module maintains the personal rolling baselines the score calculators compare
each day against: 60-day HRV and resting heart rate means, and 14-day sleep duration,
bedtime and wake time. The engine is the only writer of the baseline; calculators
read a snapshot of it at call time.
"""

import asyncio
import datetime as dt
from typing import Callable, List, Optional, TypeVar, Union

from loguru import logger

from daily_scores.config import BaselineSettings
from daily_scores.service.baseline_store import BaselineStore
from daily_scores.service.health_data_service import HealthDataProvider
from daily_scores.service.score_analysis.common.data_models import Baseline, BiomarkerSample, SleepSession
from daily_scores.service.score_analysis.common.errors import StoreFailureError
from daily_scores.service.score_analysis.common.normalization import circular_mean

T = TypeVar("T")


class BaselineEngine:
    """
    Maintain personal baselines and their calibration state.

    The baseline is replaced wholesale on every refresh. ``generation`` increases
    every time the baseline values change so cached scores computed against an older
    baseline can be told apart from fresh ones. A refresh that only moves
    ``last_updated`` keeps the generation.
    """

    def __init__(
        self,
        provider: HealthDataProvider,
        store: BaselineStore,
        settings: Optional[BaselineSettings] = None,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ):
        """
        Initialize the baseline engine.

        Args:
            provider: Source of historical samples and sleep sessions
            store: Persistence for the baseline
            settings: Window lengths, calibration thresholds and refresh interval
            clock: Returns the current time; used for refresh decisions and timestamps
        """
        self.provider = provider
        self.store = store
        self.settings = settings or BaselineSettings()
        self.clock = clock

        self._baseline = Baseline()
        self._loaded = False
        self._refresh_task: Optional[asyncio.Task] = None
        self.generation = 0

    @property
    def baseline(self) -> Baseline:
        """Current baseline snapshot."""
        return self._baseline

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def hrv_ready(self) -> bool:
        return self._baseline.hrv_sample_count >= self.settings.min_hrv_samples

    @property
    def rhr_ready(self) -> bool:
        return self._baseline.rhr_sample_count >= self.settings.min_rhr_samples

    @property
    def sleep_ready(self) -> bool:
        return self._baseline.sleep_session_count >= self.settings.min_sleep_sessions

    async def load(self) -> Baseline:
        """
        Load the persisted baseline into memory.

        An empty store leaves the first-run baseline in place (every field empty,
        calibrating). A failing store is logged and the engine carries on with the
        in-memory baseline.

        Returns:
            The baseline now held in memory
        """
        try:
            stored = await self.store.load()
        except StoreFailureError as e:
            logger.error(f"Failed to load baseline, continuing with in-memory baseline: {e}")
            stored = None

        if stored is not None:
            self._set_baseline(stored)
            logger.info(
                f"Loaded baseline (calibrating={stored.calibrating}, last_updated={stored.last_updated})"
            )
        else:
            logger.info("Starting with an empty, calibrating baseline")

        self._loaded = True
        return self._baseline

    def should_refresh(self, now: Optional[dt.datetime] = None) -> bool:
        """Whether the baseline is still calibrating or older than the refresh interval."""
        baseline = self._baseline
        if baseline.calibrating or baseline.last_updated is None:
            return True
        now = now or self.clock()
        return now - baseline.last_updated > dt.timedelta(hours=self.settings.refresh_interval_hours)

    async def refresh(self) -> Baseline:
        """
        Recompute every baseline field from the trailing history windows.

        Only one refresh runs at a time: callers arriving while a refresh is in
        flight await that same refresh. Cancelling one waiting caller does not
        cancel the shared refresh.

        Returns:
            The refreshed baseline
        """
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh())
        else:
            logger.debug("Baseline refresh already in flight, awaiting it")
        return await asyncio.shield(self._refresh_task)

    async def reset(self) -> None:
        """Drop the in-memory and persisted baseline."""
        logger.info("Resetting baseline")
        self._set_baseline(Baseline())
        try:
            await self.store.clear()
        except StoreFailureError as e:
            logger.error(f"Failed to clear stored baseline: {e}")

    async def force_refresh(self) -> Baseline:
        """Reset the baseline and recompute it from scratch."""
        await self.reset()
        return await self.refresh()

    async def _refresh(self) -> Baseline:
        settings = self.settings
        logger.info(
            f"Refreshing baseline (HRV {settings.hrv_window_days}d, RHR {settings.rhr_window_days}d, "
            f"sleep {settings.sleep_window_days}d)"
        )
        hrv_result, rhr_result, sleep_result = await asyncio.gather(
            self.provider.historical_hrv(settings.hrv_window_days),
            self.provider.historical_rhr(settings.rhr_window_days),
            self.provider.historical_sleep(settings.sleep_window_days),
            return_exceptions=True,
        )

        previous = self._baseline
        hrv_samples = self._window_or_none("HRV", hrv_result)
        rhr_samples = self._window_or_none("RHR", rhr_result)
        sleep_sessions = self._window_or_none("sleep", sleep_result)

        fields = {}
        if hrv_samples is None:
            fields.update(hrv60=previous.hrv60, hrv_sample_count=0)
        else:
            fields.update(hrv60=_mean_value(hrv_samples), hrv_sample_count=len(hrv_samples))

        if rhr_samples is None:
            fields.update(rhr60=previous.rhr60, rhr_sample_count=0)
        else:
            fields.update(rhr60=_mean_value(rhr_samples), rhr_sample_count=len(rhr_samples))

        if sleep_sessions is None:
            fields.update(
                sleep_duration14=previous.sleep_duration14,
                bedtime14=previous.bedtime14,
                wake14=previous.wake14,
                sleep_session_count=0,
            )
        else:
            fields.update(_sleep_fields(sleep_sessions))

        calibrating = (
            fields["hrv_sample_count"] < settings.min_hrv_samples
            or fields["rhr_sample_count"] < settings.min_rhr_samples
            or fields["sleep_session_count"] < settings.min_sleep_sessions
        )
        baseline = Baseline(**fields, calibrating=calibrating, last_updated=self.clock())

        self._set_baseline(baseline)
        logger.info(
            f"Baseline refreshed: hrv60={baseline.hrv60} ({baseline.hrv_sample_count} samples), "
            f"rhr60={baseline.rhr60} ({baseline.rhr_sample_count} samples), "
            f"sleep14={baseline.sleep_duration14} ({baseline.sleep_session_count} sessions), "
            f"bedtime14={baseline.bedtime14}, wake14={baseline.wake14}, calibrating={baseline.calibrating}"
        )

        try:
            await self.store.save(baseline)
        except StoreFailureError as e:
            logger.error(f"Failed to persist baseline, keeping it in memory only: {e}")

        return baseline

    def _set_baseline(self, baseline: Baseline) -> None:
        exclude = {"last_updated"}
        changed = baseline.model_dump(exclude=exclude) != self._baseline.model_dump(exclude=exclude)
        self._baseline = baseline
        if changed:
            self.generation += 1

    @staticmethod
    def _window_or_none(name: str, result: Union[List[T], BaseException]) -> Optional[List[T]]:
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning(f"Failed to fetch {name} history, keeping previous baseline value: {result}")
            return None
        return result


def _mean_value(samples: List[BiomarkerSample]) -> Optional[float]:
    if not samples:
        return None
    return sum(sample.value for sample in samples) / len(samples)


def _sleep_fields(sessions: List[SleepSession]) -> dict:
    sessions = [s for s in sessions if s.time_asleep_seconds > 0]
    if not sessions:
        return {"sleep_duration14": None, "bedtime14": None, "wake14": None, "sleep_session_count": 0}
    return {
        "sleep_duration14": sum(s.time_asleep_seconds for s in sessions) / len(sessions),
        "bedtime14": circular_mean(s.bedtime for s in sessions),
        "wake14": circular_mean(s.wake_time for s in sessions),
        "sleep_session_count": len(sessions),
    }
