"""Builders and in-memory collaborators shared by the tests."""

import asyncio
import datetime as dt
from typing import Dict, List, Optional

from daily_scores.service.baseline_store import BaselineStore
from daily_scores.service.health_data_service import HealthDataProvider
from daily_scores.service.score_analysis.common.data_models import (
    Baseline,
    BiomarkerKind,
    BiomarkerSample,
    SleepSession,
)
from daily_scores.service.score_analysis.common.errors import StoreFailureError

TEST_DATE = dt.date(2025, 5, 1)


def make_sleep_session(
    date: dt.date = TEST_DATE,
    hours_asleep: float = 8.0,
    deep_minutes: Optional[float] = 110,
    rem_minutes: Optional[float] = 125,
    bedtime: dt.time = dt.time(23, 0),
    minutes_awake_in_bed: float = 20,
    sleep_efficiency: Optional[float] = None,
) -> SleepSession:
    """A night that ends on ``date``; the bedtime falls on the previous evening when it is after noon."""
    asleep = hours_asleep * 3600
    in_bed = asleep + minutes_awake_in_bed * 60
    bed_day = date - dt.timedelta(days=1) if bedtime.hour >= 12 else date
    bedtime_dt = dt.datetime.combine(bed_day, bedtime)
    return SleepSession(
        date=date,
        time_in_bed_seconds=in_bed,
        time_asleep_seconds=asleep,
        deep_sleep_seconds=deep_minutes * 60 if deep_minutes is not None else None,
        rem_sleep_seconds=rem_minutes * 60 if rem_minutes is not None else None,
        bedtime=bedtime_dt,
        wake_time=bedtime_dt + dt.timedelta(seconds=in_bed),
        sleep_efficiency=sleep_efficiency,
    )


def make_samples(kind: BiomarkerKind, values: List[float], end: dt.date = TEST_DATE) -> List[BiomarkerSample]:
    """One morning sample per day for the days before ``end``, oldest first."""
    days = len(values)
    return [
        BiomarkerSample(
            kind=kind,
            value=value,
            timestamp=dt.datetime.combine(end - dt.timedelta(days=days - i), dt.time(7, 0)),
        )
        for i, value in enumerate(values)
    ]


def ready_baseline(**overrides) -> Baseline:
    fields = dict(
        hrv60=50.0,
        rhr60=55.0,
        sleep_duration14=8 * 3600,
        bedtime14=dt.time(23, 0),
        wake14=dt.time(7, 0),
        calibrating=False,
        last_updated=dt.datetime(2025, 4, 30, 8, 0),
        hrv_sample_count=60,
        rhr_sample_count=60,
        sleep_session_count=14,
    )
    fields.update(overrides)
    return Baseline(**fields)


class InMemoryHealthDataProvider(HealthDataProvider):
    def __init__(self):
        self.hrv: Dict[dt.date, float] = {}
        self.rhr: Dict[dt.date, float] = {}
        self.sessions: Dict[dt.date, SleepSession] = {}
        self.hrv_history: List[BiomarkerSample] = []
        self.rhr_history: List[BiomarkerSample] = []
        self.sleep_history: List[SleepSession] = []
        self.history_delay = 0.0
        self.history_calls = 0

    async def latest_hrv(self, date: dt.date) -> Optional[float]:
        return self.hrv.get(date)

    async def latest_rhr(self, date: dt.date) -> Optional[float]:
        return self.rhr.get(date)

    async def sleep_session(self, date: dt.date) -> Optional[SleepSession]:
        return self.sessions.get(date)

    async def historical_hrv(self, days: int) -> List[BiomarkerSample]:
        self.history_calls += 1
        await asyncio.sleep(self.history_delay)
        return list(self.hrv_history)

    async def historical_rhr(self, days: int) -> List[BiomarkerSample]:
        await asyncio.sleep(self.history_delay)
        return list(self.rhr_history)

    async def historical_sleep(self, days: int) -> List[SleepSession]:
        await asyncio.sleep(self.history_delay)
        return list(self.sleep_history)


class InMemoryBaselineStore(BaselineStore):
    def __init__(self, baseline: Optional[Baseline] = None, fail: bool = False):
        self.baseline = baseline
        self.fail = fail
        self.saves = 0

    async def load(self) -> Optional[Baseline]:
        if self.fail:
            raise StoreFailureError("store offline")
        return self.baseline

    async def save(self, baseline: Baseline) -> None:
        if self.fail:
            raise StoreFailureError("store offline")
        self.saves += 1
        self.baseline = baseline

    async def clear(self) -> None:
        if self.fail:
            raise StoreFailureError("store offline")
        self.baseline = None
