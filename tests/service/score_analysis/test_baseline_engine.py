"""
Unit tests for the baseline engine.

These tests verify loading and persisting the baseline, the rolling-window means,
calibration state, and that concurrent refreshes share a single computation.
"""

import asyncio
import datetime as dt
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from daily_scores.config import BaselineSettings
from daily_scores.service.score_analysis.baselining.baseline_engine import BaselineEngine
from daily_scores.service.score_analysis.common.data_models import Baseline, BiomarkerKind
from tests.factories import (
    TEST_DATE,
    InMemoryBaselineStore,
    InMemoryHealthDataProvider,
    make_samples,
    make_sleep_session,
    ready_baseline,
)

NOW = dt.datetime.combine(TEST_DATE, dt.time(8, 0))


@pytest.fixture
def provider():
    provider = InMemoryHealthDataProvider()
    provider.hrv_history = make_samples(BiomarkerKind.HRV, [40.0, 50.0, 60.0] * 4)
    provider.rhr_history = make_samples(BiomarkerKind.RHR, [54.0, 56.0] * 5)
    provider.sleep_history = [
        make_sleep_session(
            date=TEST_DATE - dt.timedelta(days=day),
            bedtime=dt.time(23, 30) if day % 2 else dt.time(0, 30),
        )
        for day in range(1, 9)
    ]
    return provider


@pytest.fixture
def store():
    return InMemoryBaselineStore()


@pytest.fixture
def engine(provider, store):
    return BaselineEngine(provider, store, settings=BaselineSettings(), clock=lambda: NOW)


class TestLoad:
    @pytest.mark.asyncio
    async def test_first_run_is_calibrating(self, engine):
        baseline = await engine.load()

        assert engine.loaded
        assert baseline == Baseline()
        assert baseline.calibrating
        assert engine.should_refresh(NOW)

    @pytest.mark.asyncio
    async def test_loads_persisted_baseline(self, engine, store):
        store.baseline = ready_baseline()
        baseline = await engine.load()

        assert baseline == ready_baseline()
        assert engine.generation == 1
        assert engine.hrv_ready and engine.rhr_ready and engine.sleep_ready

    @pytest.mark.asyncio
    async def test_failing_store_is_tolerated(self, provider):
        engine = BaselineEngine(provider, InMemoryBaselineStore(fail=True), clock=lambda: NOW)
        baseline = await engine.load()

        assert engine.loaded
        assert baseline.calibrating


class TestShouldRefresh:
    @pytest_asyncio.fixture
    async def loaded_engine(self, engine, store):
        store.baseline = ready_baseline(last_updated=dt.datetime(2025, 4, 30, 8, 0))
        await engine.load()
        return engine

    @pytest.mark.asyncio
    async def test_fresh_baseline(self, loaded_engine):
        assert not loaded_engine.should_refresh(dt.datetime(2025, 4, 30, 20, 0))

    @pytest.mark.asyncio
    async def test_stale_baseline(self, loaded_engine):
        assert loaded_engine.should_refresh(dt.datetime(2025, 5, 1, 9, 0))

    @pytest.mark.asyncio
    async def test_uses_clock_by_default(self, loaded_engine):
        assert not loaded_engine.should_refresh()

    @pytest.mark.asyncio
    async def test_calibrating_baseline_always_refreshes(self, engine, store):
        store.baseline = ready_baseline(calibrating=True, last_updated=NOW)
        await engine.load()
        assert engine.should_refresh(NOW)


class TestRefresh:
    @pytest.mark.asyncio
    async def test_window_means(self, engine, store):
        baseline = await engine.refresh()

        assert baseline.hrv60 == pytest.approx(50.0)
        assert baseline.rhr60 == pytest.approx(55.0)
        assert baseline.sleep_duration14 == pytest.approx(8 * 3600)
        assert baseline.hrv_sample_count == 12
        assert baseline.rhr_sample_count == 10
        assert baseline.sleep_session_count == 8
        assert not baseline.calibrating
        assert baseline.last_updated == NOW
        assert store.baseline == baseline
        assert engine.baseline is baseline

    @pytest.mark.asyncio
    async def test_bedtime_averaged_across_midnight(self, engine):
        baseline = await engine.refresh()

        assert baseline.bedtime14 == dt.time(0, 0)
        assert baseline.wake14 == dt.time(8, 20)

    @pytest.mark.asyncio
    async def test_partially_calibrated(self, engine, provider):
        provider.rhr_history = make_samples(BiomarkerKind.RHR, [52.0, 58.0, 55.0])
        baseline = await engine.refresh()

        assert baseline.calibrating
        assert baseline.rhr60 == pytest.approx(55.0)
        assert engine.hrv_ready
        assert not engine.rhr_ready

    @pytest.mark.asyncio
    async def test_empty_window_clears_field(self, engine, provider, store):
        store.baseline = ready_baseline()
        await engine.load()
        provider.hrv_history = []

        baseline = await engine.refresh()

        assert baseline.hrv60 is None
        assert baseline.hrv_sample_count == 0
        assert baseline.calibrating

    @pytest.mark.asyncio
    async def test_failed_window_keeps_previous_value(self, engine, provider, store):
        store.baseline = ready_baseline(rhr60=61.0)
        await engine.load()
        provider.historical_rhr = AsyncMock(side_effect=RuntimeError("connection lost"))

        baseline = await engine.refresh()

        assert baseline.rhr60 == 61.0
        assert baseline.rhr_sample_count == 0
        assert baseline.calibrating
        assert baseline.hrv60 == pytest.approx(50.0)

    @pytest.mark.asyncio
    async def test_sessions_without_sleep_are_ignored(self, engine, provider):
        provider.sleep_history.append(make_sleep_session(date=TEST_DATE - dt.timedelta(days=10), hours_asleep=0))
        baseline = await engine.refresh()

        assert baseline.sleep_session_count == 8
        assert baseline.sleep_duration14 == pytest.approx(8 * 3600)

    @pytest.mark.asyncio
    async def test_generation_increases(self, engine):
        before = engine.generation
        await engine.refresh()
        assert engine.generation == before + 1

    @pytest.mark.asyncio
    async def test_unchanged_refresh_keeps_generation(self, engine):
        first = await engine.refresh()
        generation = engine.generation

        engine.clock = lambda: NOW + dt.timedelta(days=1)
        second = await engine.refresh()

        assert second.last_updated > first.last_updated
        assert engine.generation == generation

    @pytest.mark.asyncio
    async def test_changed_refresh_bumps_generation(self, engine, provider):
        await engine.refresh()
        generation = engine.generation

        provider.hrv_history = make_samples(BiomarkerKind.HRV, [70.0] * 12)
        await engine.refresh()

        assert engine.generation == generation + 1

    @pytest.mark.asyncio
    async def test_save_failure_keeps_baseline_in_memory(self, provider):
        engine = BaselineEngine(provider, InMemoryBaselineStore(fail=True), clock=lambda: NOW)
        baseline = await engine.refresh()

        assert engine.baseline is baseline
        assert not baseline.calibrating


class TestConcurrentRefresh:
    @pytest.mark.asyncio
    async def test_single_refresh_in_flight(self, engine, provider, store):
        provider.history_delay = 0.01

        first, second = await asyncio.gather(engine.refresh(), engine.refresh())

        assert first is second
        assert provider.history_calls == 1
        assert store.saves == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_refresh(self, engine, provider):
        provider.history_delay = 0.05

        waiting = asyncio.create_task(engine.refresh())
        await asyncio.sleep(0)
        waiting.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiting

        baseline = await engine.refresh()
        assert baseline.hrv60 == pytest.approx(50.0)
        assert provider.history_calls == 1

    @pytest.mark.asyncio
    async def test_refresh_after_completion_runs_again(self, engine, provider):
        await engine.refresh()
        await engine.refresh()
        assert provider.history_calls == 2


class TestReset:
    @pytest.mark.asyncio
    async def test_reset(self, engine, store):
        store.baseline = ready_baseline()
        await engine.load()
        generation = engine.generation

        await engine.reset()

        assert engine.baseline == Baseline()
        assert store.baseline is None
        assert engine.generation == generation + 1

    @pytest.mark.asyncio
    async def test_force_refresh(self, engine, store, provider):
        store.baseline = ready_baseline(hrv60=80.0)
        await engine.load()

        baseline = await engine.force_refresh()

        assert baseline.hrv60 == pytest.approx(50.0)
        assert store.baseline == baseline
