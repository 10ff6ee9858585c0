import datetime as dt

import pytest

from daily_scores.service.baseline_store import (
    JsonBaselineStore,
    MemoryBaselineStore,
    ScoreHistoryEntry,
    ScoreType,
    SqliteBaselineStore,
    history_entry_for,
)
from daily_scores.service.score_analysis.common.errors import StoreFailureError
from tests.factories import TEST_DATE, ready_baseline


class TestSqliteBaselineStore:
    @pytest.fixture
    def store(self, tmp_path):
        return SqliteBaselineStore(tmp_path)

    @pytest.mark.asyncio
    async def test_empty_store(self, store):
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_save_and_load(self, store):
        baseline = ready_baseline()
        await store.save(baseline)
        assert await store.load() == baseline

    @pytest.mark.asyncio
    async def test_save_replaces_previous_baseline(self, store):
        await store.save(ready_baseline(hrv60=40.0))
        await store.save(ready_baseline(hrv60=45.0))
        assert (await store.load()).hrv60 == 45.0

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.save(ready_baseline())
        await store.clear()
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_reopened_store_keeps_baseline(self, store, tmp_path):
        await store.save(ready_baseline())
        assert await SqliteBaselineStore(tmp_path).load() == ready_baseline()

    @pytest.mark.asyncio
    async def test_corrupt_payload(self, store):
        with store._db as conn:
            conn.execute("INSERT INTO baseline (id, payload) VALUES (1, 'not json')")
            conn.commit()
        with pytest.raises(StoreFailureError):
            await store.load()

    def test_unusable_location(self, tmp_path):
        with pytest.raises(StoreFailureError):
            SqliteBaselineStore(tmp_path / "missing" / "dir")

    def test_score_history(self, store):
        baseline = ready_baseline()
        store.add_score_history_entry(history_entry_for(TEST_DATE, ScoreType.RECOVERY, 82, baseline))
        store.add_score_history_entry(history_entry_for(TEST_DATE, ScoreType.SLEEP, 75, baseline))
        store.add_score_history_entry(
            history_entry_for(TEST_DATE - dt.timedelta(days=1), ScoreType.RECOVERY, 64, baseline)
        )

        entries = list(store.list_score_history())
        assert [(e.date, e.score_type, e.score) for e in entries] == [
            ("2025-05-01", ScoreType.RECOVERY, 82),
            ("2025-05-01", ScoreType.SLEEP, 75),
            ("2025-04-30", ScoreType.RECOVERY, 64),
        ]
        assert entries[0].hrv60 == 50.0
        assert entries[0].bedtime14 == "23:00:00"
        assert entries[0].calculated_at is not None

    def test_score_history_filter_and_limit(self, store):
        for days_ago, score in enumerate([80, 70, 60]):
            store.add_score_history_entry(
                ScoreHistoryEntry((TEST_DATE - dt.timedelta(days=days_ago)).isoformat(), ScoreType.SLEEP, score)
            )
        store.add_score_history_entry(ScoreHistoryEntry(TEST_DATE.isoformat(), ScoreType.RECOVERY, 90))

        sleep = list(store.list_score_history(score_type=ScoreType.SLEEP, limit=2))
        assert [e.score for e in sleep] == [80, 70]

    def test_rescoring_replaces_history_entry(self, store):
        store.add_score_history_entry(ScoreHistoryEntry(TEST_DATE.isoformat(), ScoreType.SLEEP, 60))
        store.add_score_history_entry(ScoreHistoryEntry(TEST_DATE.isoformat(), ScoreType.SLEEP, 65))

        assert [e.score for e in store.list_score_history()] == [65]


class TestJsonBaselineStore:
    @pytest.fixture
    def store(self, tmp_path):
        return JsonBaselineStore(tmp_path / "baseline" / "baseline.json")

    @pytest.mark.asyncio
    async def test_missing_file(self, store):
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_save_and_load(self, store):
        baseline = ready_baseline(bedtime14=dt.time(0, 15))
        await store.save(baseline)

        assert store.file_path.exists()
        assert not store.file_path.with_suffix(".json.tmp").exists()
        assert await store.load() == baseline

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.save(ready_baseline())
        await store.clear()
        await store.clear()
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_corrupt_file(self, store):
        store.file_path.parent.mkdir(parents=True)
        store.file_path.write_text("{")
        with pytest.raises(StoreFailureError):
            await store.load()


class TestMemoryBaselineStore:
    @pytest.mark.asyncio
    async def test_save_load_and_clear(self):
        store = MemoryBaselineStore()
        assert await store.load() is None

        await store.save(ready_baseline())
        assert await store.load() == ready_baseline()

        await store.clear()
        assert await store.load() is None
