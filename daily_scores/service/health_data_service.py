import datetime as dt
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

import duckdb
from loguru import logger
from pydantic import ValidationError

from daily_scores.service.score_analysis.common.data_models import BiomarkerKind, BiomarkerSample, SleepSession
from daily_scores.service.score_analysis.common.db_utils import execute_query, transaction


class HealthDataProvider(ABC):
    """Source of biometric samples and sleep sessions."""

    @abstractmethod
    async def latest_hrv(self, date: dt.date) -> Optional[float]:
        """Most recent HRV reading taken on ``date``."""

    @abstractmethod
    async def latest_rhr(self, date: dt.date) -> Optional[float]:
        """Most recent resting heart rate reading taken on ``date``."""

    @abstractmethod
    async def sleep_session(self, date: dt.date) -> Optional[SleepSession]:
        """Sleep session that ended on ``date``."""

    @abstractmethod
    async def historical_hrv(self, days: int) -> List[BiomarkerSample]:
        """HRV samples from the trailing ``days`` days."""

    @abstractmethod
    async def historical_rhr(self, days: int) -> List[BiomarkerSample]:
        """Resting heart rate samples from the trailing ``days`` days."""

    @abstractmethod
    async def historical_sleep(self, days: int) -> List[SleepSession]:
        """Sleep sessions from the trailing ``days`` days."""


class DuckDBHealthDataProvider(HealthDataProvider):
    """Health data repository backed by DuckDB.

    Samples and sleep sessions are stored in two tables. Historical windows cover the
    ``days`` calendar days before today, so a baseline never includes the day it is
    compared against.
    """

    _SAMPLES_TABLE_NAME = "biomarker_samples"
    _SLEEP_TABLE_NAME = "sleep_sessions"

    def __init__(self, conn: duckdb.DuckDBPyConnection, clock: Callable[[], dt.date] = dt.date.today):
        """
        Initialize the provider.

        Args:
            conn: DuckDB connection holding (or receiving) the health tables
            clock: Returns "today"; historical windows end the day before it
        """
        self.conn = conn
        self.clock = clock
        self._initialize_tables()

    @classmethod
    def from_path(
        cls, db_path: Union[str, Path], clock: Callable[[], dt.date] = dt.date.today
    ) -> "DuckDBHealthDataProvider":
        conn = duckdb.connect(str(db_path))
        logger.info(f"Connected to health database at {db_path}")
        return cls(conn, clock=clock)

    def _initialize_tables(self) -> None:
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._SAMPLES_TABLE_NAME} (
                kind VARCHAR,
                value DOUBLE,
                timestamp TIMESTAMP
            )
            """
        )
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._SLEEP_TABLE_NAME} (
                date DATE PRIMARY KEY,
                time_in_bed_seconds DOUBLE,
                time_asleep_seconds DOUBLE,
                deep_sleep_seconds DOUBLE,
                rem_sleep_seconds DOUBLE,
                bedtime TIMESTAMP,
                wake_time TIMESTAMP,
                sleep_efficiency DOUBLE,
                time_to_fall_asleep_minutes DOUBLE
            )
            """
        )

    def close(self) -> None:
        self.conn.close()

    # Reads

    async def latest_hrv(self, date: dt.date) -> Optional[float]:
        return self._latest_value(BiomarkerKind.HRV, date)

    async def latest_rhr(self, date: dt.date) -> Optional[float]:
        return self._latest_value(BiomarkerKind.RHR, date)

    async def sleep_session(self, date: dt.date) -> Optional[SleepSession]:
        rows = execute_query(
            self.conn,
            f"SELECT * FROM {self._SLEEP_TABLE_NAME} WHERE date = ?",
            (date,),
        )
        if not rows:
            logger.debug(f"No sleep session stored for {date}")
            return None
        return SleepSession(**rows[0])

    async def historical_hrv(self, days: int) -> List[BiomarkerSample]:
        return self._samples_in_window(BiomarkerKind.HRV, days)

    async def historical_rhr(self, days: int) -> List[BiomarkerSample]:
        return self._samples_in_window(BiomarkerKind.RHR, days)

    async def historical_sleep(self, days: int) -> List[SleepSession]:
        start_date, end_date = self._window(days)
        rows = execute_query(
            self.conn,
            f"""
            SELECT * FROM {self._SLEEP_TABLE_NAME}
            WHERE date >= ? AND date < ?
            ORDER BY date
            """,
            (start_date, end_date),
        )
        return [SleepSession(**row) for row in rows]

    def _latest_value(self, kind: BiomarkerKind, date: dt.date) -> Optional[float]:
        rows = execute_query(
            self.conn,
            f"""
            SELECT value FROM {self._SAMPLES_TABLE_NAME}
            WHERE kind = ? AND CAST(timestamp AS DATE) = ?
            ORDER BY timestamp DESC
            LIMIT 1
            """,
            (kind.value, date),
        )
        if not rows:
            logger.debug(f"No {kind.value} sample stored for {date}")
            return None
        return rows[0]["value"]

    def _samples_in_window(self, kind: BiomarkerKind, days: int) -> List[BiomarkerSample]:
        start_date, end_date = self._window(days)
        rows = execute_query(
            self.conn,
            f"""
            SELECT kind, value, timestamp FROM {self._SAMPLES_TABLE_NAME}
            WHERE kind = ?
              AND CAST(timestamp AS DATE) >= ?
              AND CAST(timestamp AS DATE) < ?
            ORDER BY timestamp
            """,
            (kind.value, start_date, end_date),
        )
        return [BiomarkerSample(**row) for row in rows]

    def _window(self, days: int) -> Tuple[dt.date, dt.date]:
        """Half-open [start, end) date range of the trailing window."""
        end_date = self.clock()
        return end_date - dt.timedelta(days=days), end_date

    # Writes

    def add_samples(self, samples: Iterable[BiomarkerSample]) -> int:
        rows = [(s.kind.value, s.value, _naive(s.timestamp)) for s in samples]
        if not rows:
            return 0
        with transaction(self.conn) as txn:
            txn.executemany(
                f"INSERT INTO {self._SAMPLES_TABLE_NAME} (kind, value, timestamp) VALUES (?, ?, ?)",
                rows,
            )
        logger.info(f"Stored {len(rows)} biomarker samples")
        return len(rows)

    def add_sleep_sessions(self, sessions: Iterable[SleepSession]) -> int:
        """Store sleep sessions, replacing any session already stored for the same date."""
        rows = [
            (
                s.date,
                s.time_in_bed_seconds,
                s.time_asleep_seconds,
                s.deep_sleep_seconds,
                s.rem_sleep_seconds,
                _naive(s.bedtime),
                _naive(s.wake_time),
                s.sleep_efficiency,
                s.time_to_fall_asleep_minutes,
            )
            for s in sessions
        ]
        if not rows:
            return 0
        with transaction(self.conn) as txn:
            txn.executemany(
                f"""
                INSERT OR REPLACE INTO {self._SLEEP_TABLE_NAME} (
                    date, time_in_bed_seconds, time_asleep_seconds, deep_sleep_seconds, rem_sleep_seconds,
                    bedtime, wake_time, sleep_efficiency, time_to_fall_asleep_minutes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        logger.info(f"Stored {len(rows)} sleep sessions")
        return len(rows)

    def import_json_export(self, file_path: Union[str, Path]) -> Tuple[int, int]:
        """
        Import a JSON export with ``biomarkers`` and ``sleep_sessions`` lists.

        Args:
            file_path: Path to the export file

        Returns:
            Number of stored samples and number of stored sleep sessions

        Raises:
            ValueError: If the file does not match the export format
        """
        with open(file_path, "r") as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            raise ValueError(f"Invalid health data export {file_path}: expected a JSON object")

        try:
            samples = [BiomarkerSample(**item) for item in payload.get("biomarkers", [])]
            sessions = [SleepSession(**item) for item in payload.get("sleep_sessions", [])]
        except (ValidationError, TypeError) as e:
            raise ValueError(f"Invalid health data export {file_path}: {e}") from e

        logger.info(f"Importing {len(samples)} samples and {len(sessions)} sleep sessions from {file_path}")
        return self.add_samples(samples), self.add_sleep_sessions(sessions)


def _naive(value: dt.datetime) -> dt.datetime:
    """Drop the timezone but keep the local wall-clock time, which is what bedtimes are compared on."""
    return value.replace(tzinfo=None)
