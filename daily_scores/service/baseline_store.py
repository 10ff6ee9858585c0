import datetime as dt
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Union

from loguru import logger
from pydantic import ValidationError

from daily_scores.service.score_analysis.common.data_models import Baseline
from daily_scores.service.score_analysis.common.errors import StoreFailureError


class ScoreType(Enum):
    RECOVERY = "recovery"
    SLEEP = "sleep"


@dataclass
class ScoreHistoryEntry:
    date: str
    score_type: ScoreType
    score: int
    hrv60: Optional[float] = None
    rhr60: Optional[float] = None
    sleep_duration14: Optional[float] = None
    bedtime14: Optional[str] = None
    wake14: Optional[str] = None
    calculated_at: Optional[str] = None


class BaselineStore(ABC):
    """Persistence for the single current baseline."""

    @abstractmethod
    async def load(self) -> Optional[Baseline]:
        """Return the persisted baseline, or None when nothing has been stored yet."""

    @abstractmethod
    async def save(self, baseline: Baseline) -> None:
        """Persist ``baseline``, replacing whatever was stored before."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove the persisted baseline."""


class SqliteBaselineStore(BaselineStore):
    """Baseline and score history kept in a SQLite file in the output directory."""

    _BASELINE_TABLE_NAME = "baseline"
    _SCORE_HISTORY_TABLE_NAME = "score_history"

    def __init__(self, out_dir: Path, db_name: str = "scores.db") -> None:
        self.out_dir = out_dir
        self.db_name = db_name
        self._initialize_tables()

    def _initialize_tables(self) -> None:
        """Initialize all database tables on store creation."""
        logger.info("Initializing baseline store tables")
        try:
            with self._db as conn:
                create_baseline_table_query = f"""
                CREATE TABLE IF NOT EXISTS {self._BASELINE_TABLE_NAME} (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    payload TEXT,
                    updated_at TIMESTAMP
                )
                """
                create_history_table_query = f"""
                CREATE TABLE IF NOT EXISTS {self._SCORE_HISTORY_TABLE_NAME} (
                    date VARCHAR,
                    score_type VARCHAR,
                    score INT,
                    hrv60 REAL,
                    rhr60 REAL,
                    sleep_duration14 REAL,
                    bedtime14 VARCHAR,
                    wake14 VARCHAR,
                    calculated_at TIMESTAMP,
                    PRIMARY KEY (date, score_type)
                )
                """
                conn.execute(create_baseline_table_query)
                conn.execute(create_history_table_query)
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize baseline store at {self.db_path}: {e}")
            raise StoreFailureError(f"Cannot initialize baseline store: {e}") from e

    @property
    def db_path(self) -> Path:
        return self.out_dir / self.db_name

    async def load(self) -> Optional[Baseline]:
        try:
            with self._db as conn:
                row = conn.execute(f"SELECT payload FROM {self._BASELINE_TABLE_NAME} WHERE id = 1").fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error loading baseline: {e}")
            raise StoreFailureError(f"Cannot load baseline: {e}") from e

        if row is None:
            logger.info("No stored baseline found")
            return None
        try:
            return Baseline.model_validate_json(row[0])
        except ValidationError as e:
            logger.error(f"Stored baseline is corrupt: {e}")
            raise StoreFailureError(f"Stored baseline is corrupt: {e}") from e

    async def save(self, baseline: Baseline) -> None:
        logger.info("Saving baseline")
        try:
            with self._db as conn:
                conn.execute(
                    f"""
                    INSERT OR REPLACE INTO {self._BASELINE_TABLE_NAME} (id, payload, updated_at)
                    VALUES (1, ?, CURRENT_TIMESTAMP)
                    """,
                    (baseline.model_dump_json(),),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error saving baseline: {e}")
            raise StoreFailureError(f"Cannot save baseline: {e}") from e

    async def clear(self) -> None:
        logger.info("Clearing stored baseline")
        try:
            with self._db as conn:
                conn.execute(f"DELETE FROM {self._BASELINE_TABLE_NAME}")
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error clearing baseline: {e}")
            raise StoreFailureError(f"Cannot clear baseline: {e}") from e

    def add_score_history_entry(self, entry: ScoreHistoryEntry) -> None:
        """Record a score, replacing an earlier record of the same date and type."""
        logger.info(f"Adding score history entry: {entry.date} {entry.score_type.value}={entry.score}")
        try:
            with self._db as conn:
                insert_query = f"""
                INSERT OR REPLACE INTO {self._SCORE_HISTORY_TABLE_NAME} (
                    date, score_type, score, hrv60, rhr60, sleep_duration14, bedtime14, wake14, calculated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                """
                conn.execute(
                    insert_query,
                    (
                        entry.date,
                        entry.score_type.value,
                        entry.score,
                        entry.hrv60,
                        entry.rhr60,
                        entry.sleep_duration14,
                        entry.bedtime14,
                        entry.wake14,
                    ),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error adding score history entry: {e}")
            raise StoreFailureError(f"Cannot record score history: {e}") from e

    def list_score_history(
        self, score_type: Optional[ScoreType] = None, limit: Optional[int] = None
    ) -> Iterator[ScoreHistoryEntry]:
        logger.info(f"Listing score history for score_type: {score_type}")
        query = f"""SELECT
         date, score_type, score, hrv60, rhr60, sleep_duration14, bedtime14, wake14, calculated_at
        FROM {self._SCORE_HISTORY_TABLE_NAME}"""
        params: list = []

        if score_type is not None:
            query += " WHERE score_type = ?"
            params.append(score_type.value)

        query += " ORDER BY date DESC, score_type"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        try:
            with self._db as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error listing score history: {e}")
            raise StoreFailureError(f"Cannot list score history: {e}") from e

        for row in rows:
            date, score_type_str, score, *rest = row
            yield ScoreHistoryEntry(date, ScoreType(score_type_str), score, *rest)

    @property
    def _db(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path.as_posix())


class MemoryBaselineStore(BaselineStore):
    """Baseline kept only for the lifetime of the process, used when no durable store can be opened."""

    def __init__(self) -> None:
        self._baseline: Optional[Baseline] = None

    async def load(self) -> Optional[Baseline]:
        return self._baseline

    async def save(self, baseline: Baseline) -> None:
        logger.warning("Baseline kept in memory only, it will be recomputed on the next run")
        self._baseline = baseline

    async def clear(self) -> None:
        self._baseline = None


class JsonBaselineStore(BaselineStore):
    """Baseline kept as a single JSON file."""

    def __init__(self, file_path: Union[str, Path]) -> None:
        self.file_path = Path(file_path)

    async def load(self) -> Optional[Baseline]:
        if not self.file_path.exists():
            logger.info(f"No baseline file at {self.file_path}")
            return None
        try:
            with open(self.file_path, "r") as f:
                return Baseline.model_validate_json(f.read())
        except (OSError, ValidationError) as e:
            logger.error(f"Error loading baseline from file: {e}")
            raise StoreFailureError(f"Cannot load baseline from {self.file_path}: {e}") from e

    async def save(self, baseline: Baseline) -> None:
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                f.write(baseline.model_dump_json(indent=2))
            tmp_path.replace(self.file_path)
        except OSError as e:
            logger.error(f"Error saving baseline to file: {e}")
            raise StoreFailureError(f"Cannot save baseline to {self.file_path}: {e}") from e

    async def clear(self) -> None:
        try:
            self.file_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error removing baseline file: {e}")
            raise StoreFailureError(f"Cannot remove {self.file_path}: {e}") from e


def history_entry_for(date: dt.date, score_type: ScoreType, score: int, baseline: Baseline) -> ScoreHistoryEntry:
    """Build a history entry that records the baseline the score was computed against."""
    return ScoreHistoryEntry(
        date=date.isoformat(),
        score_type=score_type,
        score=score,
        hrv60=baseline.hrv60,
        rhr60=baseline.rhr60,
        sleep_duration14=baseline.sleep_duration14,
        bedtime14=baseline.bedtime14.isoformat() if baseline.bedtime14 else None,
        wake14=baseline.wake14.isoformat() if baseline.wake14 else None,
    )
