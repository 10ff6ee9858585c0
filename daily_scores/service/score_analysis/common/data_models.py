"""
Data models for the score analysis framework.

This module provides Pydantic models for:
- Raw inputs (biomarker samples, sleep sessions)
- The personal baseline snapshot
- Score outputs with their component breakdown
- Insight structures used for presentation
"""

import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BiomarkerKind(str, Enum):
    """Kind of a biomarker sample."""

    HRV = "HRV"  # Heart-rate variability (ms)
    RHR = "RHR"  # Resting heart rate (bpm)


class BiomarkerSample(BaseModel):
    """A single biomarker reading."""

    model_config = ConfigDict(frozen=True)

    kind: BiomarkerKind
    value: float
    timestamp: dt.datetime


class SleepSession(BaseModel):
    """One night of sleep, keyed by the calendar date the sleeper woke up on."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    time_in_bed_seconds: float
    time_asleep_seconds: float
    deep_sleep_seconds: Optional[float] = None  # None when the device reports no stages
    rem_sleep_seconds: Optional[float] = None
    bedtime: dt.datetime
    wake_time: dt.datetime
    sleep_efficiency: Optional[float] = None  # Measured efficiency (%)
    time_to_fall_asleep_minutes: Optional[float] = None

    @property
    def has_stage_data(self) -> bool:
        return self.deep_sleep_seconds is not None and self.rem_sleep_seconds is not None

    @property
    def hours_asleep(self) -> float:
        return self.time_asleep_seconds / 3600

    @property
    def efficiency_pct(self) -> Optional[float]:
        """Measured efficiency, or time asleep over time in bed when not measured."""
        if self.sleep_efficiency is not None:
            return self.sleep_efficiency
        if self.time_in_bed_seconds <= 0:
            return None
        return self.time_asleep_seconds / self.time_in_bed_seconds * 100

    @property
    def fall_asleep_minutes(self) -> float:
        if self.time_to_fall_asleep_minutes is not None:
            return self.time_to_fall_asleep_minutes
        return max(0.0, self.time_in_bed_seconds - self.time_asleep_seconds) / 60


class Baseline(BaseModel):
    """Personal rolling baselines. Replaced wholesale on every refresh."""

    model_config = ConfigDict(frozen=True)

    hrv60: Optional[float] = None  # Mean HRV over the trailing 60 days
    rhr60: Optional[float] = None  # Mean RHR over the trailing 60 days
    sleep_duration14: Optional[float] = None  # Mean time asleep (s) over the trailing 14 days
    bedtime14: Optional[dt.time] = None  # Circular mean bedtime over the trailing 14 days
    wake14: Optional[dt.time] = None  # Circular mean wake time over the trailing 14 days
    calibrating: bool = True
    last_updated: Optional[dt.datetime] = None

    hrv_sample_count: int = 0
    rhr_sample_count: int = 0
    sleep_session_count: int = 0


class ScoreComponent(BaseModel):
    """One component of a score, kept for the "how was this calculated" breakdown."""

    model_config = ConfigDict(frozen=True)

    name: str
    score: float
    max_score: float
    contribution: float  # Points this component adds to the final score
    weight: float = 1.0
    current_value: Optional[float] = None
    baseline_value: Optional[float] = None
    description: str = ""
    available: bool = True


class SleepScoreModel(str, Enum):
    """Which sleep scoring model produced a result."""

    POINT_TABLE = "point_table"
    CONTINUOUS_CURVE = "continuous_curve"


class SleepScoreResult(BaseModel):
    """Daily sleep score."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    final_score: int = Field(ge=0, le=100)
    components: List[ScoreComponent]
    time_in_bed_seconds: float
    time_asleep_seconds: float
    deep_sleep_seconds: Optional[float] = None
    rem_sleep_seconds: Optional[float] = None
    sleep_efficiency: float  # %
    time_to_fall_asleep_minutes: float
    model: SleepScoreModel = SleepScoreModel.POINT_TABLE
    key_findings: List[str] = Field(default_factory=list)
    low_confidence: bool = False

    def component(self, name: str) -> Optional[ScoreComponent]:
        for component in self.components:
            if component.name == name:
                return component
        return None


class RecoveryScoreResult(BaseModel):
    """Daily recovery score."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    final_score: int = Field(ge=0, le=100)
    hrv_component: ScoreComponent
    rhr_component: ScoreComponent
    sleep_component: ScoreComponent
    directive: str
    low_confidence: bool = False

    @property
    def components(self) -> List[ScoreComponent]:
        return [self.hrv_component, self.rhr_component, self.sleep_component]


class DailyScores(BaseModel):
    """Both daily scores with the directive derived from them."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    recovery: RecoveryScoreResult
    sleep: SleepScoreResult
    directive: str
    low_confidence: bool = False


# Insight models


class InsightStatus(str, Enum):
    """How a component compares to its optimal range."""

    OPTIMAL = "optimal"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class ComponentInsight(BaseModel):
    """Presentation-ready explanation of one score component."""

    name: str
    value: Optional[float] = None
    display_value: str
    optimal_range: str
    status: InsightStatus
    explanation: str


class ScoreInsight(BaseModel):
    """Headline, per-component insights and a recommendation for one score."""

    score: int
    headline: str
    components: List[ComponentInsight]
    recommendation: str
