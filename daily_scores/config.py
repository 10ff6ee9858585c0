import datetime as dt
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from daily_scores.service.score_analysis.common.constants import BaselineConfig, SleepReference


class BaselineSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DAILY_SCORES_BASELINE__")

    hrv_window_days: int = BaselineConfig.HRV_WINDOW_DAYS
    rhr_window_days: int = BaselineConfig.RHR_WINDOW_DAYS
    sleep_window_days: int = BaselineConfig.SLEEP_WINDOW_DAYS
    min_hrv_samples: int = BaselineConfig.MIN_HRV_SAMPLES
    min_rhr_samples: int = BaselineConfig.MIN_RHR_SAMPLES
    min_sleep_sessions: int = BaselineConfig.MIN_SLEEP_SESSIONS
    refresh_interval_hours: float = BaselineConfig.REFRESH_INTERVAL_HOURS


class SleepSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DAILY_SCORES_SLEEP__")

    default_target_bedtime: dt.time = SleepReference.DEFAULT_TARGET_BEDTIME
    use_legacy_fallback: bool = True


class ScoringSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DAILY_SCORES_", env_nested_delimiter="__")

    out_dir: Path = Path("./out")
    user_id: Optional[str] = None
    baseline_store: Literal["sqlite", "json"] = "sqlite"
    log_level: str = "INFO"
    baseline: BaselineSettings = Field(default_factory=BaselineSettings)
    sleep: SleepSettings = Field(default_factory=SleepSettings)
