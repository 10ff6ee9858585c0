"""
Constants for the score analysis framework.

This module defines constants used throughout the scoring code, including:
- Point tables for the sleep score components
- Weights and clamps for the recovery score
- Baseline window lengths and calibration thresholds
- Reference ranges used for findings and insights
"""

import datetime as dt


# Sleep score point tables. Bands are (lower_bound, points), highest band first,
# each band closed on its lower edge.
class SleepPoints:
    """Point tables for the canonical sleep score. Maxima sum to 100."""

    DURATION_MAX = 30
    DURATION_HOURS = (
        (8.0, 30),
        (7.5, 29),
        (7.0, 27),
        (6.5, 25),
        (6.0, 20),
        (5.5, 15),
        (5.0, 10),
        (4.5, 5),
    )

    DEEP_MAX = 25
    DEEP_MINUTES = (
        (105, 25),
        (90, 22),
        (75, 18),
        (60, 14),
        (45, 8),
    )

    REM_MAX = 20
    REM_MINUTES = (
        (120, 20),
        (105, 18),
        (90, 16),
        (75, 13),
        (60, 10),
    )
    REM_LINEAR_BAND_MINUTES = 60  # Below this, points grow linearly from 0
    REM_LINEAR_BAND_POINTS = 5  # Points at the top of the linear band

    EFFICIENCY_MAX = 15
    EFFICIENCY_PCT = (
        (95.0, 15),
        (92.5, 12),
        (90.0, 10),
        (85.0, 5),
    )

    CONSISTENCY_MAX = 10
    CONSISTENCY_MINUTES_PER_POINT = 10  # One point lost per 10 minutes of deviation


# Recovery score weights and clamps
class RecoveryWeights:
    """Weights and clamp ranges for the recovery score."""

    HRV = 0.60
    RHR = 0.25
    SLEEP = 0.15

    HRV_MIN = 0.0
    HRV_MAX = 120.0
    RHR_MIN = 50.0
    RHR_MAX = 120.0

    RHR_NEUTRAL = 50.0  # Used when RHR cannot be compared against a baseline


# Baseline configuration constants
class BaselineConfig:
    """Default configuration for baseline calculations."""

    HRV_WINDOW_DAYS = 60
    RHR_WINDOW_DAYS = 60
    SLEEP_WINDOW_DAYS = 14

    MIN_HRV_SAMPLES = 7
    MIN_RHR_SAMPLES = 7
    MIN_SLEEP_SESSIONS = 7

    REFRESH_INTERVAL_HOURS = 24


# Sleep reference values
class SleepReference:
    """Reference ranges for sleep findings and insights."""

    DEFAULT_TARGET_BEDTIME = dt.time(23, 45)  # Used until a bedtime baseline exists

    OPTIMAL_DURATION_HOURS = (7.5, 8.5)
    OPTIMAL_DURATION_MINUTES = (420, 540)
    OPTIMAL_EFFICIENCY_PCT = (90.0, 95.0)
    OPTIMAL_ONSET_MINUTES = (0.0, 15.0)
    OPTIMAL_DEEP_PCT = (13.0, 23.0)  # % of time asleep
    OPTIMAL_REM_PCT = (20.0, 25.0)  # % of time asleep
    EXCELLENT_REM_MINUTES = 120

    EXCELLENT_EFFICIENCY_PCT = 90
    GOOD_EFFICIENCY_PCT = 80


# Legacy continuous-curve sleep model
class LegacySleepCurve:
    """Parameters of the continuous-curve sleep model."""

    DURATION_TARGET_HOURS = 8.0
    DURATION_SIGMA_HOURS = 1.5
    CONSISTENCY_DECAY_PER_MINUTE = 0.005

    DURATION_WEIGHT = 0.30
    DEEP_WEIGHT = 0.25
    REM_WEIGHT = 0.20
    EFFICIENCY_WEIGHT = 0.15
    CONSISTENCY_WEIGHT = 0.10


# Directive ladder thresholds
class DirectiveThresholds:
    """Score thresholds for the daily directive."""

    PEAK_RECOVERY = 85  # Strictly above
    STRAINED_RECOVERY = 55  # Strictly below
    RESTORATIVE_SLEEP = 60  # Strictly below


# Insight status thresholds
class InsightThresholds:
    """Thresholds used to grade components in insights."""

    GOOD_DEVIATION = 0.05  # Relative deviation from the optimal range
    FAIR_DEVIATION = 0.15

    RECOVERY_OPTIMAL = 90
    RECOVERY_GOOD = 80
    RECOVERY_FAIR = 65
