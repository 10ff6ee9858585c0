"""
Normalization helpers shared by the score calculators.

Pure functions only: ordered-band point lookups, time-of-day arithmetic that
respects the 24h wraparound, and the smooth penalty curve used by the legacy
sleep model.
"""

import datetime as dt
import math
from typing import Callable, Iterable, Sequence, Tuple, Union

MINUTES_PER_DAY = 24 * 60

BandPoints = Union[float, Callable[[float], float]]
TimeOfDay = Union[dt.time, dt.datetime]


class StepTable:
    """
    Ordered point bands.

    Each band is ``(lower_bound, points)`` and is closed on its lower edge. Bands
    are listed highest first; ``points`` is either a constant or a callable of the
    value for bands that interpolate. Values below the last band get ``default``.
    """

    def __init__(self, bands: Sequence[Tuple[float, BandPoints]], default: float = 0.0):
        bounds = [lower for lower, _ in bands]
        if any(upper <= lower for upper, lower in zip(bounds, bounds[1:])):
            raise ValueError(f"Step table bounds must be strictly descending, got {bounds}")
        self.bands = tuple(bands)
        self.default = default

    @property
    def max_points(self) -> float:
        if not self.bands:
            return self.default
        lower, points = self.bands[0]
        return points(lower) if callable(points) else float(points)


def step_lookup(value: float, table: StepTable) -> float:
    """
    Look up the points for a value in a step table.

    Args:
        value: Measured value
        table: Bands to look the value up in

    Returns:
        Points of the first band whose lower bound the value reaches, or the table default
    """
    if value is None or math.isnan(value):
        return table.default

    for lower, points in table.bands:
        if value >= lower:
            return points(value) if callable(points) else float(points)
    return table.default


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(value, upper))


def minutes_of_day(value: TimeOfDay) -> float:
    """Minutes since midnight, including seconds."""
    return value.hour * 60 + value.minute + value.second / 60 + value.microsecond / 60_000_000


def time_from_minutes(minutes: float) -> dt.time:
    total_seconds = int(round(minutes * 60)) % (MINUTES_PER_DAY * 60)
    hours, remainder = divmod(total_seconds, 3600)
    return dt.time(hours, remainder // 60, remainder % 60)


def circular_mean(times_of_day: Iterable[TimeOfDay]) -> dt.time:
    """
    Average times of day on the 24h circle.

    Each time is mapped to an angle on the unit circle and the mean angle is taken
    with atan2, so 23:30 and 00:30 average to midnight rather than noon.

    Args:
        times_of_day: Times or datetimes; only the time-of-day part is used

    Returns:
        Mean time of day. Evenly opposed inputs have no mean direction and resolve to midnight.

    Raises:
        ValueError: If no times are given
    """
    sin_sum = 0.0
    cos_sum = 0.0
    count = 0
    for value in times_of_day:
        angle = minutes_of_day(value) / MINUTES_PER_DAY * 2 * math.pi
        sin_sum += math.sin(angle)
        cos_sum += math.cos(angle)
        count += 1

    if count == 0:
        raise ValueError("circular_mean() requires at least one time of day")

    if math.isclose(sin_sum, 0.0, abs_tol=1e-9) and math.isclose(cos_sum, 0.0, abs_tol=1e-9):
        return dt.time(0, 0)

    mean_angle = math.atan2(sin_sum / count, cos_sum / count)
    if mean_angle < 0:
        mean_angle += 2 * math.pi
    return time_from_minutes(mean_angle / (2 * math.pi) * MINUTES_PER_DAY)


def minutes_between(first: TimeOfDay, second: TimeOfDay) -> float:
    """
    Distance between two times of day in minutes, the short way around midnight.

    00:05 and 23:55 are 10 minutes apart. The result is always within [0, 720].
    """
    difference = abs(minutes_of_day(first) - minutes_of_day(second)) % MINUTES_PER_DAY
    return min(difference, MINUTES_PER_DAY - difference)


def signed_minutes_from(actual: TimeOfDay, target: TimeOfDay) -> float:
    """
    Signed distance of ``actual`` from ``target`` in minutes, the short way around midnight.

    Positive when ``actual`` is later than ``target``: 00:05 is +10 from 23:55 and 22:00
    is -60 from 23:00. The result is within [-720, 720).
    """
    difference = minutes_of_day(actual) - minutes_of_day(target)
    return (difference + MINUTES_PER_DAY / 2) % MINUTES_PER_DAY - MINUTES_PER_DAY / 2


def smooth_penalty_curve(value: float, min_value: float, max_value: float, floor: float = 0.0) -> float:
    """
    Score a value against an optimal range with a symmetric quadratic falloff.

    Args:
        value: Measured value
        min_value: Lower edge of the range
        max_value: Upper edge of the range
        floor: Score at the range edges and outside the range

    Returns:
        100 at the midpoint of the range, falling quadratically to ``floor`` at the edges
    """
    if max_value < min_value:
        raise ValueError(f"Invalid range [{min_value}, {max_value}]")
    if value < min_value or value > max_value:
        return floor

    midpoint = (min_value + max_value) / 2
    half_width = (max_value - min_value) / 2
    if half_width == 0:
        return 100.0

    distance = (value - midpoint) / half_width
    return 100.0 - (100.0 - floor) * distance**2
