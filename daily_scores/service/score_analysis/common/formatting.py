"""Formatting helpers for human-readable score descriptions."""

import datetime as dt
from typing import Union


def format_duration(seconds: float) -> str:
    total_minutes = int(round(seconds / 60))
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}m"
    return f"{hours}h {minutes}m"


def format_time(value: Union[dt.time, dt.datetime]) -> str:
    return value.strftime("%H:%M")
