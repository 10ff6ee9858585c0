"""
Error types raised by the score analysis framework.

None of these are fatal: every one of them can be retried once new samples
arrive or the store becomes reachable again.
"""

import datetime as dt
from typing import Optional


class ScoringError(Exception):
    """Base class for all score analysis errors."""


class DataUnavailableError(ScoringError):
    """No sample or session exists for the requested date."""

    def __init__(self, date: Optional[dt.date], reason: str):
        self.date = date
        self.reason = reason
        if date is not None:
            super().__init__(f"Data unavailable for {date.isoformat()}: {reason}")
        else:
            super().__init__(f"Data unavailable: {reason}")


class InsufficientHistoryError(DataUnavailableError):
    """A baseline field required by the calculation has not been established yet."""


class StoreFailureError(ScoringError):
    """Reading or writing the persisted baseline failed."""
