"""Data models for the in-process metrics registry."""

import time
from enum import Enum
from typing import Iterable

import numpy as np


class TimeUnit(Enum):
    """Time units used for rate and duration conversion.

    The value of each member is its length in nanoseconds.
    """

    NANOSECONDS = 1
    MICROSECONDS = 1_000
    MILLISECONDS = 1_000_000
    SECONDS = 1_000_000_000
    MINUTES = 60 * 1_000_000_000
    HOURS = 60 * 60 * 1_000_000_000
    DAYS = 24 * 60 * 60 * 1_000_000_000

    @property
    def nanos(self) -> int:
        return self.value

    @property
    def seconds(self) -> float:
        return self.value / TimeUnit.SECONDS.value

    def to_nanos(self, duration: float) -> int:
        return int(duration * self.value)

    @classmethod
    def parse(cls, name) -> "TimeUnit":
        """Look up a unit by name, case-insensitively ("seconds", "SECONDS")."""
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown time unit: {name}") from None


class Clock:
    """Source of wall-clock time for timestamps and monotonic ticks for rates."""

    def time(self) -> int:
        """Current epoch time in milliseconds."""
        return int(time.time() * 1000)

    def tick(self) -> int:
        """Monotonic time in nanoseconds."""
        return time.monotonic_ns()


class Snapshot:
    """Statistical summary of a set of recorded values at a point in time.

    Quantiles use the ``q * (n + 1)`` rank definition, clamped to the
    smallest and largest values. An empty snapshot reports 0 everywhere.
    """

    def __init__(self, values: Iterable[float]):
        self._values = np.sort(np.asarray(list(values), dtype=float))

    def __len__(self) -> int:
        return len(self._values)

    def get_value(self, quantile: float) -> float:
        if not 0.0 <= quantile <= 1.0:
            raise ValueError(f"{quantile} is not in [0..1]")
        if len(self._values) == 0:
            return 0.0
        return float(np.quantile(self._values, quantile, method="weibull"))

    @property
    def values(self) -> np.ndarray:
        return self._values.copy()

    @property
    def min(self) -> float:
        return float(self._values[0]) if len(self._values) else 0.0

    @property
    def max(self) -> float:
        return float(self._values[-1]) if len(self._values) else 0.0

    @property
    def mean(self) -> float:
        return float(np.mean(self._values)) if len(self._values) else 0.0

    @property
    def stddev(self) -> float:
        # Sample standard deviation
        if len(self._values) <= 1:
            return 0.0
        return float(np.std(self._values, ddof=1))

    @property
    def median(self) -> float:
        return self.get_value(0.5)

    @property
    def p75(self) -> float:
        return self.get_value(0.75)

    @property
    def p95(self) -> float:
        return self.get_value(0.95)

    @property
    def p98(self) -> float:
        return self.get_value(0.98)

    @property
    def p99(self) -> float:
        return self.get_value(0.99)

    @property
    def p999(self) -> float:
        return self.get_value(0.999)
