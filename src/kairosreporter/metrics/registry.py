"""In-process metric instruments and the registry that holds them."""

import logging
import math
import re
import threading
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from .models import Clock, Snapshot, TimeUnit

logger = logging.getLogger(__name__)

DEFAULT_RESERVOIR_SIZE = 1028


def name(*components: Optional[str]) -> str:
    """Join the non-empty components of a metric name with dots.

    >>> name("app", None, "requests", "", "count")
    'app.requests.count'
    """
    return ".".join(str(c) for c in components if c is not None and str(c) != "")


class Counter:
    """A monotonically adjustable count."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    @property
    def count(self) -> int:
        return self._count


class Gauge:
    """An instantaneous reading taken from a callable each time it is read."""

    def __init__(self, fn: Callable[[], Any]):
        self._fn = fn

    @property
    def value(self) -> Any:
        return self._fn()


class Histogram:
    """Distribution of values over a sliding window of the latest updates."""

    def __init__(self, reservoir_size: int = DEFAULT_RESERVOIR_SIZE):
        if reservoir_size <= 0:
            raise ValueError(f"Invalid reservoir_size: {reservoir_size}")
        self._window: deque = deque(maxlen=reservoir_size)
        self._count = 0
        self._lock = threading.Lock()

    def update(self, value: Union[int, float]) -> None:
        with self._lock:
            self._count += 1
            self._window.append(value)

    @property
    def count(self) -> int:
        return self._count

    def snapshot(self) -> Snapshot:
        with self._lock:
            values = list(self._window)
        return Snapshot(values)


class EWMA:
    """Exponentially-weighted moving average of an event rate.

    Updates are accumulated and folded into the average once per
    ``TICK_INTERVAL_S``, matching the load-average style 1, 5 and 15 minute
    rates.
    """

    TICK_INTERVAL_S = 5

    def __init__(self, alpha: float, interval_s: float = TICK_INTERVAL_S):
        self.alpha = alpha
        self._interval_ns = interval_s * TimeUnit.SECONDS.nanos
        self._uncounted = 0
        self._rate = 0.0  # events per nanosecond
        self._initialized = False
        self._lock = threading.Lock()

    @classmethod
    def for_minutes(cls, minutes: int) -> "EWMA":
        return cls(1 - math.exp(-cls.TICK_INTERVAL_S / 60.0 / minutes))

    @classmethod
    def one_minute(cls) -> "EWMA":
        return cls.for_minutes(1)

    @classmethod
    def five_minute(cls) -> "EWMA":
        return cls.for_minutes(5)

    @classmethod
    def fifteen_minute(cls) -> "EWMA":
        return cls.for_minutes(15)

    def update(self, n: int) -> None:
        with self._lock:
            self._uncounted += n

    def tick(self) -> None:
        with self._lock:
            count = self._uncounted
            self._uncounted = 0
            instant_rate = count / self._interval_ns
            if self._initialized:
                self._rate += self.alpha * (instant_rate - self._rate)
            else:
                self._rate = instant_rate
                self._initialized = True

    def rate(self, unit: TimeUnit = TimeUnit.SECONDS) -> float:
        return self._rate * unit.nanos


class Meter:
    """Marks events and tracks their mean and moving-average rates."""

    TICK_INTERVAL_NS = EWMA.TICK_INTERVAL_S * TimeUnit.SECONDS.nanos

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self._m1 = EWMA.one_minute()
        self._m5 = EWMA.five_minute()
        self._m15 = EWMA.fifteen_minute()
        self._count = 0
        self._start_time = self.clock.tick()
        self._last_tick = self._start_time
        self._lock = threading.Lock()

    def mark(self, n: int = 1) -> None:
        self._tick_if_necessary()
        with self._lock:
            self._count += n
        self._m1.update(n)
        self._m5.update(n)
        self._m15.update(n)

    def _tick_if_necessary(self) -> None:
        with self._lock:
            new_tick = self.clock.tick()
            age = new_tick - self._last_tick
            if age <= self.TICK_INTERVAL_NS:
                return
            self._last_tick = new_tick - age % self.TICK_INTERVAL_NS
            required_ticks = age // self.TICK_INTERVAL_NS
        for _ in range(required_ticks):
            self._m1.tick()
            self._m5.tick()
            self._m15.tick()

    @property
    def count(self) -> int:
        return self._count

    @property
    def mean_rate(self) -> float:
        """Events per second since the meter was created."""
        if self._count == 0:
            return 0.0
        elapsed = self.clock.tick() - self._start_time
        if elapsed <= 0:
            return 0.0
        return self._count / elapsed * TimeUnit.SECONDS.nanos

    @property
    def one_minute_rate(self) -> float:
        self._tick_if_necessary()
        return self._m1.rate(TimeUnit.SECONDS)

    @property
    def five_minute_rate(self) -> float:
        self._tick_if_necessary()
        return self._m5.rate(TimeUnit.SECONDS)

    @property
    def fifteen_minute_rate(self) -> float:
        self._tick_if_necessary()
        return self._m15.rate(TimeUnit.SECONDS)


class Timer:
    """A meter of events plus a histogram of their durations in nanoseconds."""

    def __init__(self, clock: Optional[Clock] = None, reservoir_size: int = DEFAULT_RESERVOIR_SIZE):
        self.clock = clock or Clock()
        self._meter = Meter(self.clock)
        self._histogram = Histogram(reservoir_size)

    def update(self, duration: float, unit: TimeUnit = TimeUnit.NANOSECONDS) -> None:
        """Record a duration. Negative durations are ignored."""
        if duration < 0:
            return
        self._histogram.update(unit.to_nanos(duration))
        self._meter.mark()

    @contextmanager
    def time(self) -> Iterator[None]:
        """Time the enclosed block."""
        start = self.clock.tick()
        try:
            yield
        finally:
            self.update(self.clock.tick() - start, TimeUnit.NANOSECONDS)

    def snapshot(self) -> Snapshot:
        return self._histogram.snapshot()

    @property
    def count(self) -> int:
        return self._histogram.count

    @property
    def mean_rate(self) -> float:
        return self._meter.mean_rate

    @property
    def one_minute_rate(self) -> float:
        return self._meter.one_minute_rate

    @property
    def five_minute_rate(self) -> float:
        return self._meter.five_minute_rate

    @property
    def fifteen_minute_rate(self) -> float:
        return self._meter.fifteen_minute_rate


Metric = Union[Counter, Gauge, Histogram, Meter, Timer]
MetricPredicate = Callable[[str, Metric], bool]


class MetricFilter:
    """Factories for ``(name, metric) -> bool`` predicates."""

    @staticmethod
    def ALL(name: str, metric: Metric) -> bool:
        return True

    @staticmethod
    def from_patterns(patterns: Iterable[str], color: str = "black") -> MetricPredicate:
        """Build a predicate from regular expressions.

        With ``color="white"`` only names matching one of the patterns are
        kept; with ``color="black"`` matching names are dropped.
        """
        if color not in ("white", "black"):
            raise ValueError(f"Invalid filter color: {color} (must be white/black)")
        compiled = [re.compile(p) for p in patterns]
        keep_matches = color == "white"

        def predicate(name: str, metric: Metric) -> bool:
            matched = any(p.search(name) for p in compiled)
            return matched if keep_matches else not matched

        return predicate


class MetricRegistry:
    """A named collection of metric instruments."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self._metrics: Dict[str, Metric] = {}
        self._lock = threading.RLock()

    def register(self, metric_name: str, metric: Metric) -> Metric:
        with self._lock:
            if metric_name in self._metrics:
                raise ValueError(f"A metric named {metric_name} already exists")
            self._metrics[metric_name] = metric
        logger.debug(f"Registered {type(metric).__name__} {metric_name}")
        return metric

    def remove(self, metric_name: str) -> bool:
        with self._lock:
            return self._metrics.pop(metric_name, None) is not None

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._metrics)

    def _get_or_add(self, metric_name: str, metric_type: type, factory: Callable[[], Metric]) -> Metric:
        with self._lock:
            existing = self._metrics.get(metric_name)
            if existing is None:
                return self.register(metric_name, factory())
            if not isinstance(existing, metric_type):
                raise ValueError(f"{metric_name} is already used for a different type of metric")
            return existing

    def counter(self, metric_name: str) -> Counter:
        return self._get_or_add(metric_name, Counter, Counter)

    def histogram(self, metric_name: str) -> Histogram:
        return self._get_or_add(metric_name, Histogram, Histogram)

    def meter(self, metric_name: str) -> Meter:
        return self._get_or_add(metric_name, Meter, lambda: Meter(self.clock))

    def timer(self, metric_name: str) -> Timer:
        return self._get_or_add(metric_name, Timer, lambda: Timer(self.clock))

    def gauge(self, metric_name: str, fn: Callable[[], Any]) -> Gauge:
        return self.register(metric_name, Gauge(fn))

    def _get_metrics(self, metric_type: type, metric_filter: Optional[MetricPredicate]) -> Dict[str, Metric]:
        metric_filter = metric_filter or MetricFilter.ALL
        with self._lock:
            items = sorted(self._metrics.items())
        return {
            metric_name: metric
            for metric_name, metric in items
            if isinstance(metric, metric_type) and metric_filter(metric_name, metric)
        }

    def get_gauges(self, metric_filter: Optional[MetricPredicate] = None) -> Dict[str, Gauge]:
        return self._get_metrics(Gauge, metric_filter)

    def get_counters(self, metric_filter: Optional[MetricPredicate] = None) -> Dict[str, Counter]:
        return self._get_metrics(Counter, metric_filter)

    def get_histograms(self, metric_filter: Optional[MetricPredicate] = None) -> Dict[str, Histogram]:
        return self._get_metrics(Histogram, metric_filter)

    def get_meters(self, metric_filter: Optional[MetricPredicate] = None) -> Dict[str, Meter]:
        return self._get_metrics(Meter, metric_filter)

    def get_timers(self, metric_filter: Optional[MetricPredicate] = None) -> Dict[str, Timer]:
        return self._get_metrics(Timer, metric_filter)
