"""Base class for reporters that publish a registry on a fixed period."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..metrics import Counter, Gauge, Histogram, Meter, MetricFilter, MetricRegistry, TimeUnit, Timer
from ..metrics.registry import MetricPredicate

logger = logging.getLogger(__name__)


class ScheduledReporter(ABC):
    """Polls a metric registry and hands each type of metric to ``report_metrics``.

    Subclasses implement the delivery. ``start`` runs ``report`` on a daemon
    thread; ticks run one after another, never concurrently.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        name: str,
        metric_filter: Optional[MetricPredicate] = None,
        rate_unit: TimeUnit = TimeUnit.SECONDS,
        duration_unit: TimeUnit = TimeUnit.MILLISECONDS,
    ):
        self.registry = registry
        self.name = name
        self.metric_filter = metric_filter or MetricFilter.ALL
        self.rate_unit = rate_unit
        self.duration_unit = duration_unit

        self._rate_factor = rate_unit.seconds
        self._duration_nanos = duration_unit.nanos

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def report(self) -> None:
        """Report the current values of all metrics passing the filter."""
        self.report_metrics(
            self.registry.get_gauges(self.metric_filter),
            self.registry.get_counters(self.metric_filter),
            self.registry.get_histograms(self.metric_filter),
            self.registry.get_meters(self.metric_filter),
            self.registry.get_timers(self.metric_filter),
        )

    @abstractmethod
    def report_metrics(
        self,
        gauges: Dict[str, Gauge],
        counters: Dict[str, Counter],
        histograms: Dict[str, Histogram],
        meters: Dict[str, Meter],
        timers: Dict[str, Timer],
    ) -> None:
        """Deliver one snapshot of the registry."""

    def start(self, period: float, unit: TimeUnit = TimeUnit.SECONDS) -> None:
        """Report every ``period`` units until ``stop`` is called."""
        if self._thread is not None:
            raise RuntimeError(f"Reporter {self.name} already started")
        interval_s = period * unit.seconds
        if interval_s <= 0:
            raise ValueError(f"Invalid reporting period: {period} {unit.name}")

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, args=(interval_s,), name=self.name, daemon=True
        )
        self._thread.start()
        logger.info(f"Reporter {self.name} started (period: {interval_s}s)")

    def _run(self, interval_s: float) -> None:
        while not self._stop_event.wait(interval_s):
            try:
                self.report()
            except Exception as e:
                logger.error(f"Error in reporter {self.name}: {e}", exc_info=True)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the schedule and wait for a running tick to finish."""
        thread, self._thread = self._thread, None
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout)
        logger.info(f"Reporter {self.name} stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def convert_rate(self, rate: float) -> float:
        """Convert an events-per-second rate to events per ``rate_unit``."""
        return rate * self._rate_factor

    def convert_duration(self, duration_ns: float) -> float:
        """Convert nanoseconds to ``duration_unit``."""
        return duration_ns / self._duration_nanos

    def __enter__(self) -> "ScheduledReporter":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()
