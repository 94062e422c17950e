"""Reporter that publishes registry values to a KairosDB server."""

import logging
import re
from numbers import Real
from typing import Dict, Optional

from ..metrics import Clock, Counter, Gauge, Histogram, Meter, MetricFilter, MetricRegistry, TimeUnit, Timer, name
from ..metrics.registry import MetricPredicate
from ..transport import KairosDbClient
from .scheduled import ScheduledReporter

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"[A-Za-z0-9._/-]+")


def validate_tag(tag: Optional[str]) -> None:
    """Raise ValueError unless ``tag`` is a valid tag name or value."""
    if tag is None or not TAG_PATTERN.fullmatch(tag):
        raise ValueError(
            f'"{tag}" is not a valid tag name or value; it can only contain '
            "alphanumeric characters, period, slash, dash and underscore!"
        )


class KairosDbReporter(ScheduledReporter):
    """A reporter which publishes metric values to a KairosDB server.

    Each tick opens a connection, writes one line per sample and closes the
    connection again. If the server cannot be reached the tick is skipped;
    the next tick tries again.
    """

    class Builder:
        """Builder for :class:`KairosDbReporter` instances.

        Defaults to no prefix, the default clock, rates in events/second,
        durations in milliseconds, no tags and no filtering.
        """

        def __init__(self, registry: MetricRegistry):
            self.registry = registry
            self.clock = Clock()
            self.prefix: Optional[str] = None
            self.rate_unit = TimeUnit.SECONDS
            self.duration_unit = TimeUnit.MILLISECONDS
            self.metric_filter: MetricPredicate = MetricFilter.ALL
            self.tags: Dict[str, str] = {}

        def with_clock(self, clock: Clock) -> "KairosDbReporter.Builder":
            self.clock = clock
            return self

        def prefixed_with(self, prefix: Optional[str]) -> "KairosDbReporter.Builder":
            self.prefix = prefix
            return self

        def convert_rates_to(self, rate_unit: TimeUnit) -> "KairosDbReporter.Builder":
            self.rate_unit = TimeUnit.parse(rate_unit)
            return self

        def convert_durations_to(self, duration_unit: TimeUnit) -> "KairosDbReporter.Builder":
            self.duration_unit = TimeUnit.parse(duration_unit)
            return self

        def filter(self, metric_filter: MetricPredicate) -> "KairosDbReporter.Builder":
            self.metric_filter = metric_filter
            return self

        def with_tag(self, tag_name: str, tag_value: str) -> "KairosDbReporter.Builder":
            """Add a tag to every sample.

            Both name and value must match ``[A-Za-z0-9._/-]+``.
            """
            validate_tag(tag_name)
            validate_tag(tag_value)
            self.tags[tag_name] = tag_value
            return self

        def with_tags(self, tags: Dict[str, str]) -> "KairosDbReporter.Builder":
            for tag_name, tag_value in tags.items():
                self.with_tag(tag_name, tag_value)
            return self

        def build(self, client: KairosDbClient) -> "KairosDbReporter":
            client.set_tags(self.tags)
            return KairosDbReporter(
                self.registry,
                client,
                clock=self.clock,
                prefix=self.prefix,
                rate_unit=self.rate_unit,
                duration_unit=self.duration_unit,
                metric_filter=self.metric_filter,
            )

    @classmethod
    def for_registry(cls, registry: MetricRegistry) -> "KairosDbReporter.Builder":
        return cls.Builder(registry)

    def __init__(
        self,
        registry: MetricRegistry,
        client: KairosDbClient,
        clock: Optional[Clock] = None,
        prefix: Optional[str] = None,
        rate_unit: TimeUnit = TimeUnit.SECONDS,
        duration_unit: TimeUnit = TimeUnit.MILLISECONDS,
        metric_filter: Optional[MetricPredicate] = None,
    ):
        super().__init__(registry, "kairosdb-reporter", metric_filter, rate_unit, duration_unit)
        self.client = client
        self.clock = clock or Clock()
        self.prefix = prefix

    def report_metrics(
        self,
        gauges: Dict[str, Gauge],
        counters: Dict[str, Counter],
        histograms: Dict[str, Histogram],
        meters: Dict[str, Meter],
        timers: Dict[str, Timer],
    ) -> None:
        timestamp = self.clock.time()

        try:
            self.client.connect()

            for metric_name, gauge in gauges.items():
                self._report_gauge(metric_name, gauge, timestamp)

            for metric_name, counter in counters.items():
                self._report_counter(metric_name, counter, timestamp)

            for metric_name, histogram in histograms.items():
                self._report_histogram(metric_name, histogram, timestamp)

            for metric_name, meter in meters.items():
                self._report_metered(metric_name, meter, timestamp)

            for metric_name, timer in timers.items():
                self._report_timer(metric_name, timer, timestamp)
        except OSError as e:
            logger.warning(f"Unable to report to server {self.client}: {e}")
        finally:
            try:
                self.client.close()
            except OSError as e:
                logger.debug(f"Error disconnecting from server {self.client}: {e}")

    def _report_timer(self, metric_name: str, timer: Timer, timestamp: int) -> None:
        snapshot = timer.snapshot()
        send = self.client.send
        convert = self.convert_duration

        send(self._name(metric_name, "max"), convert(snapshot.max), timestamp)
        send(self._name(metric_name, "mean"), convert(snapshot.mean), timestamp)
        send(self._name(metric_name, "min"), convert(snapshot.min), timestamp)
        send(self._name(metric_name, "stddev"), convert(snapshot.stddev), timestamp)
        send(self._name(metric_name, "p50"), convert(snapshot.median), timestamp)
        send(self._name(metric_name, "p75"), convert(snapshot.p75), timestamp)
        send(self._name(metric_name, "p95"), convert(snapshot.p95), timestamp)
        send(self._name(metric_name, "p98"), convert(snapshot.p98), timestamp)
        send(self._name(metric_name, "p99"), convert(snapshot.p99), timestamp)
        send(self._name(metric_name, "p999"), convert(snapshot.p999), timestamp)

        self._report_metered(metric_name, timer, timestamp)

    def _report_metered(self, metric_name: str, meter, timestamp: int) -> None:
        send = self.client.send
        convert = self.convert_rate

        send(self._name(metric_name, "count"), meter.count, timestamp)
        send(self._name(metric_name, "m1_rate"), convert(meter.one_minute_rate), timestamp)
        send(self._name(metric_name, "m5_rate"), convert(meter.five_minute_rate), timestamp)
        send(self._name(metric_name, "m15_rate"), convert(meter.fifteen_minute_rate), timestamp)
        send(self._name(metric_name, "mean_rate"), convert(meter.mean_rate), timestamp)

    def _report_histogram(self, metric_name: str, histogram: Histogram, timestamp: int) -> None:
        snapshot = histogram.snapshot()
        send = self.client.send

        send(self._name(metric_name, "count"), histogram.count, timestamp)
        send(self._name(metric_name, "max"), snapshot.max, timestamp)
        send(self._name(metric_name, "mean"), snapshot.mean, timestamp)
        send(self._name(metric_name, "min"), snapshot.min, timestamp)
        send(self._name(metric_name, "stddev"), snapshot.stddev, timestamp)
        send(self._name(metric_name, "p50"), snapshot.median, timestamp)
        send(self._name(metric_name, "p75"), snapshot.p75, timestamp)
        send(self._name(metric_name, "p95"), snapshot.p95, timestamp)
        send(self._name(metric_name, "p98"), snapshot.p98, timestamp)
        send(self._name(metric_name, "p99"), snapshot.p99, timestamp)
        send(self._name(metric_name, "p999"), snapshot.p999, timestamp)

    def _report_counter(self, metric_name: str, counter: Counter, timestamp: int) -> None:
        self.client.send(self._name(metric_name, "count"), counter.count, timestamp)

    def _report_gauge(self, metric_name: str, gauge: Gauge, timestamp: int) -> None:
        value = gauge.value
        # bool is a Real subclass but not a measurement
        if isinstance(value, Real) and not isinstance(value, bool):
            self.client.send(self._name(metric_name), value, timestamp)

    def _name(self, *components: str) -> str:
        return name(self.prefix, *components)
