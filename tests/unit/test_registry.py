"""Unit tests for the in-process metrics registry."""

import math

import pytest

from kairosreporter.metrics import (
    EWMA,
    Clock,
    Counter,
    Gauge,
    Histogram,
    Meter,
    MetricFilter,
    MetricRegistry,
    Snapshot,
    TimeUnit,
    Timer,
    name,
)


class FakeClock(Clock):
    """Clock whose monotonic tick is set by the test."""

    def __init__(self):
        self.tick_ns = 0

    def time(self):
        return 0

    def tick(self):
        return self.tick_ns


class TestName:
    """Test dotted metric name construction."""

    def test_joins_components(self):
        assert name("app", "requests", "count") == "app.requests.count"

    def test_skips_empty_and_none(self):
        assert name(None, "requests", "", "count") == "requests.count"
        assert name(None, "gauge") == "gauge"

    def test_all_empty(self):
        assert name(None, "") == ""


class TestTimeUnit:

    def test_parse(self):
        assert TimeUnit.parse("seconds") is TimeUnit.SECONDS
        assert TimeUnit.parse(" MILLISECONDS ") is TimeUnit.MILLISECONDS
        assert TimeUnit.parse(TimeUnit.DAYS) is TimeUnit.DAYS

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown time unit"):
            TimeUnit.parse("fortnights")

    def test_conversion(self):
        assert TimeUnit.SECONDS.to_nanos(2) == 2_000_000_000
        assert TimeUnit.MINUTES.seconds == 60.0
        assert TimeUnit.MILLISECONDS.seconds == 0.001


class TestSnapshot:
    """Test snapshot statistics."""

    def test_empty_snapshot(self):
        snapshot = Snapshot([])
        assert snapshot.min == 0.0
        assert snapshot.max == 0.0
        assert snapshot.mean == 0.0
        assert snapshot.stddev == 0.0
        assert snapshot.median == 0.0
        assert snapshot.p999 == 0.0

    def test_single_value(self):
        snapshot = Snapshot([5])
        assert snapshot.min == snapshot.max == snapshot.mean == snapshot.median == 5.0
        assert snapshot.stddev == 0.0

    def test_sample_standard_deviation(self):
        snapshot = Snapshot([2000, 10000])
        assert snapshot.mean == 6000.0
        assert snapshot.stddev == pytest.approx(math.sqrt(32_000_000))

    def test_quantiles(self):
        snapshot = Snapshot(range(1, 6))
        # rank = q * (n + 1), clamped to the ends
        assert snapshot.median == 3.0
        assert snapshot.p75 == 4.5
        assert snapshot.get_value(0.0) == 1.0
        assert snapshot.get_value(1.0) == 5.0
        assert snapshot.p99 == 5.0

    def test_unsorted_input(self):
        snapshot = Snapshot([5, 1, 3])
        assert snapshot.min == 1.0
        assert snapshot.max == 5.0
        assert list(snapshot.values) == [1.0, 3.0, 5.0]

    def test_invalid_quantile(self):
        with pytest.raises(ValueError):
            Snapshot([1]).get_value(1.5)


class TestInstruments:
    """Test counters, gauges, histograms, meters and timers."""

    def test_counter(self):
        counter = Counter()
        counter.inc()
        counter.inc(5)
        counter.dec(2)
        assert counter.count == 4

    def test_gauge_reads_each_time(self):
        values = iter([1, 2])
        gauge = Gauge(lambda: next(values))
        assert gauge.value == 1
        assert gauge.value == 2

    def test_histogram_window(self):
        histogram = Histogram(reservoir_size=3)
        for value in [1, 2, 3, 4, 5]:
            histogram.update(value)
        assert histogram.count == 5
        assert list(histogram.snapshot().values) == [3.0, 4.0, 5.0]

    def test_histogram_invalid_size(self):
        with pytest.raises(ValueError):
            Histogram(reservoir_size=0)

    def test_ewma_first_tick_sets_rate(self):
        ewma = EWMA.one_minute()
        ewma.update(5)
        ewma.tick()
        assert ewma.rate(TimeUnit.SECONDS) == pytest.approx(1.0)

    def test_ewma_decays(self):
        ewma = EWMA.one_minute()
        ewma.update(5)
        ewma.tick()
        for _ in range(12):
            ewma.tick()
        # One minute of silence decays the one-minute rate by 1/e
        assert ewma.rate(TimeUnit.SECONDS) == pytest.approx(math.exp(-1), rel=1e-6)

    def test_meter_rates(self):
        clock = FakeClock()
        meter = Meter(clock)
        meter.mark(10)
        clock.tick_ns = 5 * TimeUnit.SECONDS.nanos + 1

        assert meter.count == 10
        assert meter.mean_rate == pytest.approx(2.0)
        assert meter.one_minute_rate == pytest.approx(2.0)
        assert meter.five_minute_rate == pytest.approx(2.0)
        assert meter.fifteen_minute_rate == pytest.approx(2.0)

    def test_meter_without_events(self):
        meter = Meter(FakeClock())
        assert meter.mean_rate == 0.0
        assert meter.one_minute_rate == 0.0

    def test_timer_update(self):
        timer = Timer(FakeClock())
        timer.update(10, TimeUnit.SECONDS)
        timer.update(2, TimeUnit.SECONDS)
        timer.update(-1, TimeUnit.SECONDS)

        assert timer.count == 2
        assert timer.snapshot().max == 10_000_000_000

    def test_timer_context_manager(self):
        clock = FakeClock()
        timer = Timer(clock)

        with timer.time():
            clock.tick_ns += 3 * TimeUnit.MILLISECONDS.nanos

        assert timer.count == 1
        assert timer.snapshot().max == 3_000_000


class TestMetricRegistry:
    """Test registration and lookup."""

    def test_get_or_create(self):
        registry = MetricRegistry()
        assert registry.counter("a") is registry.counter("a")
        assert registry.timer("t") is registry.timer("t")

    def test_type_conflict(self):
        registry = MetricRegistry()
        registry.counter("a")
        with pytest.raises(ValueError, match="different type"):
            registry.meter("a")

    def test_duplicate_register(self):
        registry = MetricRegistry()
        registry.gauge("g", lambda: 1)
        with pytest.raises(ValueError, match="already exists"):
            registry.gauge("g", lambda: 2)

    def test_remove(self):
        registry = MetricRegistry()
        registry.counter("a")
        assert registry.remove("a")
        assert not registry.remove("a")
        assert registry.names() == []

    def test_sorted_accessors(self):
        registry = MetricRegistry()
        registry.counter("b")
        registry.counter("a")
        registry.meter("c")
        assert list(registry.get_counters()) == ["a", "b"]
        assert list(registry.get_meters()) == ["c"]
        assert registry.get_timers() == {}
        assert registry.names() == ["a", "b", "c"]

    def test_filtered_accessors(self):
        registry = MetricRegistry()
        registry.counter("jvm.threads")
        registry.counter("app.requests")
        blacklist = MetricFilter.from_patterns([r"^jvm\."], color="black")
        assert list(registry.get_counters(blacklist)) == ["app.requests"]


class TestMetricFilter:

    def test_all(self):
        assert MetricFilter.ALL("anything", Counter())

    def test_whitelist(self):
        predicate = MetricFilter.from_patterns(["requests"], color="white")
        assert predicate("app.requests", Counter())
        assert not predicate("app.errors", Counter())

    def test_invalid_color(self):
        with pytest.raises(ValueError):
            MetricFilter.from_patterns([], color="grey")
