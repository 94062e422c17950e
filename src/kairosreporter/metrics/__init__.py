"""In-process metrics registry module."""

from .models import Clock, Snapshot, TimeUnit
from .registry import (
    EWMA,
    Counter,
    Gauge,
    Histogram,
    Meter,
    MetricFilter,
    MetricRegistry,
    Timer,
    name,
)

__all__ = [
    "Clock",
    "Counter",
    "EWMA",
    "Gauge",
    "Histogram",
    "Meter",
    "MetricFilter",
    "MetricRegistry",
    "Snapshot",
    "TimeUnit",
    "Timer",
    "name",
]
