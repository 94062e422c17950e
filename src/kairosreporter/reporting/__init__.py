"""Metric reporting module."""

from .kairosdb_reporter import TAG_PATTERN, KairosDbReporter, validate_tag
from .scheduled import ScheduledReporter

__all__ = ["KairosDbReporter", "ScheduledReporter", "TAG_PATTERN", "validate_tag"]
