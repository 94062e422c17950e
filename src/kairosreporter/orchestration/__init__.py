"""Reporter setup from configuration files."""

from .reporter_config import KairosDbReporterConfig

__all__ = ["KairosDbReporterConfig"]
