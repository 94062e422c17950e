"""Configuration helpers."""

from .config_validator import (
    ConfigurationError,
    HostConfigValidator,
    ReporterConfigValidator,
    load_config,
    validate_and_fix_config,
)
from .host_tags import resolve_host_placeholders, resolve_tags

__all__ = [
    "ConfigurationError",
    "HostConfigValidator",
    "ReporterConfigValidator",
    "load_config",
    "resolve_host_placeholders",
    "resolve_tags",
    "validate_and_fix_config",
]
