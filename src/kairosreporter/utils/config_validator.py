"""
Configuration validation for the KairosDB reporter.

This module provides validation for:
- KairosDB host lists
- Reporting period and time units
- Tags
- Metric filter predicates
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..metrics import TimeUnit
from ..reporting import TAG_PATTERN
from .host_tags import resolve_host_placeholders

logger = logging.getLogger(__name__)

DEFAULT_PORT = 4242


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""
    pass


class HostConfigValidator:
    """Validates and normalizes the list of KairosDB hosts."""

    @classmethod
    def normalize(cls, host_entry: Any) -> Optional[Dict[str, Any]]:
        """Turn ``"host:port"``, ``"host"`` or ``{host, port}`` into ``{host, port}``."""
        if isinstance(host_entry, dict):
            if "host" not in host_entry:
                return None
            if "port" not in host_entry:
                logger.warning(f"Host {host_entry['host']}: Added missing port {DEFAULT_PORT}")
            return {"host": host_entry["host"], "port": host_entry.get("port", DEFAULT_PORT)}

        if isinstance(host_entry, str) and host_entry.strip():
            head, sep, tail = host_entry.strip().rpartition(":")
            if not sep:
                logger.warning(f"Host {host_entry}: Added missing port {DEFAULT_PORT}")
                return {"host": tail, "port": DEFAULT_PORT}
            return {"host": head, "port": tail}

        return None

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> List[str]:
        """Validate ``config['hosts']``, rewriting entries as ``{host, port}`` dicts."""
        errors = []

        hosts = config.get("hosts")
        if not hosts:
            errors.append("No hosts configured for KairosDB reporter")
            return errors
        if not isinstance(hosts, list):
            hosts = [hosts]

        normalized = []
        for i, entry in enumerate(hosts):
            host = cls.normalize(entry)
            if host is None:
                errors.append(f"Host {i}: Cannot parse host entry {entry!r}")
                continue
            try:
                port = int(host["port"])
            except (TypeError, ValueError):
                errors.append(f"Host {host['host']}: Invalid port {host['port']!r}")
                continue
            if not 0 < port < 65536:
                errors.append(f"Host {host['host']}: Port {port} out of range")
                continue
            normalized.append({"host": host["host"], "port": port})

        if len(normalized) > 1:
            first = normalized[0]
            logger.warning(
                f"Multiple hosts specified. Only the first one is used: {first['host']}:{first['port']}"
            )

        config["hosts"] = normalized
        return errors


class ReporterConfigValidator:
    """Validates the ``kairosdb`` section of a reporter configuration."""

    UNIT_FIELDS = ("timeunit", "rate_unit", "duration_unit")

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """Validate a complete reporter configuration."""
        all_errors = []

        if "kairosdb" not in config:
            all_errors.append("Missing top-level field: kairosdb")
            return False, all_errors

        section = config["kairosdb"]
        if not isinstance(section, dict):
            all_errors.append("kairosdb section must be a mapping")
            return False, all_errors

        all_errors.extend(HostConfigValidator.validate(section))
        all_errors.extend(cls._validate_schedule(section))
        all_errors.extend(cls._validate_tags(section.get("tags") or {}))
        all_errors.extend(cls._validate_predicate(section.get("predicate")))

        prefix = section.get("prefix")
        if prefix is not None and not isinstance(prefix, str):
            all_errors.append(f"Invalid prefix: {prefix!r} (must be a string)")

        return len(all_errors) == 0, all_errors

    @classmethod
    def _validate_schedule(cls, section: Dict[str, Any]) -> List[str]:
        """Validate the period and time unit fields."""
        errors = []

        if "period" not in section:
            section["period"] = 60
            logger.warning("Added missing period: 60")
        period = section["period"]
        if not isinstance(period, (int, float)) or isinstance(period, bool) or period <= 0:
            errors.append(f"Invalid period: {period}")

        for field in cls.UNIT_FIELDS:
            if field in section:
                try:
                    TimeUnit.parse(section[field])
                except ValueError:
                    errors.append(f"Invalid {field}: {section[field]}")

        return errors

    @classmethod
    def _validate_tags(cls, tags: Any) -> List[str]:
        """Validate tag names and resolved tag values."""
        errors = []

        if not isinstance(tags, dict):
            errors.append("tags must be a mapping of tag name to value")
            return errors

        for tag_name, tag_value in tags.items():
            if not isinstance(tag_name, str) or not TAG_PATTERN.fullmatch(tag_name):
                errors.append(f'Invalid tag name "{tag_name}"')
            resolved = resolve_host_placeholders(str(tag_value)) if tag_value is not None else ""
            if not TAG_PATTERN.fullmatch(resolved):
                errors.append(f'Tag {tag_name}: Invalid value "{resolved}"')

        return errors

    @classmethod
    def _validate_predicate(cls, predicate: Any) -> List[str]:
        """Validate the metric filter predicate."""
        errors = []

        if predicate is None:
            return errors
        if not isinstance(predicate, dict):
            errors.append("predicate must be a mapping")
            return errors

        color = predicate.get("color", "black")
        if color not in ("white", "black"):
            errors.append(f"Invalid predicate color: {color} (must be white/black)")

        for pattern in predicate.get("patterns", []):
            try:
                re.compile(pattern)
            except (re.error, TypeError) as e:
                errors.append(f"Invalid predicate pattern {pattern!r}: {e}")

        return errors


def load_config(config_path: str) -> Dict[str, Any]:
    """Load a YAML or JSON configuration file."""
    config_file = Path(config_path)

    with open(config_file) as f:
        if config_file.suffix in [".yaml", ".yml"]:
            config = yaml.safe_load(f)
        else:
            config = json.load(f)

    return config or {}


def validate_and_fix_config(config_path: str) -> Tuple[bool, List[str], Optional[Dict[str, Any]]]:
    """
    Load, validate, and attempt to fix a configuration file.

    Returns:
        (is_valid, errors, fixed_config)
    """
    config = load_config(config_path)

    is_valid, errors = ReporterConfigValidator.validate(config)

    if not is_valid:
        logger.warning(f"Configuration has {len(errors)} validation errors")
        for error in errors[:10]:
            logger.warning(f"  - {error}")
        if len(errors) > 10:
            logger.warning(f"  ... and {len(errors) - 10} more errors")

    return is_valid, errors, config
