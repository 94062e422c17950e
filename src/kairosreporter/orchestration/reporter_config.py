"""Configured setup of a KairosDB reporter from a YAML or JSON file."""

import json
import logging
from pprint import pformat
from typing import Any, Dict, Optional

import yaml

from ..metrics import MetricFilter, MetricRegistry, TimeUnit
from ..reporting import KairosDbReporter
from ..transport import KairosDb, KairosDbClient
from ..utils.config_validator import ConfigurationError, ReporterConfigValidator
from ..utils.host_tags import resolve_tags

logger = logging.getLogger(__name__)


class KairosDbReporterConfig:
    """Builds a KairosDB client and reporter from configuration and starts it.

    The configuration mapping holds a ``kairosdb`` section::

        kairosdb:
          hosts: ["localhost:4242"]
          period: 60
          timeunit: SECONDS
          prefix: myapp
          tags: {host: "${host.name}"}
          predicate: {color: black, patterns: ["^debug\\."]}
    """

    def __init__(self, config_data: Dict[str, Any], client: Optional[KairosDbClient] = None):
        """Initialize from a configuration mapping.

        Args:
            config_data: Complete reporter configuration dictionary
            client: Transport client to use instead of a ``KairosDb`` built
                from the configured host
        """
        self.config = config_data
        self._validate_config()

        section = self.config["kairosdb"]
        self.hosts = section["hosts"]
        self.period = section["period"]
        self.timeunit = TimeUnit.parse(section.get("timeunit", "SECONDS"))
        self.rate_unit = TimeUnit.parse(section.get("rate_unit", "SECONDS"))
        self.duration_unit = TimeUnit.parse(section.get("duration_unit", "MILLISECONDS"))
        self.prefix = section.get("prefix")
        self.tags = resolve_tags(section.get("tags") or {})
        self.timeout = section.get("timeout")

        self.kairosdb_client = client
        self.reporter: Optional[KairosDbReporter] = None

        logger.info("KairosDbReporterConfig initialized")

    def _validate_config(self) -> None:
        """Validate the configuration, raising ConfigurationError on any error."""
        if not isinstance(self.config, dict):
            raise ConfigurationError("Configuration must be a mapping")

        is_valid, errors = ReporterConfigValidator.validate(self.config)
        if not is_valid:
            raise ConfigurationError("; ".join(errors))

        logger.debug(f"Configuration: {pformat(self.config)}")

    def create_client(self) -> KairosDbClient:
        """Create a client for the first configured host."""
        host = self.hosts[0]
        return KairosDb(host["host"], host["port"], timeout=self.timeout)

    def metric_filter(self):
        predicate = self.config["kairosdb"].get("predicate")
        if not predicate:
            return MetricFilter.ALL
        return MetricFilter.from_patterns(
            predicate.get("patterns", []), predicate.get("color", "black")
        )

    def build_reporter(self, registry: MetricRegistry) -> KairosDbReporter:
        """Build (without starting) a reporter for ``registry``."""
        if self.kairosdb_client is None:
            self.kairosdb_client = self.create_client()

        return (
            KairosDbReporter.for_registry(registry)
            .prefixed_with(self.prefix)
            .convert_rates_to(self.rate_unit)
            .convert_durations_to(self.duration_unit)
            .filter(self.metric_filter())
            .with_tags(self.tags)
            .build(self.kairosdb_client)
        )

    def enable(self, registry: MetricRegistry) -> bool:
        """Check connectivity, then start reporting ``registry`` on the configured period.

        Returns:
            True if the reporter was started, False if the host was unreachable
        """
        reporter = self.build_reporter(registry)

        try:
            connect_info = self.kairosdb_client.connect()
        except OSError as e:
            logger.error(f"Cannot connect to KairosDB host {self.kairosdb_client}: {e}")
            return False
        finally:
            try:
                self.kairosdb_client.close()
            except OSError as e:
                logger.debug(f"Error disconnecting from server {self.kairosdb_client}: {e}")

        reporter.start(self.period, self.timeunit)
        self.reporter = reporter
        logger.info(f"KairosDB reporter is started. Metrics will be sent to {connect_info}")
        return True

    def disable(self) -> None:
        """Stop the running reporter, if any."""
        if self.reporter is not None:
            self.reporter.stop()
            self.reporter = None

    @classmethod
    def from_yaml_file(cls, config_path: str, client: Optional[KairosDbClient] = None) -> "KairosDbReporterConfig":
        """Create a reporter config from a YAML configuration file.

        Args:
            config_path: Path to YAML configuration file
            client: Optional transport client override

        Returns:
            KairosDbReporterConfig instance
        """
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f)

        return cls(config_data, client=client)

    @classmethod
    def from_json_file(cls, config_path: str, client: Optional[KairosDbClient] = None) -> "KairosDbReporterConfig":
        """Create a reporter config from a JSON configuration file.

        Args:
            config_path: Path to JSON configuration file
            client: Optional transport client override

        Returns:
            KairosDbReporterConfig instance
        """
        with open(config_path, "r") as f:
            config_data = json.load(f)

        return cls(config_data, client=client)
