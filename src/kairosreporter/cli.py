"""Command-line interface for kairosreporter."""

import logging
import sys
import threading
import time
from pathlib import Path

import click
import yaml

from kairosreporter.metrics import MetricRegistry, name
from kairosreporter.orchestration import KairosDbReporterConfig
from kairosreporter.utils.config_validator import ConfigurationError, validate_and_fix_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

EXAMPLE_CONFIG = {
    "kairosdb": {
        "hosts": ["localhost:4242"],
        "period": 60,
        "timeunit": "SECONDS",
        "prefix": "myapp",
        "rate_unit": "SECONDS",
        "duration_unit": "MILLISECONDS",
        "tags": {"host": "${host.name.short}"},
        "predicate": {"color": "black", "patterns": []},
    }
}

log_level_option = click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    help="Logging level"
)


def _load(config_file: str) -> KairosDbReporterConfig:
    if Path(config_file).suffix == ".json":
        return KairosDbReporterConfig.from_json_file(config_file)
    return KairosDbReporterConfig.from_yaml_file(config_file)


def register_process_gauges(registry: MetricRegistry) -> None:
    """Register gauges describing the running reporter process."""
    started = time.monotonic()
    registry.gauge(name("process", "uptime_s"), lambda: time.monotonic() - started)
    registry.gauge(name("process", "threads"), threading.active_count)


@click.group()
@click.version_option(version="0.1.0", prog_name="kairosreporter")
def cli():
    """kairosreporter: publish metrics to KairosDB over the telnet protocol."""
    pass


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option(
    "--ticks", "-n", type=click.IntRange(min=1), default=None,
    help="Stop after this many reports (default: run until interrupted)"
)
@log_level_option
def run(config_file: str, ticks: int, log_level: str):
    """Report process metrics to KairosDB on the configured schedule."""
    logging.getLogger().setLevel(getattr(logging, log_level))

    click.echo(f"Loading configuration from {config_file}...")

    try:
        reporter_config = _load(config_file)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    registry = MetricRegistry()
    register_process_gauges(registry)
    interval_s = reporter_config.period * reporter_config.timeunit.seconds

    if ticks:
        reporter = reporter_config.build_reporter(registry)
        for _ in range(ticks):
            time.sleep(interval_s)
            reporter.report()
        click.echo(f"Sent {ticks} reports to {reporter_config.kairosdb_client}")
        return

    if not reporter_config.enable(registry):
        click.echo("Error: KairosDB host is unreachable", err=True)
        sys.exit(1)

    click.echo(f"Reporting every {interval_s:g}s, press Ctrl-C to stop")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("\nStopping reporter...")
    finally:
        reporter_config.disable()


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.argument("metric")
@click.argument("value", type=float)
@click.option(
    "--timestamp", "-t", type=int, default=None,
    help="Sample timestamp in epoch milliseconds (default: now)"
)
@log_level_option
def send(config_file: str, metric: str, value: float, timestamp: int, log_level: str):
    """Send a single METRIC VALUE sample using the configured host, prefix and tags."""
    logging.getLogger().setLevel(getattr(logging, log_level))

    try:
        reporter_config = _load(config_file)
        registry = MetricRegistry()
        reporter = reporter_config.build_reporter(registry)
        client = reporter_config.kairosdb_client
        if timestamp is None:
            timestamp = reporter.clock.time()
        sample = int(value) if value.is_integer() else value

        client.connect()
        try:
            client.send(name(reporter_config.prefix, metric), sample, timestamp)
        finally:
            client.close()

        click.echo(f"Sent {name(reporter_config.prefix, metric)}={sample} to {client}")

    except (ConfigurationError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option(
    "--output", "-o", default="kairosdb_reporter.yaml",
    help="Output file path"
)
@click.option(
    "--format", "-f", type=click.Choice(["yaml", "json"]), default="yaml",
    help="Configuration file format"
)
def generate_config(output: str, format: str):
    """Generate an example configuration file."""
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if format == "yaml":
        with open(output_path, "w") as f:
            yaml.dump(EXAMPLE_CONFIG, f, default_flow_style=False, sort_keys=False)
    else:
        import json
        with open(output_path, "w") as f:
            json.dump(EXAMPLE_CONFIG, f, indent=2)

    click.echo(f"Generated example configuration at {output_path}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def validate(config_file: str):
    """Validate a configuration file without connecting."""
    click.echo(f"Validating configuration: {config_file}")

    try:
        is_valid, errors, _ = validate_and_fix_config(config_file)

        if is_valid:
            click.echo(click.style("✓ Configuration is valid", fg="green"))
        else:
            click.echo(click.style(f"✗ Configuration has {len(errors)} errors:", fg="red"))
            for i, error in enumerate(errors[:20], 1):
                click.echo(f"  {i}. {error}")
            if len(errors) > 20:
                click.echo(f"  ... and {len(errors) - 20} more errors")

        sys.exit(0 if is_valid else 1)

    except (OSError, ValueError, yaml.YAMLError) as e:
        click.echo(click.style(f"Error validating configuration: {e}", fg="red"))
        sys.exit(1)


if __name__ == "__main__":
    cli()
