"""Unit tests for configured reporter setup."""

from unittest.mock import Mock

import pytest
import yaml

from kairosreporter.metrics import MetricRegistry, TimeUnit
from kairosreporter.orchestration import KairosDbReporterConfig
from kairosreporter.transport import KairosDb, KairosDbClient
from kairosreporter.utils.config_validator import ConfigurationError


class RecordingKairosDbClient(KairosDbClient):
    """Client that records samples instead of sending them."""

    def __init__(self):
        self.tags = None
        self.metrics = []

    def set_tags(self, tags):
        self.tags = tags

    def connect(self):
        return "<not connected to a real host>"

    def send(self, name, value, timestamp):
        self.metrics.append((name, value, timestamp))

    def close(self):
        pass


@pytest.fixture
def config_data():
    return {
        "kairosdb": {
            "hosts": ["kairos.example.com:4343"],
            "period": 100,
            "timeunit": "MILLISECONDS",
            "prefix": "myapp",
            "tags": {"host": "myhost"},
        }
    }


class TestKairosDbReporterConfig:
    """Test building clients and reporters from configuration."""

    def test_fields(self, config_data):
        reporter_config = KairosDbReporterConfig(config_data)

        assert reporter_config.period == 100
        assert reporter_config.timeunit is TimeUnit.MILLISECONDS
        assert reporter_config.duration_unit is TimeUnit.MILLISECONDS
        assert reporter_config.rate_unit is TimeUnit.SECONDS
        assert reporter_config.tags == {"host": "myhost"}

    def test_invalid_config_raises(self, config_data):
        config_data["kairosdb"]["tags"] = {"host": "invalid!"}

        with pytest.raises(ConfigurationError, match="invalid!"):
            KairosDbReporterConfig(config_data)

    def test_non_mapping_config_raises(self):
        with pytest.raises(ConfigurationError):
            KairosDbReporterConfig(["not", "a", "mapping"])

    def test_create_client_uses_first_host(self, config_data):
        config_data["kairosdb"]["hosts"].append("ignored:4242")

        client = KairosDbReporterConfig(config_data).create_client()

        assert isinstance(client, KairosDb)
        assert client.address == ("kairos.example.com", 4343)

    def test_build_reporter_applies_prefix_and_tags(self, config_data):
        client = RecordingKairosDbClient()
        reporter_config = KairosDbReporterConfig(config_data, client=client)
        registry = MetricRegistry()
        registry.counter("requests").inc(3)

        reporter = reporter_config.build_reporter(registry)
        reporter.report()

        assert client.tags == {"host": "myhost"}
        assert [(n, v) for n, v, _ in client.metrics] == [("myapp.requests.count", 3)]

    def test_predicate(self, config_data):
        config_data["kairosdb"]["predicate"] = {"color": "black", "patterns": ["^internal\\."]}
        client = RecordingKairosDbClient()
        registry = MetricRegistry()
        registry.counter("internal.debug").inc()
        registry.counter("public").inc()

        KairosDbReporterConfig(config_data, client=client).build_reporter(registry).report()

        assert [n for n, _, _ in client.metrics] == ["myapp.public.count"]

    def test_enable_starts_reporter(self, config_data):
        client = RecordingKairosDbClient()
        reporter_config = KairosDbReporterConfig(config_data, client=client)

        try:
            assert reporter_config.enable(MetricRegistry())
            assert reporter_config.reporter.running
        finally:
            reporter_config.disable()

        assert reporter_config.reporter is None

    def test_enable_with_unreachable_host(self, config_data, caplog):
        client = Mock(spec=KairosDbClient)
        client.connect.side_effect = ConnectionRefusedError("refused")
        reporter_config = KairosDbReporterConfig(config_data, client=client)

        assert not reporter_config.enable(MetricRegistry())
        assert reporter_config.reporter is None
        client.close.assert_called_once()
        assert "Cannot connect to KairosDB host" in caplog.text

    def test_from_yaml_file(self, config_data, tmp_path):
        path = tmp_path / "reporter.yaml"
        path.write_text(yaml.dump(config_data))

        reporter_config = KairosDbReporterConfig.from_yaml_file(str(path))

        assert reporter_config.prefix == "myapp"

    def test_yaml_with_empty_tags_key(self, tmp_path):
        path = tmp_path / "reporter.yaml"
        path.write_text("kairosdb:\n  hosts: [\"kairos.example.com:4343\"]\n  tags:\n")

        reporter_config = KairosDbReporterConfig.from_yaml_file(str(path))

        assert reporter_config.tags == {}

    def test_from_json_file(self, config_data, tmp_path):
        import json
        path = tmp_path / "reporter.json"
        path.write_text(json.dumps(config_data))

        reporter_config = KairosDbReporterConfig.from_json_file(str(path))

        assert reporter_config.hosts == [{"host": "kairos.example.com", "port": 4343}]
