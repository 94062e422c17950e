"""End-to-end reporting to a local telnet-style server."""

import socketserver
import threading
import time

import pytest

from kairosreporter.metrics import MetricRegistry, TimeUnit
from kairosreporter.reporting import KairosDbReporter
from kairosreporter.transport import KairosDb


class LineCollector(socketserver.StreamRequestHandler):
    """Stores every line received on a connection."""

    def handle(self):
        for line in self.rfile:
            with self.server.lock:
                self.server.lines.append(line.decode("utf-8"))


class CollectingServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), LineCollector)
        self.lines = []
        self.lock = threading.Lock()


def wait_for_lines(server, count, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        with server.lock:
            if len(server.lines) >= count:
                return list(server.lines)
        time.sleep(0.01)
    with server.lock:
        return list(server.lines)


@pytest.fixture
def server():
    server = CollectingServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


def test_report_over_tcp(server):
    """Test that one tick writes one put line per sample with tags."""
    host, port = server.server_address
    registry = MetricRegistry()
    registry.counter("requests").inc(7)
    registry.gauge("queue size", lambda: 3)
    registry.gauge("broken", lambda: float("nan"))
    timer = registry.timer("latency")
    timer.update(10, TimeUnit.SECONDS)
    timer.update(2, TimeUnit.SECONDS)

    client = KairosDb(host, port, timeout=5)
    reporter = (
        KairosDbReporter.for_registry(registry)
        .prefixed_with("app")
        .with_tag("host", "myhost")
        .build(client)
    )

    reporter.report()
    lines = wait_for_lines(server, 17)

    assert len(lines) == 17
    assert all(line.startswith("put app.") and line.endswith(" host=myhost\n") for line in lines)
    by_name = {line.split(" ")[1]: line.split(" ")[3] for line in lines}
    assert by_name["app.requests.count"] == "7"
    assert by_name["app.queue-size"] == "3"
    assert by_name["app.latency.mean"] == "6000.0"
    assert by_name["app.latency.count"] == "2"
    assert "app.broken" not in by_name
    assert not client.connected


def test_unreachable_server_skips_tick(caplog):
    """Test that a refused connection is logged and does not raise."""
    probe = CollectingServer()
    host, port = probe.server_address
    probe.server_close()

    registry = MetricRegistry()
    registry.counter("requests").inc()
    client = KairosDb(host, port, timeout=1)
    reporter = KairosDbReporter.for_registry(registry).build(client)

    reporter.report()

    assert "Unable to report to server" in caplog.text
    assert not client.connected
