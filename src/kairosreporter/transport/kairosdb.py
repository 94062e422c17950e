"""Telnet-style KairosDB client speaking the ``put`` line protocol."""

import logging
import math
import re
import socket
from abc import ABC, abstractmethod
from numbers import Integral, Number, Real
from typing import Callable, Dict, Optional, Tuple, Union

logger = logging.getLogger(__name__)

WHITESPACE = re.compile(r"\s+")

Value = Union[Number, str]
SocketFactory = Callable[[Tuple[str, int], Optional[float]], socket.socket]


class ClientStateError(RuntimeError):
    """Raised when the client is used in the wrong connection state."""
    pass


class KairosDbClient(ABC):
    """Transport client that delivers metric samples to a KairosDB host."""

    @abstractmethod
    def set_tags(self, tags: Dict[str, str]) -> None:
        """Set the tags sent with every metric."""

    @abstractmethod
    def connect(self) -> str:
        """Connect to the host and return its ``host:port`` for logging."""

    @abstractmethod
    def send(self, name: str, value: Value, timestamp: int) -> None:
        """Send one sample. ``timestamp`` is in epoch milliseconds."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection to the host."""

    def __enter__(self) -> "KairosDbClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def numeric_text(value: str) -> str:
    """Strip a numeric string, rejecting anything that is not a plain number."""
    text = value.strip()
    if "_" in text or WHITESPACE.search(text):
        raise ValueError(f"Not a numeric value: {value!r}")
    try:
        float(text)
    except ValueError:
        raise ValueError(f"Not a numeric value: {value!r}") from None
    return text


def is_finite(value: Value) -> bool:
    """Return False for NaN and infinite values, True for any other number."""
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric value: {value!r}")
    if isinstance(value, str):
        return math.isfinite(float(numeric_text(value)))
    if isinstance(value, Integral):
        return True
    if isinstance(value, Real):
        return math.isfinite(value)
    raise ValueError(f"Not a numeric value: {value!r}")


def format_value(value: Value) -> str:
    """Render a value so the server can tell longs from doubles.

    Doubles always carry a ``.``, including exponent forms (``1.0e-05``).
    """
    if isinstance(value, str):
        return numeric_text(value)
    if isinstance(value, Integral):
        return str(int(value))
    text = repr(float(value))
    if "." in text or "e" not in text:
        return text
    return text.replace("e", ".0e", 1)


def sanitize(name: str) -> str:
    """Replace each run of whitespace with a single dash."""
    return WHITESPACE.sub("-", name)


def format_line(name: str, value: Value, timestamp: int, tags: Optional[Dict[str, str]] = None) -> str:
    """Render one ``put`` line, including the trailing newline."""
    parts = ["put", sanitize(name), str(int(timestamp)), format_value(value)]
    for tag_name, tag_value in (tags or {}).items():
        parts.append(f"{tag_name}={tag_value}")
    return " ".join(parts) + "\n"


class KairosDb(KairosDbClient):
    """A client for a KairosDB server's telnet interface.

    One socket is held at a time. Each ``send`` writes and flushes a single
    line, so nothing is buffered between calls.

    Usage:
        client = KairosDb("localhost", 4242)
        client.connect()
        client.send("app.requests.count", 42, 1400000000000)
        client.close()
    """

    def __init__(
        self,
        host: str,
        port: int,
        socket_factory: Optional[SocketFactory] = None,
        charset: str = "utf-8",
        timeout: Optional[float] = None,
    ):
        """Initialize the client.

        Args:
            host: KairosDB host name or address
            port: Port of the telnet interface (usually 4242)
            socket_factory: Callable ``(address, timeout) -> socket``;
                defaults to ``socket.create_connection``
            charset: Encoding used on the wire
            timeout: Connect and write timeout in seconds; None blocks
        """
        self.host = host
        self.port = int(port)
        self.socket_factory = socket_factory or socket.create_connection
        self.charset = charset
        self.timeout = timeout

        self._socket: Optional[socket.socket] = None
        self._tags: Dict[str, str] = {}

    @property
    def address(self) -> Tuple[str, int]:
        return self.host, self.port

    @property
    def tags(self) -> Dict[str, str]:
        return dict(self._tags)

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def set_tags(self, tags: Dict[str, str]) -> None:
        self._tags = dict(tags)

    def connect(self) -> str:
        if self._socket is not None:
            raise ClientStateError("Already connected")

        self._socket = self.socket_factory(self.address, self.timeout)
        logger.debug(f"Connected to KairosDB at {self}")
        return str(self)

    def send(self, name: str, value: Value, timestamp: int) -> None:
        if not is_finite(value):
            return
        if self._socket is None:
            raise ClientStateError("Not connected")

        line = format_line(name, value, timestamp, self._tags)
        self._socket.sendall(line.encode(self.charset))

    def close(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def __repr__(self) -> str:
        return f"KairosDb(host={self.host!r}, port={self.port})"
