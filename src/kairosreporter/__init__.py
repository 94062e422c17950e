"""kairosreporter: publish in-process metrics to KairosDB over the telnet protocol."""

__version__ = "0.1.0"
