"""KairosDB transport module."""

from .kairosdb import (
    ClientStateError,
    KairosDb,
    KairosDbClient,
    format_line,
    format_value,
    is_finite,
    numeric_text,
    sanitize,
)

__all__ = [
    "ClientStateError",
    "KairosDb",
    "KairosDbClient",
    "format_line",
    "format_value",
    "is_finite",
    "numeric_text",
    "sanitize",
]
