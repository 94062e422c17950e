"""Resolution of ``${host.*}`` placeholders in tag values."""

import logging
import re
import socket
from typing import Callable, Dict

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$\{(host\.[a-z.]+)\}")


def _host_name() -> str:
    return socket.gethostname()


def _host_name_short() -> str:
    return socket.gethostname().split(".")[0]


def _host_address() -> str:
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError as e:
        logger.warning(f"Could not resolve local host address: {e}")
        return "127.0.0.1"


def _host_fqdn() -> str:
    return socket.getfqdn()


RESOLVERS: Dict[str, Callable[[], str]] = {
    "host.name": _host_name,
    "host.name.short": _host_name_short,
    "host.address": _host_address,
    "host.fqdn": _host_fqdn,
}


def resolve_host_placeholders(template: str) -> str:
    """Substitute every known ``${host.*}`` placeholder in ``template``.

    Unknown placeholders are left as they are (and will fail tag validation).
    """

    def replace(match: re.Match) -> str:
        resolver = RESOLVERS.get(match.group(1))
        if resolver is None:
            logger.warning(f"Unknown host placeholder: {match.group(0)}")
            return match.group(0)
        return resolver()

    return PLACEHOLDER.sub(replace, template)


def resolve_tags(tags: Dict[str, str]) -> Dict[str, str]:
    """Resolve host placeholders in the values of a tag mapping."""
    return {key: resolve_host_placeholders(str(value)) for key, value in tags.items()}
