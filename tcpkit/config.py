"""Reading of the proxy configuration file (``name = value`` lines)."""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass

from .commands import split_words

log = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or is incomplete."""


@dataclass(frozen=True)
class ProxyConfig:
    """Settings shared by the local and server halves of the proxy."""

    server_ip: str
    server_port: int
    local_port: int
    shift_steps: int

    @property
    def server_endpoint(self) -> tuple[str, int]:
        """Address of the proxy server as a (host, port) pair."""
        return (self.server_ip, self.server_port)


def split_tokens(text: str, delimiters: str) -> list[str]:
    """Split ``text`` on any delimiter character, dropping empty tokens."""
    return split_words(text, delimiters)


def _to_int(values: dict[str, str], name: str) -> int:
    raw = values.get(name, "")
    match = _LEADING_INT.match(raw)
    if match is None:
        raise ConfigError(f"missing or invalid value for {name!r}: {raw!r}")
    return int(match.group(1))


def _port(values: dict[str, str], name: str) -> int:
    port = _to_int(values, name)
    if not 0 <= port <= 65535:
        raise ConfigError(f"{name} out of range: {port}")
    return port


def parse_config(text: str) -> ProxyConfig:
    """Parse configuration text; later settings override earlier ones."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip(" ")
        if line.startswith("#") or line.startswith("//"):
            continue
        tokens = split_tokens(line, " ")
        if len(tokens) != 3:
            continue
        name, _, value = tokens
        values[name] = value

    server_ip = values.get("server_ip", "")
    server_port = _port(values, "server_port")
    local_port = _port(values, "local_port")
    shift_steps = _to_int(values, "shift_steps")
    try:
        ipaddress.ip_address(server_ip)
    except ValueError as exc:
        raise ConfigError(f"invalid server_ip: {server_ip!r}") from exc

    log.info(
        "init, server_ip=%s, server_port=%d, local_port=%d, shift_steps=%d",
        server_ip, server_port, local_port, shift_steps,
    )
    return ProxyConfig(server_ip, server_port, local_port, shift_steps)


def read_config(path) -> ProxyConfig:
    """Read and parse the configuration file at ``path``."""
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise ConfigError(f"failed to open file: {path}") from exc
    return parse_config(text)