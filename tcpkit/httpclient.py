"""Asynchronous HTTP/HTTPS client that fetches a whole response without following redirects."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import ssl
from dataclasses import dataclass
from typing import Callable, Iterable

log = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}

_URL_RE = re.compile(r"(https?)://([^/]+)((/.*)*)")
_CHUNK = 4096


def _split_host(host: str, default_port: int) -> tuple[str, int]:
    if host.startswith("["):
        end = host.find("]")
        if end != -1:
            name, rest = host[1:end], host[end + 1:]
            if rest.startswith(":") and rest[1:].isdigit():
                return name, int(rest[1:])
            return name, default_port
    name, sep, port = host.rpartition(":")
    if sep and port.isdigit() and ":" not in name:
        return name, int(port)
    return host, default_port


@dataclass(frozen=True)
class UrlParts:
    """The pieces of a URL the client needs: scheme, host (maybe with port) and path."""

    protocol: str
    host: str
    path: str

    @property
    def hostname(self) -> str:
        """Host name without any port suffix."""
        return _split_host(self.host, DEFAULT_PORTS[self.protocol])[0]

    @property
    def port(self) -> int:
        """Explicit port from the host part, or the scheme's default."""
        return _split_host(self.host, DEFAULT_PORTS[self.protocol])[1]


def parse_url(url: str) -> UrlParts:
    """Split an http or https URL; an empty path becomes ``/``.

    Raises ValueError("invalid url") for anything else.
    """
    match = _URL_RE.fullmatch(url)
    if match is None:
        raise ValueError("invalid url")
    path = match.group(3) or "/"
    return UrlParts(match.group(1), match.group(2), path)


def build_request(host: str, path: str) -> str:
    """The GET request sent for ``path`` on ``host``; the server is asked to close."""
    return (
        f"GET {path} HTTP/1.1\r\n"
        f"Host: {host}\r\n"
        "Accept: */*\r\n"
        "Connection: Close\r\n\r\n"
    )


def _subject_name(cert: dict | None) -> str:
    if not cert:
        return ""
    parts = []
    for rdn in cert.get("subject", ()):
        for key, value in rdn:
            parts.append(f"{key}={value}")
    return "/" + "/".join(parts) if parts else ""


class AsyncHttpClient:
    """Fetches one URL; the raw response, headers included, ends up in ``response``."""

    def __init__(self, url: str, *, ssl_context: ssl.SSLContext | None = None) -> None:
        self.url = url
        self.ssl_context = ssl_context
        self.parts: UrlParts | None = None
        self.request = b""
        self.response = b""
        self.error = ""

    @property
    def ok(self) -> bool:
        """True unless the last run failed."""
        return not self.error

    async def run(self) -> bytes:
        """Fetch the URL and return the raw response.

        Raises ValueError for an invalid URL and OSError for network or TLS
        failures; ``error`` then holds the message and ``response`` any data
        received before the failure.
        """
        self.error = ""
        self.response = b""
        try:
            return await self._run()
        except (ValueError, OSError) as exc:
            self.error = str(exc) or type(exc).__name__
            raise

    async def _run(self) -> bytes:
        self.parts = parts = parse_url(self.url)
        context = None
        if parts.protocol == "https":
            context = self.ssl_context or ssl.create_default_context()

        if context is not None:
            reader, writer = await asyncio.open_connection(
                parts.hostname, parts.port, ssl=context, server_hostname=parts.hostname
            )
            subject = _subject_name(writer.get_extra_info("peercert"))
            log.info("Verifying %s", subject)
        else:
            reader, writer = await asyncio.open_connection(parts.hostname, parts.port)
        log.debug("connected to %s", parts.host)

        buf = bytearray()
        try:
            self.request = build_request(parts.host, parts.path).encode("latin-1")
            writer.write(self.request)
            await writer.drain()
            log.debug("finished sending request")
            while True:
                chunk = await reader.read(_CHUNK)
                if not chunk:
                    break
                buf += chunk
        finally:
            self.response = bytes(buf)
            writer.close()
        log.debug("%s", self.response.decode("latin-1"))
        return self.response


async def fetch_all(
    urls: Iterable[str],
    callback: Callable[[AsyncHttpClient], None] | None,
) -> list[AsyncHttpClient]:
    """Fetch every URL concurrently, calling ``callback`` with each finished client.

    Failures do not raise; they are left in each client's ``error``.
    """
    clients = [AsyncHttpClient(url) for url in urls]

    async def one(client: AsyncHttpClient) -> None:
        try:
            await client.run()
        except (ValueError, OSError):
            pass
        if callback is not None:
            callback(client)

    await asyncio.gather(*(one(client) for client in clients))
    return clients


def _on_finish(client: AsyncHttpClient) -> None:
    if client.response:
        print(client.response.decode("latin-1"), end="\r\n\r\n")
    print(f"call back in finish, err: {client.error}")


def main(argv=None) -> int:
    """Fetch the given URLs and print each response."""
    parser = argparse.ArgumentParser(prog="http-client")
    parser.add_argument("urls", nargs="+", help="http:// or https:// URLs")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    asyncio.run(fetch_all(args.urls, _on_finish))
    return 0