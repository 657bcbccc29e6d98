"""Asynchronous UDP client that sends text messages to one endpoint."""

from __future__ import annotations

import asyncio
import logging

log = logging.getLogger(__name__)


class _ClientProtocol(asyncio.DatagramProtocol):
    def error_received(self, exc: Exception) -> None:
        log.warning("udp error: %s", exc)


class AsyncUdpClient:
    """Sends datagrams to a fixed remote endpoint."""

    def __init__(self, transport: asyncio.DatagramTransport, remote: tuple[str, int]) -> None:
        self._transport = transport
        self.remote = remote

    def send_message(self, msg) -> int:
        """Send ``msg`` (text or bytes) as one datagram; return its size in bytes."""
        if self._transport.is_closing():
            raise RuntimeError("client is closed")
        data = msg.encode("utf-8") if isinstance(msg, str) else bytes(msg)
        self._transport.sendto(data)
        log.info("sent: %s", msg)
        return len(data)

    def close(self) -> None:
        """Close the underlying socket."""
        self._transport.close()

    async def __aenter__(self) -> AsyncUdpClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


async def open_udp_client(host: str, port: int) -> AsyncUdpClient:
    """Create a client bound to an ephemeral local port, sending to ``host:port``."""
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        _ClientProtocol, remote_addr=(host, port)
    )
    return AsyncUdpClient(transport, (host, port))