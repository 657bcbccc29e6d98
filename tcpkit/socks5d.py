"""Minimal SOCKS5 server: no authentication, CONNECT command only."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import logging

log = logging.getLogger(__name__)

BUFFER_SIZE = 1024

SOCKS_VERSION = 0x05
CMD_CONNECT = 0x01
ATYP_IPV4 = 0x01
ATYP_DOMAIN = 0x03

_GREETING = bytes((SOCKS_VERSION, 0x01, 0x00))
_METHOD_REPLY = bytes((SOCKS_VERSION, 0x00))


class Socks5Error(ValueError):
    """Raised when a client sends a malformed or unsupported SOCKS5 message."""


def parse_greeting(data) -> bytes:
    """Check the client greeting ``05 01 00`` and return the method reply ``05 00``."""
    data = bytes(data)
    if len(data) < 3:
        raise Socks5Error(f"greeting too short: {len(data)} bytes")
    if data[:3] != _GREETING:
        raise Socks5Error(f"unexpected greeting: {data[:3].hex(' ')}")
    return _METHOD_REPLY


def _decode_address(data: bytes) -> tuple[str, int]:
    atyp = data[3]
    if atyp == ATYP_IPV4:
        if len(data) != 10:
            raise Socks5Error(f"connect with ip length error, not 10, but {len(data)}")
        host = str(ipaddress.IPv4Address(data[4:8]))
        port = int.from_bytes(data[8:10], "big")
        return host, port
    if atyp == ATYP_DOMAIN:
        host_len = data[4]
        if len(data) != 7 + host_len:
            raise Socks5Error(
                f"connect with hostname length error, not {7 + host_len}, but {len(data)}"
            )
        host = data[5:5 + host_len].decode("latin-1")
        port = int.from_bytes(data[-2:], "big")
        return host, port
    raise Socks5Error(f"unsupported address type: {atyp}")


def parse_connect_request(data) -> tuple[str, int]:
    """Parse a CONNECT request and return the destination ``(host, port)``."""
    data = bytes(data)
    if len(data) < 5:
        raise Socks5Error(f"request too short: {len(data)} bytes")
    if data[0] != SOCKS_VERSION or data[2] != 0x00:
        raise Socks5Error("byte 0 and 2 error")
    if data[1] != CMD_CONNECT:
        raise Socks5Error(f"unsupported cmd: {data[1]}")
    return _decode_address(data)


def build_connect_reply() -> bytes:
    """Reply sent once the destination is connected: success, bound address zeroed."""
    return bytes((SOCKS_VERSION, 0x00, 0x00, ATYP_IPV4)) + bytes(6)


def _close(writer) -> None:
    if writer is not None:
        writer.close()


async def relay(reader, writer) -> int:
    """Copy data from ``reader`` to ``writer`` until EOF or error; return bytes copied."""
    total = 0
    try:
        while True:
            chunk = await reader.read(BUFFER_SIZE)
            if not chunk:
                break
            log.debug("relayed %d bytes", len(chunk))
            writer.write(chunk)
            await writer.drain()
            total += len(chunk)
    except OSError as exc:
        log.info("relay stopped: %s", exc)
    finally:
        _close(writer)
    return total


class Socks5Server:
    """Accepts SOCKS5 clients and relays their CONNECT streams."""

    def __init__(self, host: str = "0.0.0.0", port: int = 1080) -> None:
        self.host = host
        self.port = port

    async def start(self) -> asyncio.AbstractServer:
        """Start listening and return the running server."""
        return await asyncio.start_server(self.handle, self.host, self.port)

    async def handle(self, reader, writer) -> None:
        """Serve one client connection from handshake to close."""
        dest_writer = None
        try:
            greeting = await reader.read(BUFFER_SIZE)
            writer.write(parse_greeting(greeting))
            await writer.drain()

            request = await reader.read(BUFFER_SIZE)
            host, port = parse_connect_request(request)
            log.info("connect with host=%s, port=%d", host, port)

            dest_reader, dest_writer = await asyncio.open_connection(host, port)
            log.info("connected to host=%s, port=%d, now read data", host, port)

            writer.write(build_connect_reply())
            await writer.drain()
        except (Socks5Error, OSError) as exc:
            log.warning("socks5 handshake failed: %s", exc)
            _close(writer)
            _close(dest_writer)
            return

        await asyncio.gather(relay(reader, dest_writer), relay(dest_reader, writer))


async def _serve(server: Socks5Server) -> None:
    running = await server.start()
    async with running:
        await running.serve_forever()


def main(argv=None) -> int:
    """Run the SOCKS5 server on the given port."""
    parser = argparse.ArgumentParser(prog="socks5d")
    parser.add_argument("port", type=int)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    print(f"listen on port: {args.port}")
    try:
        asyncio.run(_serve(Socks5Server("0.0.0.0", args.port)))
    except KeyboardInterrupt:
        pass
    return 0