"""Two-part encrypting SOCKS5 proxy: a local half facing clients, a server half facing destinations."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import logging
import os
import signal
import socket
import sys
from typing import Callable

from .config import ConfigError, ProxyConfig, read_config
from .cypher import Cypher
from .socks5d import ATYP_DOMAIN, ATYP_IPV4, CMD_CONNECT, Socks5Error, parse_greeting

log = logging.getLogger(__name__)

BUFFER_SIZE = 512


def _close(writer) -> None:
    if writer is not None:
        writer.close()


async def pipe(reader, writer, transform: Callable[[bytes], bytes]) -> int:
    """Copy data through ``transform`` until EOF or error; return bytes read."""
    total = 0
    try:
        while True:
            chunk = await reader.read(BUFFER_SIZE)
            if not chunk:
                break
            writer.write(transform(chunk))
            await writer.drain()
            total += len(chunk)
    except OSError as exc:
        log.info("pipe stopped: %s", exc)
    finally:
        _close(writer)
    return total


def parse_destination(data) -> tuple[str, int]:
    """Parse a decrypted CONNECT request into the destination ``(host, port)``."""
    data = bytes(data)
    if len(data) < 5:
        raise Socks5Error(f"request too short: {len(data)} bytes")
    if data[1] != CMD_CONNECT:
        raise Socks5Error(f"unsupported cmd: {data[1]}")
    atyp = data[3]
    if atyp == ATYP_IPV4:
        if len(data) != 10:
            raise Socks5Error(f"connect with ip length error, not 10, but {len(data)}")
        return str(ipaddress.IPv4Address(data[4:8])), int.from_bytes(data[8:10], "big")
    if atyp == ATYP_DOMAIN:
        host_len = data[4]
        if len(data) != 7 + host_len:
            raise Socks5Error(
                f"connect with hostname length error, not {7 + host_len}, but {len(data)}"
            )
        return data[5:5 + host_len].decode("latin-1"), int.from_bytes(data[-2:], "big")
    raise Socks5Error(f"unsupported address type: {atyp}")


def build_server_reply(ip: str, port: int) -> bytes:
    """Success reply carrying the IPv4 address and port actually connected to."""
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    return b"\x05\x00\x00\x01" + ipaddress.IPv4Address(ip).packed + port.to_bytes(2, "big")


def daemonize() -> bool:
    """Detach from the terminal in-process; return False where unsupported.

    Job-control and hang-up signals are ignored, a new session is started
    where the process is allowed to, the umask and working directory are
    reset and the standard streams are pointed at the null device.
    """
    if not hasattr(os, "setsid"):
        return False
    for name in ("SIGHUP", "SIGTTOU", "SIGTTIN", "SIGTSTP",
                 "SIGINT", "SIGQUIT", "SIGPIPE", "SIGCHLD"):
        sig = getattr(signal, name, None)
        if sig is not None:
            signal.signal(sig, signal.SIG_IGN)
    try:
        os.setsid()
    except OSError as exc:
        log.info("cannot start a new session: %s", exc)
    os.umask(0)
    os.chdir("/")
    sys.stdout.flush()
    sys.stderr.flush()
    devnull = os.open(os.devnull, os.O_RDWR)
    for fd in range(3):
        os.dup2(devnull, fd)
    if devnull > 2:
        os.close(devnull)
    return True


class ProxyLocal:
    """Local half: speaks SOCKS5 to clients and forwards encrypted traffic to the server."""

    def __init__(self, config: ProxyConfig, *, host: str = "0.0.0.0", port: int | None = None) -> None:
        self.config = config
        self.cypher = Cypher(config.shift_steps)
        self.host = host
        self.port = config.local_port if port is None else port

    async def start(self) -> asyncio.AbstractServer:
        """Start listening for SOCKS5 clients."""
        return await asyncio.start_server(self.handle, self.host, self.port)

    async def handle(self, reader, writer) -> None:
        """Serve one client: handshake through the server, then relay."""
        remote_writer = None
        try:
            greeting = await reader.read(BUFFER_SIZE)
            writer.write(parse_greeting(greeting))
            await writer.drain()

            request = await reader.read(BUFFER_SIZE)
            if not request:
                raise Socks5Error("client closed before request")

            remote_reader, remote_writer = await asyncio.open_connection(
                *self.config.server_endpoint
            )
            remote_writer.write(self.cypher.encrypt(request))
            await remote_writer.drain()

            reply = await remote_reader.read(BUFFER_SIZE)
            if not reply:
                raise Socks5Error("server closed during handshake")
            writer.write(self.cypher.decrypt(reply))
            await writer.drain()
        except (Socks5Error, OSError) as exc:
            log.warning("local handshake failed: %s", exc)
            _close(writer)
            _close(remote_writer)
            return

        await asyncio.gather(
            pipe(reader, remote_writer, self.cypher.encrypt),
            pipe(remote_reader, writer, self.cypher.decrypt),
        )


class ProxyServer:
    """Server half: decrypts requests from the local half and connects to destinations."""

    def __init__(self, config: ProxyConfig, *, host: str | None = None, port: int | None = None) -> None:
        self.config = config
        self.cypher = Cypher(config.shift_steps)
        self.host = config.server_ip if host is None else host
        self.port = config.server_port if port is None else port

    async def start(self) -> asyncio.AbstractServer:
        """Start listening for the local half."""
        return await asyncio.start_server(self.handle, self.host, self.port)

    async def handle(self, reader, writer) -> None:
        """Serve one tunnel: resolve, connect, reply, then relay."""
        peer = writer.get_extra_info("peername")
        log.info("new conn, from ip:%s", peer[0] if peer else "?")
        remote_writer = None
        try:
            data = await reader.read(BUFFER_SIZE)
            if len(data) < 5:
                raise Socks5Error("recv encrypted request, length too short")
            host, port = parse_destination(self.cypher.decrypt(data))
            log.info("connect with host=%s, port=%d", host, port)

            loop = asyncio.get_running_loop()
            infos = await loop.getaddrinfo(
                host, port, family=socket.AF_INET, type=socket.SOCK_STREAM
            )
            if not infos:
                raise Socks5Error(f"cannot resolve {host}")
            ip = infos[0][4][0]

            remote_reader, remote_writer = await asyncio.open_connection(ip, port)
            writer.write(self.cypher.encrypt(build_server_reply(ip, port)))
            await writer.drain()
        except (Socks5Error, OSError, ValueError) as exc:
            log.warning("server handshake failed: %s", exc)
            _close(writer)
            _close(remote_writer)
            return

        await asyncio.gather(
            pipe(remote_reader, writer, self.cypher.encrypt),
            pipe(reader, remote_writer, self.cypher.decrypt),
        )


async def _serve(start) -> None:
    running = await start()
    async with running:
        await running.serve_forever()


def _load(prog: str, argv) -> ProxyConfig | None:
    parser = argparse.ArgumentParser(prog=prog)
    parser.add_argument("-c", dest="config", required=True, help="configuration file")
    args = parser.parse_args(argv)
    try:
        return read_config(args.config)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return None


def local_main(argv=None) -> int:
    """Run the local half: ``local -c proxy.conf``."""
    config = _load("local", argv)
    if config is None:
        return 1
    logging.basicConfig(level=logging.INFO)
    print(f"local listen at port:{config.local_port}")
    try:
        asyncio.run(_serve(ProxyLocal(config).start))
    except KeyboardInterrupt:
        pass
    return 0


def server_main(argv=None) -> int:
    """Run the server half: ``server -c proxy.conf``; detaches on Linux."""
    config = _load("server", argv)
    if config is None:
        return 1
    logging.basicConfig(level=logging.INFO)
    print(f"server listen on port: {config.server_port}", flush=True)
    if sys.platform.startswith("linux"):
        daemonize()
    try:
        asyncio.run(_serve(ProxyServer(config).start))
    except KeyboardInterrupt:
        pass
    return 0