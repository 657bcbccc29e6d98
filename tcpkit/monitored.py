"""SOCKS5 local proxy half that reports connection status over UDP and expires idle sessions."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import itertools
import logging
import socket
import sys
import time
from typing import Callable

from .config import ConfigError, ProxyConfig, read_config
from .cypher import Cypher
from .monitor import DEFAULT_HOST, DEFAULT_PORT, ConnectionRecord, record_to_json
from .socks5d import ATYP_DOMAIN, ATYP_IPV4, Socks5Error

log = logging.getLogger(__name__)

BUFFER_SIZE = 512
SESSION_TIMEOUT = 360.0
SCAN_INTERVAL = 60.0
REPORT_PERIOD = 0.1
MAX_SESSIONS = 1000

_GREETING = b"\x05\x01\x00"
_METHOD_REPLY = b"\x05\x00"

Reporter = Callable[[ConnectionRecord], None]


def parse_address(data) -> tuple[str, int]:
    """Extract ``(host, port)`` from a SOCKS5 request or reply."""
    data = bytes(data)
    if len(data) < 4:
        raise Socks5Error(f"buff too short, must > 4, now is:{len(data)}")
    atyp = data[3]
    if atyp == ATYP_IPV4:
        if len(data) != 10:
            raise Socks5Error(f"ip port must be 10, now is:{len(data)}")
        return str(ipaddress.IPv4Address(data[4:8])), int.from_bytes(data[8:10], "big")
    if atyp == ATYP_DOMAIN:
        if len(data) < 7:
            raise Socks5Error(f"ip port must be 7, now is:{len(data)}")
        host_len = data[4]
        if len(data) != 7 + host_len:
            raise Socks5Error(f"length err, not {7 + host_len}, but {len(data)}")
        return data[5:5 + host_len].decode("latin-1"), int.from_bytes(data[-2:], "big")
    raise Socks5Error(f"unsupported type {atyp}")


class TimeoutManager:
    """Sessions indexed by fd; a periodic scan closes those past their deadline.

    A session needs ``fd``, ``next_timeout`` and ``close()``.
    """

    def __init__(self, capacity: int = MAX_SESSIONS) -> None:
        self.capacity = capacity
        self._sessions: dict = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session) -> bool:
        return self._sessions.get(session.fd) is session

    def add(self, session) -> bool:
        """Register a session; return False if its fd is out of range or taken."""
        fd = session.fd
        if not 0 <= fd < self.capacity:
            log.warning("fd=%d too large", fd)
            return False
        if fd in self._sessions:
            log.warning("fd=%d exists already", fd)
            return False
        self._sessions[fd] = session
        return True

    def remove(self, session) -> bool:
        """Unregister a session; return False if it was not registered."""
        if self._sessions.get(session.fd) is not session:
            log.warning("fd=%d nothing to remove", session.fd)
            return False
        del self._sessions[session.fd]
        return True

    def scan(self, now: float) -> list:
        """Close every session whose deadline is before ``now``; return them."""
        expired = [s for _, s in sorted(self._sessions.items()) if s.next_timeout < now]
        for session in expired:
            log.info("fd=%d close due to timeout", session.fd)
            session.close()
        return expired


class _Session:
    def __init__(self, fd: int, report: Reporter, clock: Callable[[], float]) -> None:
        self.fd = fd
        self._report = report
        self._clock = clock
        self.start_time = clock()
        self.next_timeout = 0.0
        self.domain = ""
        self.ip = ""
        self.port = 0
        self.sended = 0
        self.recved = 0
        self._last_period = 0
        self._writers: list = []
        self.closed = False
        self.touch()

    def touch(self) -> None:
        self.next_timeout = self._clock() + SESSION_TIMEOUT

    def attach(self, writer) -> None:
        self._writers.append(writer)

    def snapshot(self) -> ConnectionRecord:
        return ConnectionRecord(
            fd=self.fd,
            start_time=int(self.start_time),
            domain=self.domain,
            ip=self.ip,
            port=self.port,
            sended=self.sended,
            recved=self.recved,
        )

    def report(self) -> None:
        self._report(self.snapshot())

    def report_progress(self) -> None:
        tick = int((self._clock() - self.start_time) / REPORT_PERIOD)
        if tick == self._last_period:
            return
        self._last_period = tick
        self.report()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._report(ConnectionRecord(-self.fd))
        for writer in self._writers:
            writer.close()


class _UdpReporter:
    def __init__(self, addr: tuple[str, int]) -> None:
        self._addr = addr
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.setblocking(False)

    def __call__(self, record: ConnectionRecord) -> None:
        self._sock.sendto(record_to_json(record).encode("utf-8"), self._addr)


class MonitoredLocal:
    """Local proxy half that reports each connection's progress to a monitor."""

    def __init__(
        self,
        config: ProxyConfig,
        *,
        host: str = "0.0.0.0",
        port: int | None = None,
        monitor_addr: tuple[str, int] = (DEFAULT_HOST, DEFAULT_PORT),
        reporter: Reporter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.cypher = Cypher(config.shift_steps)
        self.host = host
        self.port = config.local_port if port is None else port
        self.timeouts = TimeoutManager()
        self._reporter = reporter if reporter is not None else _UdpReporter(monitor_addr)
        self._clock = clock
        self._ids = itertools.count(1)

    def _send(self, record: ConnectionRecord) -> None:
        try:
            self._reporter(record)
        except OSError as exc:
            log.debug("status report failed: %s", exc)

    def _fd_of(self, writer) -> int:
        sock = writer.get_extra_info("socket")
        if sock is not None:
            return sock.fileno()
        return next(self._ids)

    async def start(self) -> asyncio.AbstractServer:
        """Start listening for SOCKS5 clients."""
        return await asyncio.start_server(self.handle, self.host, self.port)

    async def handle(self, reader, writer) -> None:
        """Serve one client from handshake to close, reporting as it goes."""
        session = _Session(self._fd_of(writer), self._send, self._clock)
        session.attach(writer)
        self.timeouts.add(session)
        self._send(ConnectionRecord(session.fd))
        try:
            await self._serve_session(session, reader, writer)
        except (Socks5Error, OSError, ValueError) as exc:
            log.warning("fd=%d, %s", session.fd, exc)
        finally:
            session.close()
            self.timeouts.remove(session)

    async def _serve_session(self, session: _Session, reader, writer) -> None:
        greeting = await reader.read(BUFFER_SIZE)
        if len(greeting) < 3 or greeting[:3] != _GREETING:
            raise Socks5Error("recv 05 01 00 err")

        session.touch()
        writer.write(_METHOD_REPLY)
        await writer.drain()

        session.touch()
        request = await reader.read(BUFFER_SIZE)
        session.domain, session.port = parse_address(request)
        session.report()

        session.touch()
        remote_reader, remote_writer = await asyncio.open_connection(
            *self.config.server_endpoint
        )
        session.attach(remote_writer)
        session.touch()
        remote_writer.write(self.cypher.encrypt(request))
        await remote_writer.drain()

        session.touch()
        reply = self.cypher.decrypt(await remote_reader.read(BUFFER_SIZE))
        session.ip, session.port = parse_address(reply)
        session.report()

        session.touch()
        writer.write(reply)
        await writer.drain()

        await asyncio.gather(
            self._pump(session, reader, remote_writer, self.cypher.encrypt, outgoing=True),
            self._pump(session, remote_reader, writer, self.cypher.decrypt, outgoing=False),
        )

    async def _pump(self, session: _Session, reader, writer, transform, *, outgoing: bool) -> None:
        try:
            while True:
                session.touch()
                chunk = await reader.read(BUFFER_SIZE)
                if not chunk:
                    break
                session.touch()
                writer.write(transform(chunk))
                await writer.drain()
                if outgoing:
                    session.sended += len(chunk)
                else:
                    session.recved += len(chunk)
                session.report_progress()
        except OSError as exc:
            log.info("fd=%d transfer stopped: %s", session.fd, exc)
        finally:
            session.close()

    async def _scan_forever(self) -> None:
        while True:
            await asyncio.sleep(SCAN_INTERVAL)
            self.timeouts.scan(self._clock())


async def _serve(local: MonitoredLocal) -> None:
    running = await local.start()
    scanner = asyncio.create_task(local._scan_forever())
    try:
        async with running:
            await running.serve_forever()
    finally:
        scanner.cancel()


def main(argv=None) -> int:
    """Run the monitored local half: ``local -c proxy.conf``."""
    parser = argparse.ArgumentParser(prog="local")
    parser.add_argument("-c", dest="config", required=True, help="configuration file")
    args = parser.parse_args(argv)
    try:
        config = read_config(args.config)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 1
    logging.basicConfig(level=logging.INFO)
    print(f"local listen at port:{config.local_port}")
    try:
        asyncio.run(_serve(MonitoredLocal(config)))
    except KeyboardInterrupt:
        pass
    return 0