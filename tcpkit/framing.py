"""Length-prefixed packages over TCP: an echoing server and load-generating clients."""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import struct
from dataclasses import dataclass

log = logging.getLogger(__name__)

MAX_BODY_LEN = 4096

_HEADER = struct.Struct("<III")
HEADER_SIZE = _HEADER.size

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 12345


class FramingError(ValueError):
    """Raised for a malformed package header or an oversized body."""


@dataclass(frozen=True)
class PkgHeader:
    """Fixed 12-byte header: body length, checksum and a spare field."""

    body_len: int = 0
    check_sum: int = 0
    other: int = 0

    def pack(self) -> bytes:
        """Encode the header as three little-endian 32-bit unsigned integers."""
        try:
            return _HEADER.pack(self.body_len, self.check_sum, self.other)
        except struct.error as exc:
            raise FramingError(f"header field out of range: {exc}") from exc

    @staticmethod
    def unpack(data) -> PkgHeader:
        """Decode a header from exactly HEADER_SIZE bytes."""
        data = bytes(data)
        if len(data) != HEADER_SIZE:
            raise FramingError(f"header must be {HEADER_SIZE} bytes, got {len(data)}")
        return PkgHeader(*_HEADER.unpack(data))


def _frame(header: PkgHeader, body: bytes) -> bytes:
    return header.pack() + body


async def read_package(reader) -> tuple[PkgHeader, bytes]:
    """Read one header and its body; raise FramingError if the body is too large."""
    header = PkgHeader.unpack(await reader.readexactly(HEADER_SIZE))
    if header.body_len > MAX_BODY_LEN:
        raise FramingError(f"invalid body len: {header.body_len}")
    body = await reader.readexactly(header.body_len)
    return header, body


class PseudoQueue:
    """Simulated work queue that is empty about half the time."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    def recv(self) -> tuple[PkgHeader, bytes] | None:
        """Return a package with a random body length, or None when empty."""
        if self._rng.randint(0, 100) < 50:
            return None
        length = self._rng.randint(0, MAX_BODY_LEN)
        return PkgHeader(body_len=length), bytes(length)


class FramingServer:
    """Echoes every received package back to its sender."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        self.host = host
        self.port = port

    async def start(self) -> asyncio.AbstractServer:
        """Start listening and return the running server."""
        return await asyncio.start_server(self.handle, self.host, self.port)

    async def handle(self, reader, writer) -> int:
        """Serve one connection until error or EOF; return packages echoed."""
        peer = writer.get_extra_info("peername")
        log.info("new conn, from ip:%s", peer[0] if peer else "?")
        served = 0
        try:
            while True:
                header, body = await read_package(reader)
                log.info("recv pkg, body length: %d", header.body_len)
                writer.write(_frame(header, body))
                await writer.drain()
                served += 1
        except asyncio.IncompleteReadError as exc:
            if exc.partial:
                log.warning("recv err: connection closed mid-package")
        except (FramingError, OSError) as exc:
            log.warning("recv err: %s", exc)
        finally:
            writer.close()
        return served


class FramingClient:
    """Takes packages from a queue, sends each and waits for its echo."""

    def __init__(
        self,
        client_id: int,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        queue: PseudoQueue | None = None,
        *,
        max_packages: int | None = None,
        idle_delay: float = 0.1,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.queue = queue if queue is not None else PseudoQueue()
        self.max_packages = max_packages
        self.idle_delay = idle_delay
        self.error: str | None = None
        self.last_response: PkgHeader | None = None

    async def run(self) -> int:
        """Exchange packages until an error or ``max_packages``; return responses received."""
        self.error = None
        received = 0
        writer = None
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
            while self.max_packages is None or received < self.max_packages:
                pkg = self.queue.recv()
                if pkg is None:
                    log.debug("client[%d] sleep...", self.client_id)
                    await asyncio.sleep(self.idle_delay)
                    continue
                header, body = pkg
                writer.write(_frame(header, body))
                await writer.drain()
                response, _ = await read_package(reader)
                self.last_response = response
                received += 1
                log.info("client[%d] got response, body len: %d",
                         self.client_id, response.body_len)
        except (OSError, FramingError, asyncio.IncompleteReadError) as exc:
            self.error = str(exc) or type(exc).__name__
            log.warning("client[%d] closed: %s", self.client_id, self.error)
        finally:
            if writer is not None:
                writer.close()
        return received


def server_main(argv=None) -> int:
    """Run the echoing package server."""
    parser = argparse.ArgumentParser(prog="framing-server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    async def serve() -> None:
        running = await FramingServer(args.host, args.port).start()
        async with running:
            await running.serve_forever()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        pass
    return 0


def client_main(argv=None) -> int:
    """Run many clients; each one that closes is replaced by a new one with its id."""
    parser = argparse.ArgumentParser(prog="framing-client")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--clients", type=int, default=10000)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    queue = PseudoQueue()

    async def keep_alive(client_id: int) -> None:
        while True:
            await FramingClient(client_id, args.host, args.port, queue).run()

    async def run_all() -> None:
        await asyncio.gather(*(keep_alive(i) for i in range(1, args.clients + 1)))

    try:
        asyncio.run(run_all())
    except KeyboardInterrupt:
        pass
    return 0