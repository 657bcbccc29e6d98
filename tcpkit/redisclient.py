"""Redis clients: a one-shot command runner and an interactive pipelined client."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable

from .commands import compose_input_to_bulk
from .resp import ReplyItem, ReplyParseError, ReplyParser

log = logging.getLogger(__name__)

BUFFER_SIZE = 1024
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6379


class OneShotClient:
    """Connects, sends one command, returns its parsed reply and disconnects."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        self.host = host
        self.port = port

    async def execute(self, cmd) -> ReplyItem:
        """Send ``cmd`` (already RESP-encoded) and return the first complete reply.

        Raises ReplyParseError on a malformed reply and ConnectionError if the
        server closes before the reply is complete.
        """
        data = cmd.encode("utf-8") if isinstance(cmd, str) else bytes(cmd)
        reader, writer = await asyncio.open_connection(self.host, self.port)
        parser = ReplyParser()
        try:
            writer.write(data)
            await writer.drain()
            while True:
                chunk = await reader.read(BUFFER_SIZE)
                if not chunk:
                    raise ConnectionError("connection closed before reply was complete")
                done = parser.feed(chunk)
                if done:
                    return done[0]
        finally:
            writer.close()


class RedisClient:
    """Long-lived connection; commands are sent in order and replies are parsed as they arrive.

    Every reply is put on ``replies`` and passed to ``on_reply``.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        on_reply: Callable[[ReplyItem], None] | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.on_reply = on_reply if on_reply is not None else self._print_reply
        self.replies: asyncio.Queue[ReplyItem] = asyncio.Queue()
        self._reader = None
        self._writer = None
        self._receiver: asyncio.Task | None = None
        self._send_lock = asyncio.Lock()

    @property
    def prompt(self) -> str:
        return f"{self.host}:{self.port}> "

    def _print_reply(self, item: ReplyItem) -> None:
        print(item)
        print(self.prompt, end="", flush=True)

    async def start(self) -> None:
        """Connect and start receiving replies."""
        self._reader, self._writer = await asyncio.open_connection(self.host, self.port)
        self._receiver = asyncio.create_task(self._receive())

    async def _receive(self) -> None:
        parser = ReplyParser()
        try:
            while True:
                chunk = await self._reader.read(BUFFER_SIZE)
                if not chunk:
                    log.info("connection closed by server")
                    break
                for pos, c in enumerate(chunk.decode("latin-1")):
                    try:
                        done = parser.feed(c)
                    except ReplyParseError:
                        print(f"parse error at {c}, pos={pos}")
                        print(self.prompt, end="", flush=True)
                        continue
                    for item in done:
                        self.replies.put_nowait(item)
                        self.on_reply(item)
        except OSError as exc:
            print(f"recv error: {exc}")
        finally:
            self._writer.close()

    async def send(self, line) -> None:
        """Send one RESP-encoded command; commands go out in call order."""
        if self._writer is None:
            raise RuntimeError("client is not started")
        data = line.encode("utf-8") if isinstance(line, str) else bytes(line)
        async with self._send_lock:
            self._writer.write(data)
            await self._writer.drain()

    async def close(self) -> None:
        """Stop receiving and close the connection."""
        if self._receiver is not None:
            self._receiver.cancel()
            try:
                await self._receiver
            except asyncio.CancelledError:
                pass
            self._receiver = None
        if self._writer is not None:
            self._writer.close()


async def _one_shot(host: str, port: int, command: str) -> None:
    item = await OneShotClient(host, port).execute(compose_input_to_bulk(command))
    print(f"get parse result: {item}")


async def _interactive(host: str, port: int) -> None:
    client = RedisClient(host, port)
    try:
        await client.start()
    except OSError:
        print("failed to connect")
        return
    print(client.prompt, end="", flush=True)
    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            await client.send(compose_input_to_bulk(line.rstrip("\r\n")))
    finally:
        await client.close()


def main(argv=None) -> int:
    """Run one command given on the command line, or read commands from stdin."""
    parser = argparse.ArgumentParser(prog="redis-client")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("command", nargs="*", help="run this one command and exit")
    args = parser.parse_args(argv)
    try:
        if args.command:
            asyncio.run(_one_shot(args.host, args.port, " ".join(args.command)))
        else:
            asyncio.run(_interactive(args.host, args.port))
    except (OSError, ReplyParseError) as exc:
        print(f"error: {exc}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0