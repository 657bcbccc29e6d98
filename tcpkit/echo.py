"""Client for an echo server: sends numbered messages and prints each reply."""

from __future__ import annotations

import argparse
import asyncio
import logging

log = logging.getLogger(__name__)

BUFFER_SIZE = 1024
MESSAGE_FORMAT = "this is message {}"


async def _timed(awaitable, timeout: float | None):
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


async def echo_session(
    host: str, port: int, count: int = 10, timeout: float | None = None
) -> list[str]:
    """Send ``count`` messages one at a time and return the replies received.

    With a ``timeout``, a write or read that takes longer ends the session.
    Raises OSError if the connection cannot be made.
    """
    reader, writer = await asyncio.open_connection(host, port)
    received: list[str] = []
    try:
        for i in range(1, count + 1):
            writer.write(MESSAGE_FORMAT.format(i).encode("utf-8"))
            await _timed(writer.drain(), timeout)
            data = await _timed(reader.read(BUFFER_SIZE), timeout)
            if not data:
                break
            text = data.decode("latin-1")
            print(f"recved: {text}")
            received.append(text)
    except asyncio.TimeoutError:
        print("time out, session will be ended")
    except OSError as exc:
        log.info("session ended: %s", exc)
    finally:
        writer.close()
    return received


def main(argv=None) -> int:
    """Talk to the echo server on 127.0.0.1 at the given port."""
    parser = argparse.ArgumentParser(prog="echo-client")
    parser.add_argument("port", type=int)
    parser.add_argument("--count", type=int, default=10)
    parser.add_argument("--timeout", type=float, default=None,
                        help="seconds allowed for each write and read")
    args = parser.parse_args(argv)
    try:
        asyncio.run(echo_session("127.0.0.1", args.port, args.count, args.timeout))
    except OSError as exc:
        print(f"connect err:{exc}")
        return 1
    return 0