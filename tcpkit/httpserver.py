"""Tiny HTTP server that answers every request with a fixed page."""

from __future__ import annotations

import asyncio
import logging
import sys

log = logging.getLogger(__name__)

RESPONSE = b"HTTP/1.0 200 OK\r\n\r\n<html>hello from http server</html>"


class HttpServer:
    """Reads one request header block per connection and replies with RESPONSE."""

    def __init__(self, host: str = "127.0.0.1", port: int = 8080) -> None:
        self.host = host
        self.port = port

    async def start(self) -> asyncio.AbstractServer:
        """Start listening and return the running server."""
        return await asyncio.start_server(self.handle, self.host, self.port)

    async def handle(self, reader, writer) -> str | None:
        """Serve one connection; return the request line, or None on a read error."""
        try:
            request = await reader.readuntil(b"\r\n\r\n")
        except (asyncio.IncompleteReadError, asyncio.LimitOverrunError, OSError) as exc:
            log.info("recv err:%s", exc)
            writer.close()
            return None

        first_line = request.split(b"\r\n", 1)[0].decode("latin-1")
        log.info("%s", first_line)
        try:
            writer.write(RESPONSE)
            await writer.drain()
        except OSError as exc:
            log.info("send err:%s", exc)
        finally:
            writer.close()
        return first_line


async def _serve(server: HttpServer) -> None:
    running = await server.start()
    async with running:
        await running.serve_forever()


def main(argv=None) -> int:
    """Run the server: ``httpsvr ip port``."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        print("usage: httpsvr ip port")
        return 0
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        asyncio.run(_serve(HttpServer(args[0], int(args[1]))))
    except KeyboardInterrupt:
        pass
    return 0