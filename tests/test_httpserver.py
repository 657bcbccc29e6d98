import asyncio

import pytest

from tcpkit.httpserver import RESPONSE, HttpServer, main


class CollectingWriter:
    def __init__(self):
        self.data = b""
        self.closed = False

    def write(self, data):
        self.data += data

    async def drain(self):
        pass

    def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_handle_returns_request_line_and_replies():
    reader = asyncio.StreamReader()
    reader.feed_data(b"GET /index.html HTTP/1.1\r\nHost: localhost\r\n\r\n")
    reader.feed_eof()
    writer = CollectingWriter()
    line = await HttpServer().handle(reader, writer)
    assert line == "GET /index.html HTTP/1.1"
    assert writer.data == RESPONSE
    assert writer.closed is True


@pytest.mark.asyncio
async def test_handle_incomplete_request():
    reader = asyncio.StreamReader()
    reader.feed_data(b"GET / HTTP/1.0\r\n")
    reader.feed_eof()
    writer = CollectingWriter()
    assert await HttpServer().handle(reader, writer) is None
    assert writer.data == b""
    assert writer.closed is True


@pytest.mark.asyncio
async def test_server_over_tcp():
    server = await HttpServer("127.0.0.1", 0).start()
    port = server.sockets[0].getsockname()[1]
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET / HTTP/1.0\r\n\r\n")
        await writer.drain()
        body = await asyncio.wait_for(reader.read(), 5)
        writer.close()
        assert body == RESPONSE
        assert body.startswith(b"HTTP/1.0 200 OK\r\n\r\n")
    finally:
        server.close()


def test_main_usage(capsys):
    assert main(["127.0.0.1"]) == 0
    assert capsys.readouterr().out == "usage: httpsvr ip port\n"