import asyncio

import pytest

from tcpkit.commands import compose_input_to_bulk
from tcpkit.redisclient import OneShotClient, RedisClient
from tcpkit.resp import ReplyParseError


async def _start(handler):
    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


def _replying(chunks, received=None):
    async def handler(reader, writer):
        data = await reader.read(1024)
        if received is not None:
            received.append(data)
        for chunk in chunks:
            writer.write(chunk)
            await writer.drain()
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.2)
        writer.close()

    return handler


@pytest.mark.asyncio
async def test_one_shot_simple_string_and_sent_bytes():
    received = []
    server, port = await _start(_replying([b"+OK\r\n"], received))
    try:
        cmd = "*3\r\n$3\r\nset\r\n$3\r\naaa\r\n$3\r\nbbb\r\n"
        item = await asyncio.wait_for(OneShotClient("127.0.0.1", port).execute(cmd), 5)
        assert str(item) == "OK"
        assert received == [cmd.encode()]
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_one_shot_reply_split_across_reads():
    chunks = [b"*3\r\n$3\r\nfo", b"o\r\n$-1\r\n$3", b"\r\nbar\r\n"]
    server, port = await _start(_replying(chunks))
    try:
        item = await asyncio.wait_for(
            OneShotClient("127.0.0.1", port).execute(compose_input_to_bulk("keys *")), 5
        )
        assert str(item) == '["foo", (nil), "bar"]'
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_one_shot_parse_error():
    server, port = await _start(_replying([b"*x\r\n"]))
    try:
        with pytest.raises(ReplyParseError):
            await asyncio.wait_for(OneShotClient("127.0.0.1", port).execute("PING"), 5)
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_one_shot_incomplete_reply():
    server, port = await _start(_replying([b"$6\r\nfoo"]))
    try:
        with pytest.raises(ConnectionError):
            await asyncio.wait_for(OneShotClient("127.0.0.1", port).execute("PING"), 5)
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_redis_client_send_and_receive():
    received = []
    server, port = await _start(_replying([b"$3\r\nbbb\r\n"], received))
    seen = []
    client = RedisClient("127.0.0.1", port, on_reply=seen.append)
    try:
        await client.start()
        await client.send(compose_input_to_bulk("get aaa"))
        reply = await asyncio.wait_for(client.replies.get(), 5)
        assert str(reply) == '"bbb"'
        assert seen == [reply]
        assert received == [b"*2\r\n$3\r\nget\r\n$3\r\naaa\r\n"]
    finally:
        await client.close()
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_redis_client_recovers_after_parse_error():
    server, port = await _start(_replying([b"*x\r\n+OK\r\n"]))
    client = RedisClient("127.0.0.1", port, on_reply=lambda item: None)
    try:
        await client.start()
        await client.send("PING\r\n")
        reply = await asyncio.wait_for(client.replies.get(), 5)
        assert str(reply) == "OK"
    finally:
        await client.close()
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_send_before_start_raises():
    client = RedisClient("127.0.0.1", 1)
    with pytest.raises(RuntimeError):
        await client.send("PING\r\n")