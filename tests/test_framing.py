import asyncio
import random

import pytest

from tcpkit.framing import (
    HEADER_SIZE,
    MAX_BODY_LEN,
    FramingClient,
    FramingError,
    FramingServer,
    PkgHeader,
    PseudoQueue,
    read_package,
)


def test_header_size_is_three_uint32():
    assert HEADER_SIZE == 12
    assert len(PkgHeader(5, 6, 7).pack()) == HEADER_SIZE


def test_header_round_trip():
    header = PkgHeader(body_len=MAX_BODY_LEN, check_sum=123, other=456)
    assert PkgHeader.unpack(header.pack()) == header


def test_header_wire_layout_little_endian():
    assert PkgHeader(1, 0, 0).pack() == b"\x01" + bytes(11)


def test_unpack_wrong_size_raises():
    with pytest.raises(FramingError):
        PkgHeader.unpack(b"\x00" * (HEADER_SIZE - 1))


def test_pack_out_of_range_raises():
    with pytest.raises(FramingError):
        PkgHeader(body_len=-1).pack()


def test_pseudo_queue_packages_are_valid():
    queue = PseudoQueue(random.Random(0))
    results = [queue.recv() for _ in range(200)]
    packages = [r for r in results if r is not None]
    assert any(r is None for r in results)
    assert packages
    for header, body in packages:
        assert 0 <= header.body_len <= MAX_BODY_LEN
        assert len(body) == header.body_len


@pytest.mark.asyncio
async def test_read_package_from_stream():
    reader = asyncio.StreamReader()
    reader.feed_data(PkgHeader(3, 9, 0).pack() + b"abc")
    reader.feed_eof()
    header, body = await read_package(reader)
    assert header == PkgHeader(3, 9, 0)
    assert body == b"abc"


@pytest.mark.asyncio
async def test_read_package_rejects_large_body():
    reader = asyncio.StreamReader()
    reader.feed_data(PkgHeader(MAX_BODY_LEN + 1).pack())
    reader.feed_eof()
    with pytest.raises(FramingError):
        await read_package(reader)


@pytest.mark.asyncio
async def test_read_package_truncated_body():
    reader = asyncio.StreamReader()
    reader.feed_data(PkgHeader(10).pack() + b"xy")
    reader.feed_eof()
    with pytest.raises(asyncio.IncompleteReadError):
        await read_package(reader)


@pytest.mark.asyncio
async def test_client_and_server_exchange_packages():
    running = await FramingServer("127.0.0.1", 0).start()
    port = running.sockets[0].getsockname()[1]
    try:
        client = FramingClient(
            1, "127.0.0.1", port, PseudoQueue(random.Random(1)),
            max_packages=5, idle_delay=0,
        )
        count = await asyncio.wait_for(client.run(), 5)
        assert count == 5
        assert client.error is None
        assert client.last_response.body_len <= MAX_BODY_LEN
    finally:
        running.close()
        await running.wait_closed()


@pytest.mark.asyncio
async def test_server_closes_on_oversized_body():
    running = await FramingServer("127.0.0.1", 0).start()
    port = running.sockets[0].getsockname()[1]
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(PkgHeader(MAX_BODY_LEN + 1).pack())
        await writer.drain()
        data = await asyncio.wait_for(reader.read(100), 5)
        assert data == b""
        writer.close()
    finally:
        running.close()
        await running.wait_closed()


@pytest.mark.asyncio
async def test_client_records_connect_error():
    running = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
    port = running.sockets[0].getsockname()[1]
    running.close()
    await running.wait_closed()
    client = FramingClient(2, "127.0.0.1", port, PseudoQueue(random.Random(2)))
    assert await client.run() == 0
    assert client.error