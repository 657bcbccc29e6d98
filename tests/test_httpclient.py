import asyncio
import socket

import pytest

from tcpkit.httpclient import (
    AsyncHttpClient,
    UrlParts,
    build_request,
    fetch_all,
    parse_url,
)


async def _serve_once(payload):
    received = []

    async def handle(reader, writer):
        data = await reader.readuntil(b"\r\n\r\n")
        received.append(data)
        writer.write(payload)
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port, received


def _closed_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_parse_url_without_path_defaults_to_root():
    assert parse_url("http://www.example.com") == UrlParts("http", "www.example.com", "/")


def test_parse_url_keeps_path():
    parts = parse_url("https://en.example.com/w/cpp/regex/match_results")
    assert parts.protocol == "https"
    assert parts.host == "en.example.com"
    assert parts.path == "/w/cpp/regex/match_results"


@pytest.mark.parametrize("url", ["ftp://example.com/", "http://", "example.com/index.html"])
def test_parse_url_rejects_invalid(url):
    with pytest.raises(ValueError, match="invalid url"):
        parse_url(url)


def test_default_ports_follow_scheme():
    assert parse_url("http://example.com").port == 80
    assert parse_url("https://example.com").port == 443


def test_explicit_port_in_host():
    parts = parse_url("http://127.0.0.1:8080/x")
    assert parts.hostname == "127.0.0.1"
    assert parts.port == 8080
    assert parts.host == "127.0.0.1:8080"


def test_build_request_format():
    assert build_request("www.example.com", "/") == (
        "GET / HTTP/1.1\r\n"
        "Host: www.example.com\r\n"
        "Accept: */*\r\n"
        "Connection: Close\r\n\r\n"
    )


@pytest.mark.asyncio
async def test_run_fetches_whole_response():
    payload = b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello"
    server, port, received = await _serve_once(payload)
    try:
        client = AsyncHttpClient(f"http://127.0.0.1:{port}/index.html")
        response = await client.run()
    finally:
        server.close()
        await server.wait_closed()
    assert response == payload
    assert client.response == payload
    assert client.ok
    assert received == [build_request(f"127.0.0.1:{port}", "/index.html").encode()]


@pytest.mark.asyncio
async def test_run_invalid_url_sets_error():
    client = AsyncHttpClient("gopher://example.com")
    with pytest.raises(ValueError):
        await client.run()
    assert client.error == "invalid url"
    assert not client.ok


@pytest.mark.asyncio
async def test_run_connection_refused():
    client = AsyncHttpClient(f"http://127.0.0.1:{_closed_port()}/")
    with pytest.raises(OSError):
        await client.run()
    assert client.error
    assert client.response == b""


@pytest.mark.asyncio
async def test_fetch_all_calls_back_for_every_url():
    payload = b"HTTP/1.1 200 OK\r\n\r\nbody"
    server, port, _ = await _serve_once(payload)
    finished = []
    good = f"http://127.0.0.1:{port}/"
    try:
        clients = await fetch_all([good, "not a url"], finished.append)
    finally:
        server.close()
        await server.wait_closed()
    assert [c.url for c in clients] == [good, "not a url"]
    assert sorted(c.url for c in finished) == sorted([good, "not a url"])
    assert clients[0].response == payload
    assert clients[0].error == ""
    assert clients[1].error == "invalid url"