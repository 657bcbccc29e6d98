# tcpkit

A set of small asyncio networking tools built on the Python standard library
alone. It runs on Python 3.10 or later.

## What is in it

- `tcpkit.resp` parses Redis (RESP) replies one character at a time.
  `parse_reply(data)` returns the first complete reply and raises
  `ReplyParseError` on malformed or incomplete input. `ReplyParser.feed(chunk)`
  accepts data in arbitrary pieces and returns the replies each piece
  completed. Replies print the way `redis-cli` shows them, for example
  `(integer) 1`, `"foo"`, `(nil)`, `(error) ...` and `[...]`.
- `tcpkit.commands` builds requests. `compose_input_to_bulk("keys *")` returns
  `"*2\r\n$4\r\nkeys\r\n$1\r\n*\r\n"`. `InputComposer` collects the lines of
  such a request back, one line at a time.
- `tcpkit.redisclient` has two clients. `OneShotClient.execute(cmd)` connects,
  sends one encoded command and returns its parsed reply. `RedisClient` keeps
  one connection open, sends commands in order and puts each reply on its
  `replies` queue.
- `tcpkit.socks5d` is a SOCKS5 server. It offers no authentication and
  supports the CONNECT command only, with IPv4 or domain-name destinations.
- `tcpkit.proxy` is a proxy in two halves. `ProxyLocal` speaks SOCKS5 to
  clients. `ProxyServer` connects to the destinations. The traffic between
  the two halves passes through the byte-rotation `Cypher` from
  `tcpkit.cypher`, which maps each byte `b` to `(b + shift_steps) % 256`.
  This scrambles the bytes but is not encryption in any security sense.
- `tcpkit.monitored` provides `MonitoredLocal`, a local half that sends the
  status of each connection as a JSON datagram. Its `TimeoutManager` closes
  sessions that stay idle for 360 seconds and scans every 60 seconds.
- `tcpkit.monitor` receives those datagrams into a `ConnectionTable` and
  prints the table as text.
- `tcpkit.timer_queue` provides `TimerQueue`, which holds timers ordered by
  deadline, and `TimerLoop`, a small single-threaded loop that runs timer
  callbacks. A callback receives `True` if its timer was cancelled.
- `tcpkit.framing` sends and receives packages with a 12-byte `PkgHeader`
  (little-endian body length, checksum and spare field) and a body of at most
  4096 bytes. It includes an echoing `FramingServer` and a load-generating
  `FramingClient`.
- Other modules:
  - `tcpkit.httpserver` is an HTTP server that answers every request with a
    fixed page.
  - `tcpkit.httpclient` is an HTTP/HTTPS GET client. It returns the raw
    response, headers included, and does not follow redirects.
  - `tcpkit.fetcher` fetches many URLs concurrently on threads and aborts
    transfers that stay too slow. It does not follow redirects.
  - `tcpkit.echo` is an echo-server client.
  - `tcpkit.udpclient` sends UDP datagrams (`open_udp_client`).
  - `tcpkit.errors` defines custom error codes (`MyErrors`, `MyError`).

## Installation

```
pip install .
```

To install with the test tools and run the tests:

```
pip install ".[test]"
pytest
```

## Proxy configuration

Both proxy halves read a plain text file. Each setting is a line of three
words separated by spaces, `name = value`. Lines that start with `#` or `//`
are ignored. When a name appears more than once, the later value wins.

```
# proxy.conf
server_ip = 127.0.0.1
server_port = 8388
local_port = 1080
shift_steps = 3
```

`server_ip` must be an IP address. `shift_steps` must be between 0 and 256,
and both halves must use the same value. The server half listens on
`server_ip:server_port`. The local half listens on `local_port` on all
interfaces.

## Commands

Start the server half, then the local half. Then point your applications at
the local port as a SOCKS5 proxy. On Linux the server half detaches from its
terminal: it starts a new session and redirects its standard streams to the
null device.

```
tcpkit-proxy-server -c proxy.conf
tcpkit-proxy-local -c proxy.conf
```

To watch live connections, run the monitored local half in place of
`tcpkit-proxy-local`, together with the monitor. The monitor listens on
127.0.0.1:12345 by default and prints its table every second.

```
tcpkit-monitored-local -c proxy.conf
tcpkit-monitor [--host HOST] [--port PORT] [--interval SECONDS]
```

Other tools:

```
tcpkit-socks5d 1080                       # SOCKS5 server on the given port
tcpkit-httpd 127.0.0.1 8080               # fixed page for every request
tcpkit-http-get http://example.com/       # print each response and its error
tcpkit-fetch http://example.com/          # fetch URLs concurrently
tcpkit-echo 7000 [--count N] [--timeout S]    # numbered messages to 127.0.0.1:7000
tcpkit-framing-server [--host H] [--port P]   # package echo server, default 127.0.0.1:12345
tcpkit-framing-client [--clients N]           # N clients (default 10000) sending random packages
tcpkit-redis [--host H] [--port P]            # interactive client, default 127.0.0.1:6379
tcpkit-redis keys '*'                         # run one command and exit
tcpkit-timers [basic|custom|repeated|performance] [--count N] [--times N]
tcpkit-errors                                 # print a custom error message
```

## Library use

```python
from tcpkit.commands import compose_input_to_bulk
from tcpkit.resp import parse_reply

request = compose_input_to_bulk("get key")
item = parse_reply(b"*2\r\n:1\r\n$3\r\nfoo\r\n")
print(item)   # [(integer) 1, "foo"]
```

## What it does not do

- There is no graphical window or tray icon for watching connections.
  `tcpkit-monitor` only prints a plain text table to the terminal.
- The SOCKS5 tools support neither authentication, nor the BIND and UDP
  ASSOCIATE commands, nor IPv6 destination addresses.
- The HTTP client and the fetcher follow no redirects. They also do not decode
  the response body: the client returns raw bytes, headers included.
- The proxy's `Cypher` offers no confidentiality.