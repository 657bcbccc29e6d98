"""Connection table fed by UDP status datagrams from the monitored proxy."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Iterator

log = logging.getLogger(__name__)

HEADERS = ("fd", "time", "domain", "ip", "port", "sended", "recved")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 12345


@dataclass
class ConnectionRecord:
    """Status of one proxied connection; a negative fd announces its close."""

    fd: int
    start_time: int = 0
    domain: str = ""
    ip: str = ""
    port: int = 0
    sended: int = 0
    recved: int = 0


def record_to_json(record: ConnectionRecord) -> str:
    """Serialise a record into the datagram text format."""
    return (
        f'{{"fd":{record.fd}, "start_time":{record.start_time}, '
        f'"domain":{json.dumps(record.domain)}, "ip":{json.dumps(record.ip)}, '
        f'"port":{record.port}, "sended":{record.sended}, "recved":{record.recved}}}'
    )


def _int_field(data: dict, name: str) -> int:
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not value.is_integer():
        return 0
    return int(value)


def _str_field(data: dict, name: str) -> str:
    value = data.get(name)
    return value if isinstance(value, str) else ""


def record_from_json(text) -> ConnectionRecord:
    """Parse a datagram; absent or mistyped fields take their zero value."""
    if isinstance(text, (bytes, bytearray, memoryview)):
        text = bytes(text).decode("utf-8")
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("status datagram is not a JSON object")
    return ConnectionRecord(
        fd=_int_field(data, "fd"),
        start_time=_int_field(data, "start_time"),
        domain=_str_field(data, "domain"),
        ip=_str_field(data, "ip"),
        port=_int_field(data, "port"),
        sended=_int_field(data, "sended"),
        recved=_int_field(data, "recved"),
    )


def format_elapsed(now: int, start: int) -> str:
    """Format the seconds since ``start`` as MM:SS, or HH:MM:SS past an hour."""
    elapsed = int(now) - int(start)
    if elapsed <= 0:
        return "00:00"
    seconds = elapsed % 60
    minutes = elapsed // 60
    if minutes > 60:
        hours, minutes = divmod(minutes, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


class ConnectionTable:
    """Live connections keyed and ordered by fd."""

    def __init__(self) -> None:
        self._records: dict[int, ConnectionRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, fd: int) -> bool:
        return fd in self._records

    def __getitem__(self, fd: int) -> ConnectionRecord:
        return self._records[fd]

    def __iter__(self) -> Iterator[ConnectionRecord]:
        return (self._records[fd] for fd in sorted(self._records))

    def apply(self, record: ConnectionRecord) -> None:
        """Insert, update or (for a negative fd) remove a connection."""
        if record.fd < 0:
            self._records.pop(-record.fd, None)
            return
        current = self._records.get(record.fd)
        if current is None:
            self._records[record.fd] = ConnectionRecord(**vars(record))
            return
        if record.domain:
            current.domain = record.domain
        if record.start_time != 0:
            current.start_time = record.start_time
        if record.ip:
            current.ip = record.ip
        if record.port != 0:
            current.port = record.port
        if record.sended > 0:
            current.sended = record.sended
        if record.recved > 0:
            current.recved = record.recved

    def rows(self, now: int) -> list[tuple]:
        """Display rows, one per connection, in the order of HEADERS."""
        return [
            (r.fd, format_elapsed(now, r.start_time), r.domain, r.ip,
             r.port, r.sended, r.recved)
            for r in self
        ]


class MonitorProtocol(asyncio.DatagramProtocol):
    """Applies every received status datagram to a connection table."""

    def __init__(self, table: ConnectionTable | None = None) -> None:
        self.table = table if table is not None else ConnectionTable()

    def datagram_received(self, data, addr) -> None:
        try:
            record = record_from_json(data)
        except (ValueError, UnicodeDecodeError) as exc:
            log.warning("ignoring malformed datagram from %s: %s", addr, exc)
            return
        self.table.apply(record)


def _render(table: ConnectionTable, now: int) -> str:
    rows = [tuple(str(cell) for cell in row) for row in table.rows(now)]
    widths = [len(h) for h in HEADERS]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    lines = ["  ".join(h.ljust(w) for h, w in zip(HEADERS, widths))]
    lines.extend("  ".join(c.ljust(w) for c, w in zip(row, widths)) for row in rows)
    return "\n".join(lines)


async def _serve(host: str, port: int, interval: float) -> None:
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        MonitorProtocol, local_addr=(host, port)
    )
    try:
        while True:
            await asyncio.sleep(interval)
            print(_render(protocol.table, int(time.monotonic())), flush=True)
            print()
    finally:
        transport.close()


def main(argv=None) -> int:
    """Listen for status datagrams and print the connection table periodically."""
    parser = argparse.ArgumentParser(prog="proxy-monitor")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--interval", type=float, default=1.0)
    args = parser.parse_args(argv)
    try:
        asyncio.run(_serve(args.host, args.port, args.interval))
    except KeyboardInterrupt:
        pass
    return 0