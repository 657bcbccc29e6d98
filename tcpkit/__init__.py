"""Asyncio networking toolkit: RESP parsing and Redis clients, SOCKS5 server and proxies, timers, framing and small clients."""

__version__ = "0.1.0"