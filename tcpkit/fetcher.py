"""Concurrent fetching of many URLs, each body handed to its callback when done."""

from __future__ import annotations

import argparse
import http.client
import logging
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

log = logging.getLogger(__name__)

FinishCallback = Callable[[str, bytes], None]

_CHUNK = 16 * 1024


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Hands a redirect response back as-is instead of following it."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        raise urllib.error.HTTPError(req.full_url, code, msg, headers, fp)


class MultiFetcher:
    """Runs many transfers at once; a transfer slower than the limit for too long is aborted.

    Bodies are delivered as received: error statuses and redirects are not
    treated specially, and redirects are not followed.
    """

    def __init__(
        self,
        *,
        low_speed_time: float = 3.0,
        low_speed_limit: int = 10,
        max_workers: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.low_speed_time = low_speed_time
        self.low_speed_limit = low_speed_limit
        self.max_workers = max_workers
        self._clock = clock
        self._sessions: list[tuple[str, FinishCallback]] = []
        self._opener = urllib.request.build_opener(_NoRedirect)

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, url: str, callback: FinishCallback) -> None:
        """Queue ``url``; ``callback(url, body)`` runs once its transfer ends."""
        self._sessions.append((url, callback))

    def _fetch(self, url: str) -> tuple[bytes, str | None]:
        buf = bytearray()
        try:
            try:
                resp = self._opener.open(url, timeout=self.low_speed_time)
            except urllib.error.HTTPError as exc:
                resp = exc
            with resp:
                read = getattr(resp, "read1", resp.read)
                window_start = self._clock()
                window_bytes = 0
                while True:
                    chunk = read(_CHUNK)
                    if not chunk:
                        break
                    buf += chunk
                    window_bytes += len(chunk)
                    now = self._clock()
                    elapsed = now - window_start
                    if elapsed >= self.low_speed_time:
                        if window_bytes < self.low_speed_limit * elapsed:
                            raise TimeoutError(
                                f"transfer slower than {self.low_speed_limit} bytes/s "
                                f"for {self.low_speed_time} s"
                            )
                        window_start, window_bytes = now, 0
        except (OSError, ValueError, http.client.HTTPException) as exc:
            return bytes(buf), str(exc) or type(exc).__name__
        return bytes(buf), None

    def run(self) -> list[tuple[str, str | None]]:
        """Run every queued transfer; return ``(url, error or None)`` in completion order."""
        pending, self._sessions = self._sessions, []
        results: list[tuple[str, str | None]] = []
        if not pending:
            return results
        workers = self.max_workers or len(pending)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self._fetch, url): (url, cb) for url, cb in pending}
            for future in as_completed(futures):
                url, callback = futures[future]
                body, error = future.result()
                if error:
                    log.warning("transfer of %s failed: %s", url, error)
                callback(url, body)
                results.append((url, error))
        return results


def _finish(url: str, html: bytes) -> None:
    print(f"finished, url={url}, html:")


def main(argv=None) -> int:
    """Fetch the given URLs concurrently and report each as it finishes."""
    parser = argparse.ArgumentParser(prog="multi-fetch")
    parser.add_argument("urls", nargs="+")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    fetcher = MultiFetcher()
    for url in args.urls:
        fetcher.add(url, _finish)
    fetcher.run()
    return 0