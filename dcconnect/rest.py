"""Queued REST requests to the chat API with per-bucket rate limiting."""

from __future__ import annotations

import http.client
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from .jsonutil import parse_number

logger = logging.getLogger(__name__)

API_HOST = "discord.com"
API_PREFIX = "/api/v10"
INVALID_BUCKET = "INVALID"
MAX_RETRIES = 3
RECONNECT_ATTEMPTS = 3
QUEUE_CAPACITY = 8192
RATE_LIMIT_BUFFER_MS = 250
USER_AGENT = "dcconnect (http.client)"

_POLL_INTERVAL = 0.05
_DIGITS = frozenset("0123456789")
_NETWORK_ERRORS = (OSError, http.client.HTTPException)
_METHODS_WITH_LENGTH = frozenset({"OPTIONS", "PUT", "POST"})


@dataclass(frozen=True)
class Response:
    """What a request's callback receives."""

    status: int
    reason: str
    body: str
    additional_data: str = ""


@dataclass
class Request:
    """An HTTP/1.1 request ready to be written to the connection."""

    method: str
    target: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


ResponseCallback = Callable[[Response], None]
RawReply = tuple[int, str, Mapping[str, str], str]


class _Transport(Protocol):
    def connect(self) -> None: ...

    def close(self) -> None: ...

    def send(self, request: Request) -> RawReply: ...


class _HttpsTransport:
    """A single keep-alive TLS connection to the API host."""

    def __init__(self, host: str = API_HOST, timeout: float = 30.0) -> None:
        self._host = host
        self._timeout = timeout
        self._conn: http.client.HTTPSConnection | None = None

    def connect(self) -> None:
        self._conn = http.client.HTTPSConnection(self._host, 443, timeout=self._timeout)
        self._conn.connect()

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()

    def send(self, request: Request) -> RawReply:
        if self._conn is None:
            raise ConnectionError("not connected")
        body = request.body.encode("utf-8")
        self._conn.request(
            request.method, request.target, body=body or None, headers=request.headers
        )
        reply = self._conn.getresponse()
        data = reply.read().decode("utf-8", errors="replace")
        return reply.status, reply.reason, dict(reply.getheaders()), data


def reduce_url(url: str) -> str:
    """Drop every path segment that holds a digit, leaving the route's shape."""
    kept = []
    while "/" in url:
        cut = url.find("/", 1)
        part = url if cut < 0 else url[:cut]
        if not _DIGITS.intersection(part):
            kept.append(part)
        url = "" if cut < 0 else url[cut:]
    return "".join(kept)


def parse_reset_after(text: str) -> int:
    """Read a reset-after header value as milliseconds.

    The whole seconds come before the dot; the digits after it are added
    as a count of milliseconds.
    """
    try:
        millis = parse_number(text, int) * 1000
    except ValueError:
        millis = 0
    _, dot, fraction = text.partition(".")
    if dot:
        try:
            millis += parse_number(fraction, int)
        except ValueError:
            pass
    return millis


class RateLimiter:
    """Maps routes to rate-limit buckets and tracks when limited buckets open again."""

    def __init__(self) -> None:
        self.bucket_urls: dict[str, str] = {}
        self._limits: dict[str, float] = {}

    def register_bucket(self, url: str, bucket: str) -> None:
        """Remember ``bucket`` for the route of ``url`` unless the route is known."""
        self.bucket_urls.setdefault(reduce_url(url), bucket)

    def bucket_for(self, url: str) -> str:
        return self.bucket_urls.get(reduce_url(url), INVALID_BUCKET)

    def limit(self, bucket: str, reset_after: int, now: float) -> None:
        """Block ``bucket`` for ``reset_after`` milliseconds plus a safety buffer."""
        self._limits[bucket] = now + (reset_after + RATE_LIMIT_BUFFER_MS) / 1000

    def is_limited(self, bucket: str, now: float) -> bool:
        """Whether requests to ``bucket`` must wait; an expired limit is lifted."""
        if bucket == INVALID_BUCKET:
            return False
        until = self._limits.get(bucket)
        if until is None:
            return False
        if now < until:
            return True
        del self._limits[bucket]
        logger.debug("rate-limit on bucket '%s' lifted", bucket)
        return False

    def __contains__(self, bucket: object) -> bool:
        return bucket in self._limits


class HttpClient:
    """Queues API requests and sends them, one at a time, on a worker thread."""

    def __init__(self, token: str, transport: _Transport | None = None) -> None:
        self.token = token
        self._transport: _Transport = transport if transport is not None else _HttpsTransport()
        self._limiter = RateLimiter()
        self._queue: deque[tuple[Request, ResponseCallback | None]] = deque()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    def prepare_request(
        self, method: str, url: str, content: str = "", use_api: bool = True
    ) -> Request:
        """Build the request for ``url``, relative to the API root when ``use_api``."""
        headers = {
            "Connection": "keep-alive",
            "Host": API_HOST,
            "User-Agent": USER_AGENT,
        }
        if content:
            headers["Content-Type"] = "application/json"
        headers["Authorization"] = f"Bot {self.token}"
        if content or method in _METHODS_WITH_LENGTH:
            headers["Content-Length"] = str(len(content.encode("utf-8")))
        target = (API_PREFIX if use_api else "") + url
        return Request(method, target, headers, content)

    def _push(self, entry: tuple[Request, ResponseCallback | None]) -> None:
        with self._lock:
            if len(self._queue) >= QUEUE_CAPACITY:
                logger.warning("request queue full, dropping %s %s", entry[0].method, entry[0].target)
                return
            self._queue.append(entry)

    def _pop(self) -> tuple[Request, ResponseCallback | None] | None:
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def _send_request(
        self,
        method: str,
        url: str,
        content: str,
        callback: ResponseCallback | None,
        use_api: bool = True,
    ) -> None:
        request = self.prepare_request(method, url, content, use_api)
        if callback is None and logger.isEnabledFor(logging.DEBUG):

            def callback(response: Response) -> None:
                logger.debug(
                    "%s %s [%s] --> %d %s: %s",
                    method, url, content, response.status, response.reason, response.body,
                )

        self._push((request, callback))

    def get(self, url: str, callback: ResponseCallback | None, use_api: bool = True) -> None:
        self._send_request("GET", url, "", callback, use_api)

    def post(self, url: str, content: str, callback: ResponseCallback | None = None) -> None:
        self._send_request("POST", url, content, callback)

    def delete(self, url: str) -> None:
        self._send_request("DELETE", url, "", None)

    def put(self, url: str, content: str = "") -> None:
        self._send_request("PUT", url, content, None)

    def patch(self, url: str, content: str) -> None:
        self._send_request("PATCH", url, content, None)

    def _connect(self) -> bool:
        try:
            self._transport.connect()
        except _NETWORK_ERRORS as exc:
            logger.error("Can't connect to Discord API: %s", exc)
            return False
        return True

    def _disconnect(self) -> None:
        try:
            self._transport.close()
        except _NETWORK_ERRORS as exc:
            logger.warning("Error while shutting down HTTP connection: %s", exc)

    def _reconnect_retry(self) -> bool:
        for attempt in range(RECONNECT_ATTEMPTS):
            logger.info("trying reconnect #%d...", attempt + 1)
            self._disconnect()
            if self._connect():
                logger.info("reconnect succeeded, resending request")
                return True
            wait = 2**attempt
            logger.warning("reconnect failed, waiting %d seconds...", wait)
            time.sleep(wait)
        logger.error("Could not reconnect to Discord")
        return False

    def _exchange(self, request: Request) -> RawReply | None:
        retries = 0
        while True:
            try:
                return self._transport.send(request)
            except _NETWORK_ERRORS as exc:
                logger.error(
                    "Error while sending HTTP %s request to '%s': %s",
                    request.method, request.target, exc,
                )
            if retries >= MAX_RETRIES or not self._reconnect_retry():
                logger.warning("Failed to send request, discarding")
                return None
            retries += 1

    def process_queue(self, now: float | None = None) -> None:
        """Send every queued request whose bucket is open; the rest stay queued."""
        current = time.monotonic() if now is None else now
        skipped = []
        while (entry := self._pop()) is not None:
            request, callback = entry
            bucket = self._limiter.bucket_for(request.target)
            if self._limiter.is_limited(bucket, current):
                skipped.append(entry)
                continue

            reply = self._exchange(request)
            if reply is None:
                continue
            status, reason, raw_headers, body = reply
            headers = {name.lower(): value for name, value in raw_headers.items()}
            if status == 429:
                logger.error(
                    "Got a 429 from path '%s' (bucket '%s') this should not happen.",
                    request.target, self._limiter.bucket_for(request.target),
                )

            remaining = headers.get("x-ratelimit-remaining")
            if remaining is not None:
                bucket_name = headers.get("x-ratelimit-bucket")
                if bucket_name is not None and bucket_name not in self._limiter.bucket_urls:
                    self._limiter.register_bucket(request.target, bucket_name)
                bucket = self._limiter.bucket_for(request.target)
                if remaining == "0":
                    if bucket in self._limiter:
                        logger.error(
                            "Error while processing rate-limit: already rate-limited bucket '%s'",
                            bucket,
                        )
                        skipped.append(entry)
                        continue
                    reset = headers.get("x-ratelimit-reset-after")
                    if reset is not None:
                        logger.debug("rate-limiting bucket %s for %s seconds", bucket, reset)
                        self._limiter.limit(bucket, parse_reset_after(reset), current)

            if callback is not None:
                callback(Response(status, reason, body))

        for entry in skipped:
            self._push(entry)

    def start(self) -> None:
        """Connect and start sending queued requests in the background."""
        if self._thread is not None:
            raise RuntimeError("HTTP client already started")
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="dcconnect-http", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        if not self._connect():
            return
        while not self._stop.is_set():
            self.process_queue()
            self._stop.wait(_POLL_INTERVAL)
        self._disconnect()

    def close(self) -> None:
        """Stop the worker and drop whatever is still queued."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        with self._lock:
            self._queue.clear()

    def __enter__(self) -> HttpClient:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()