from __future__ import annotations

import re
import socket
import threading
import time
from dataclasses import dataclass
from typing import Any

import requests
from bs4 import UnicodeDammit
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.poolmanager import ProxyManager


DEFAULT_TIMEOUT_SECONDS = 25.0

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; StockChecker/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate, br",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

_CHUNK_SIZE = 16 * 1024

_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.IGNORECASE)

# Watchdog for the request running on the current thread, if any.
_active = threading.local()


class FetchTimeout(requests.Timeout):
    """The request was aborted because its deadline passed."""


@dataclass(frozen=True)
class FetchResult:
    url: str
    status_code: int
    reason: str
    ok: bool
    text: str
    elapsed_ms: int


class Deadline:
    """Monotonic time budget shared by every phase of one request."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return self._expires_at - time.monotonic()

    def expired(self) -> bool:
        return self.remaining() <= 0


class _Watchdog:
    """Shuts down the sockets of one request when its deadline passes.

    A blocked recv() only wakes up on shutdown(), so closing the session or
    response from the timer thread is not enough.
    """

    def __init__(self, deadline: Deadline) -> None:
        self._deadline = deadline
        self._lock = threading.Lock()
        self._socks: list[socket.socket] = []
        self.fired = False
        self._timer = threading.Timer(max(0.0, deadline.remaining()), self._fire)
        self._timer.daemon = True

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    def track(self, sock: socket.socket | None) -> None:
        if sock is None:
            return
        with self._lock:
            self._socks.append(sock)
            fired = self.fired
        if fired:
            self._abort(sock)

    def timed_out(self) -> bool:
        return self.fired or self._deadline.expired()

    def _fire(self) -> None:
        with self._lock:
            self.fired = True
            socks = list(self._socks)
        for sock in socks:
            self._abort(sock)

    @staticmethod
    def _abort(sock: socket.socket) -> None:
        try:
            # Raw shutdown; SSLSocket.shutdown would also drop the TLS object
            # out from under the reading thread.
            socket.socket.shutdown(sock, socket.SHUT_RDWR)
        except OSError:
            pass


def _track(sock: socket.socket | None) -> None:
    watchdog = getattr(_active, "watchdog", None)
    if watchdog is not None:
        watchdog.track(sock)


class _WatchedHTTPConnection(HTTPConnection):
    def connect(self) -> None:
        super().connect()
        _track(self.sock)


class _WatchedHTTPSConnection(HTTPSConnection):
    def connect(self) -> None:
        super().connect()
        _track(self.sock)


class _WatchedPoolMixin:
    def _get_conn(self, timeout: float | None = None) -> Any:
        conn = super()._get_conn(timeout)
        # Reused keep-alive connections are already connected.
        _track(getattr(conn, "sock", None))
        return conn


class _WatchedHTTPConnectionPool(_WatchedPoolMixin, HTTPConnectionPool):
    ConnectionCls = _WatchedHTTPConnection


class _WatchedHTTPSConnectionPool(_WatchedPoolMixin, HTTPSConnectionPool):
    ConnectionCls = _WatchedHTTPSConnection


class _DeadlineAdapter(HTTPAdapter):
    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _WatchedHTTPConnectionPool,
            "https": _WatchedHTTPSConnectionPool,
        }

    def proxy_manager_for(self, proxy: str, **proxy_kwargs: Any) -> Any:
        manager = super().proxy_manager_for(proxy, **proxy_kwargs)
        # SOCKS managers bring their own connection classes.
        if isinstance(manager, ProxyManager):
            manager.pool_classes_by_scheme = {
                "http": _WatchedHTTPConnectionPool,
                "https": _WatchedHTTPSConnectionPool,
            }
        return manager


def _declared_charset(content_type: str | None) -> str | None:
    m = _CHARSET_RE.search(content_type or "")
    return m.group(1) if m else None


class HttpClient:
    def __init__(self, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS, headers: dict[str, str] | None = None) -> None:
        self._timeout_seconds = timeout_seconds
        self._headers = dict(headers or DEFAULT_HEADERS)
        self._sess: requests.Session | None = None

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def _session(self) -> requests.Session:
        if self._sess is not None:
            return self._sess
        s = requests.Session()
        adapter = _DeadlineAdapter(pool_connections=1, pool_maxsize=1)
        s.mount("http://", adapter)
        s.mount("https://", adapter)
        self._sess = s
        return s

    def fetch_text(self, url: str, *, deadline: Deadline | None = None) -> FetchResult:
        """GET ``url`` and return the decoded body.

        The deadline bounds the whole request: when it passes, the socket is
        shut down and FetchTimeout is raised, whether the request was
        connecting, waiting for headers, or streaming the body. Other
        transport errors propagate as ``requests.RequestException``.
        """
        deadline = deadline or Deadline(self._timeout_seconds)
        started = time.perf_counter()

        budget = deadline.remaining()
        if budget <= 0:
            raise FetchTimeout(f"Request to {url} aborted after {deadline.seconds:g}s")

        watchdog = _Watchdog(deadline)
        _active.watchdog = watchdog
        watchdog.start()
        try:
            resp: Response = self._session().get(
                url,
                headers=self._headers,
                timeout=(budget, budget),
                allow_redirects=True,
                stream=True,
            )
            try:
                body = self._read_body(resp, watchdog)
            finally:
                resp.close()
        except FetchTimeout:
            raise
        except Exception as e:
            # Whatever the aborted socket surfaced as, past the deadline it is a timeout.
            if isinstance(e, requests.Timeout) or watchdog.timed_out():
                raise FetchTimeout(f"Request to {url} aborted after {deadline.seconds:g}s") from e
            raise
        finally:
            watchdog.cancel()
            _active.watchdog = None

        if watchdog.fired:
            # The shutdown can surface as a clean end of body.
            raise FetchTimeout(f"Request to {url} aborted after {deadline.seconds:g}s")

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        return FetchResult(
            url=str(resp.url or url),
            status_code=resp.status_code,
            reason=resp.reason or "",
            ok=200 <= resp.status_code < 300,
            text=self._decode(body, resp.headers.get("Content-Type")),
            elapsed_ms=elapsed_ms,
        )

    @staticmethod
    def _read_body(resp: Response, watchdog: _Watchdog) -> bytes:
        chunks: list[bytes] = []
        for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
            if watchdog.timed_out():
                raise FetchTimeout(f"Request to {resp.url} aborted")
            if chunk:
                chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _decode(body: bytes, content_type: str | None) -> str:
        """Decode with the header charset, else UTF-8, else what the markup declares."""
        if not body:
            return ""
        charset = _declared_charset(content_type)
        dammit = UnicodeDammit(
            body,
            known_definite_encodings=[charset] if charset else [],
            user_encodings=["utf-8"],
            is_html=True,
        )
        if dammit.unicode_markup is None:
            return body.decode("utf-8", errors="replace")
        return dammit.unicode_markup
