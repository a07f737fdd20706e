"""
HTTP transport with connection pooling and caller-driven cancellation.

Provides:
- A pooled requests session that makes exactly one attempt per request
- A cancellation token the caller can fire from any thread
- A GET helper that returns control as soon as the token fires
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from constants import POOL_CONNECTIONS, POOL_MAXSIZE, USER_AGENT

logger = logging.getLogger(__name__)


class RequestCancelledError(Exception):
    """Raised when a request is aborted through its CancellationToken."""


class CancellationToken:
    """
    Thread-safe, one-shot cancellation signal.

    Usage:
        token = CancellationToken()
        threading.Timer(2.0, token.cancel).start()
        images = provider.get_images(item, token)

    Callbacks registered before cancellation run once, on the thread that
    calls cancel(). Callbacks registered afterwards run immediately.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Safe to call more than once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback for cancellation.

        Returns:
            Function that unregisters the callback
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)
        callback()
        return lambda: None

    def _unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise RequestCancelledError("Request cancelled")


def create_session(user_agent: str = None) -> requests.Session:
    """
    Create a pooled session for TMDB traffic.

    Retries are disabled: a failed request is reported, never repeated.

    Args:
        user_agent: Optional custom user agent

    Returns:
        Configured requests.Session
    """
    session = requests.Session()

    adapter = HTTPAdapter(
        max_retries=Retry(total=0, raise_on_status=False),
        pool_connections=POOL_CONNECTIONS,
        pool_maxsize=POOL_MAXSIZE,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "User-Agent": user_agent or USER_AGENT,
        "Accept": "application/json, image/*, */*",
    })
    return session


def _start_request(session: requests.Session, url: str, kwargs: dict) -> Future:
    """
    Run session.get on its own daemon thread.

    Each request gets a dedicated thread, so a request abandoned after
    cancellation never holds a slot that later requests wait for.
    """
    future: Future = Future()

    def _run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(session.get(url, **kwargs))
        except Exception as e:
            future.set_exception(e)

    threading.Thread(target=_run, name="tmdb-http", daemon=True).start()
    return future


def _close_late_response(future: Future) -> None:
    """Release the connection of a response nobody is waiting for anymore."""
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


def cancellable_get(
    session: requests.Session,
    url: str,
    cancel_token: Optional[CancellationToken] = None,
    **kwargs,
) -> requests.Response:
    """
    GET `url`, aborting promptly when `cancel_token` fires.

    Without a token this is a plain session.get(). With a token, the
    request runs on its own helper thread and this call returns as soon as the
    response arrives or the token is cancelled, whichever comes first.

    Args:
        session: Session to issue the request on
        url: URL to request
        cancel_token: Optional cancellation signal
        **kwargs: Additional arguments passed to session.get

    Returns:
        Response object

    Raises:
        RequestCancelledError: If the token fired before a response arrived
        requests.RequestException: On transport failure
    """
    kwargs.setdefault("timeout", None)

    if cancel_token is None:
        return session.get(url, **kwargs)

    cancel_token.raise_if_cancelled()

    wake = threading.Event()
    future = _start_request(session, url, kwargs)
    future.add_done_callback(lambda _: wake.set())
    unregister = cancel_token.register(wake.set)
    try:
        wake.wait()
    finally:
        unregister()

    if future.done():
        return future.result()

    # Cancelled while the request is still in flight
    if not future.cancel():
        logger.debug("Abandoning in-flight request after cancellation")
        future.add_done_callback(_close_late_response)
    raise RequestCancelledError("Request cancelled while in flight")


class SessionAwareComponent:
    """
    Mixin for components that optionally manage HTTP sessions.

    Provides standardized session ownership tracking and cleanup.

    Usage:
        class MyProvider(SessionAwareComponent):
            def __init__(self, session=None):
                self.init_session(session)
    """

    session: requests.Session
    _owns_session: bool

    def init_session(self, session: requests.Session = None) -> None:
        """
        Initialize session with ownership tracking.

        Args:
            session: Optional existing (host-owned) session to use
        """
        self.session = session or create_session()
        self._owns_session = session is None

    def close(self) -> None:
        """Close session if we own it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()
