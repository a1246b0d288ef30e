"""Per-tab CDP session.

Attached through a BrowserSession, it receives only its own tab's events and
hands them to registered callbacks on a single worker thread, so one tab's
events are handled in arrival order and never on the WebSocket thread.

PUBLIC API:
  - CDPSession: Tab-scoped CDP client with ordered event callbacks
"""

import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from nettap.cdp.browser import BrowserSession

__all__ = ["CDPSession"]

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, dict], Any]


class CDPSession:
    """CDP session for one tab.

    Attributes:
        browser: Browser connection this session is multiplexed over.
        tab_id: Tab identifier in format "{port}:{short-id}".
        chrome_target_id: Full Chrome target ID.
        session_id: CDP sessionId once attached.
    """

    def __init__(self, browser: "BrowserSession", tab_id: str, chrome_target_id: str, timeout: float = 30):
        """Initialize session.

        Args:
            browser: Connected BrowserSession
            tab_id: Tab identifier
            chrome_target_id: Chrome target ID of the page
            timeout: Default timeout for execute()
        """
        self.browser = browser
        self.tab_id = tab_id
        self.chrome_target_id = chrome_target_id
        self.timeout = timeout
        self.session_id: str | None = None

        self._callbacks: dict[str, list[EventCallback]] = defaultdict(list)
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._disconnect_callback: Callable[[int, str], Any] | None = None

    @property
    def is_attached(self) -> bool:
        return self.session_id is not None

    def attach(self, domains: tuple[str, ...] = ("Network",)) -> str:
        """Attach to the tab and enable CDP domains.

        Args:
            domains: Domains to enable after attaching

        Returns:
            CDP sessionId

        Raises:
            RuntimeError: If already attached or Chrome rejects the attach.
        """
        if self.session_id:
            raise RuntimeError(f"Already attached to {self.tab_id}")

        session_id = self.browser.attach(self.chrome_target_id)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"nettap-{self.tab_id}")
        self.session_id = session_id
        self.browser.register_session(session_id, self)

        try:
            for domain in domains:
                self.execute(f"{domain}.enable")
        except Exception:
            self.detach()
            raise

        logger.info(f"Attached to {self.tab_id} (session {session_id[:8]})")
        return session_id

    def detach(self) -> None:
        """Detach from the tab. Queued events are still handled."""
        session_id = self.session_id
        if not session_id:
            return

        self.session_id = None
        self.browser.unregister_session(session_id)
        if self.browser.is_connected:
            self.browser.detach(session_id)

        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None

        logger.info(f"Detached from {self.tab_id}")

    def execute(self, method: str, params: dict | None = None, timeout: float | None = None) -> Any:
        """Send a CDP command to this tab and wait for its result.

        Raises:
            RuntimeError: If not attached or CDP returns an error.
            TimeoutError: If the command times out.
        """
        session_id = self.session_id
        if not session_id:
            raise RuntimeError(f"Not attached to {self.tab_id}")
        return self.browser.execute(method, params, session_id=session_id, timeout=timeout or self.timeout)

    def register_event_callback(self, method: str, callback: EventCallback) -> None:
        """Call callback(method, params) for every event named method."""
        with self._lock:
            self._callbacks[method].append(callback)

    def set_disconnect_callback(self, callback: Callable[[int, str], Any]) -> None:
        """Called with (code, reason) when the tab or browser goes away."""
        self._disconnect_callback = callback

    def notify_gone(self, code: int, reason: str) -> None:
        """Tab or browser connection was lost. Called by BrowserSession."""
        logger.info(f"Lost {self.tab_id}: {code} {reason}")
        callback = self._disconnect_callback
        if callback:
            callback(code, reason)

    def _handle_event(self, data: dict) -> None:
        """Queue an event for this tab's callbacks. Called on the WebSocket thread."""
        if data.get("sessionId") != self.session_id:
            logger.debug(f"Dropping event for session {data.get('sessionId')} on {self.tab_id}")
            return

        method = data.get("method", "")
        with self._lock:
            callbacks = list(self._callbacks.get(method, ()))
        if not callbacks:
            return

        executor = self._executor
        if executor is None:
            return

        params = data.get("params", {})
        try:
            executor.submit(self._run_callbacks, callbacks, method, params)
        except RuntimeError:
            # executor shut down between the check and submit
            logger.debug(f"Session {self.tab_id} closed, dropping {method}")

    def _run_callbacks(self, callbacks: list[EventCallback], method: str, params: dict) -> None:
        for callback in callbacks:
            try:
                callback(method, params)
            except Exception as e:
                logger.error(f"Error in {method} callback on {self.tab_id}: {e}")
