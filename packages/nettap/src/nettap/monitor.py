"""Tab monitor: attaches to chosen tabs and forwards their traffic.

Which tabs to watch is up to the caller; the monitor only manages the
lifecycle of one correlator per watched tab.

PUBLIC API:
  - TabMonitor: Watch/unwatch tabs, shared store and dispatcher
  - WatchedTab: Tracks one observed tab
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from nettap.body import BodyResolver, CdpBodyFetcher
from nettap.cdp import BrowserSession, CDPSession
from nettap.config import NetTapConfig
from nettap.correlator import REQUEST_SENT, RESPONSE_RECEIVED, EventCorrelator
from nettap.dispatch import Dispatcher
from nettap.filters import ResourceFilter
from nettap.lanes import RequestLanes
from nettap.store import PendingRequestStore
from nettap.targets import make_target, matches_target

__all__ = ["TabMonitor", "WatchedTab"]

logger = logging.getLogger(__name__)


@dataclass
class WatchedTab:
    """An observed tab.

    Attributes:
        tab_id: Tab id in format "{port}:{short-id}".
        cdp: CDPSession attached to the tab.
        correlator: Correlator fed by the tab's network events.
        lanes: Per-request-id lanes the correlator runs on.
        page_info: Page metadata from Chrome.
        attached_at: Unix timestamp when observation began.
    """

    tab_id: str
    cdp: CDPSession
    correlator: EventCorrelator
    lanes: RequestLanes
    page_info: dict
    attached_at: float


class TabMonitor:
    """Manages per-tab correlators over one browser connection.

    Attributes:
        config: Active configuration.
        browser: Browser-level CDP connection.
        store: Root pending request store (tabs get scoped views).
        dispatcher: Shared record dispatcher.
        tabs: Watched tabs keyed by tab id.
    """

    def __init__(
        self,
        config: NetTapConfig | None = None,
        browser: BrowserSession | None = None,
        store: PendingRequestStore | None = None,
        dispatcher: Dispatcher | None = None,
    ):
        self.config = config or NetTapConfig()
        capture = self.config.capture

        self.browser = browser or BrowserSession(port=capture.port, host=capture.host)
        self._owns_store = store is None
        self.store = store or PendingRequestStore(self.config.store_path)
        self.dispatcher = dispatcher or Dispatcher.from_config(self.config)
        self.filter = ResourceFilter(capture.resources)
        self.resolver = BodyResolver(CdpBodyFetcher(self.get_session, timeout=capture.fetch_timeout))
        self._pool = ThreadPoolExecutor(max_workers=capture.workers, thread_name_prefix="nettap-fetch")

        self.tabs: dict[str, WatchedTab] = {}
        self._lock = threading.RLock()

    def start(self) -> None:
        """Connect to Chrome if not connected yet.

        Raises:
            RuntimeError: If Chrome is not reachable.
            TimeoutError: If the WebSocket does not open in time.
        """
        if not self.browser.is_connected:
            self.browser.connect()

    def resolve_page(self, page: int | str) -> dict:
        """Find a page by index in `nettap pages` order or by tab id.

        Raises:
            IndexError: If the index is out of range.
            ValueError: If no page has the given tab id.
        """
        pages = self.browser.list_pages()

        if isinstance(page, int) or (isinstance(page, str) and page.isdigit()):
            index = int(page)
            if index >= len(pages):
                raise IndexError(f"Page {index} out of range ({len(pages)} pages)")
            return pages[index]

        for info in pages:
            if matches_target(self.browser.port, info, page):
                return info
        raise ValueError(f"No page matches {page}")

    def watch(self, page: int | str) -> str:
        """Start observing a tab. Idempotent for an already watched tab.

        Args:
            page: Page index or tab id

        Returns:
            Tab id of the observed page
        """
        page_info = self.resolve_page(page)
        tab_id = make_target(self.browser.port, page_info["id"])

        with self._lock:
            if tab_id in self.tabs:
                return tab_id

            cdp = CDPSession(self.browser, tab_id, page_info["id"])
            correlator = EventCorrelator(
                tab_id,
                self.store.for_tab(tab_id),
                self.resolver,
                self.dispatcher,
                self.filter,
            )
            lanes = RequestLanes(self._pool, tab_id)

            def route(method: str, params: dict) -> None:
                lanes.submit(str(params.get("requestId", "")), correlator.handle_event, method, params)

            cdp.register_event_callback(REQUEST_SENT, route)
            cdp.register_event_callback(RESPONSE_RECEIVED, route)
            cdp.set_disconnect_callback(lambda code, reason: self._handle_tab_gone(tab_id, code, reason))
            cdp.attach()

            self.tabs[tab_id] = WatchedTab(
                tab_id=tab_id,
                cdp=cdp,
                correlator=correlator,
                lanes=lanes,
                page_info=page_info,
                attached_at=time.time(),
            )

        logger.info(f"Watching {tab_id}: {page_info.get('url', '')}")
        self.evict_expired()
        return tab_id

    def unwatch(self, tab_id: str) -> bool:
        """Stop observing a tab and discard its correlator.

        Returns:
            True if the tab was watched
        """
        with self._lock:
            tab = self.tabs.pop(tab_id, None)
        if tab is None:
            return False

        tab.cdp.detach()
        logger.info(f"Stopped watching {tab_id} ({tab.correlator.snapshot()})")
        return True

    def _handle_tab_gone(self, tab_id: str, code: int, reason: str) -> None:
        logger.info(f"Tab {tab_id} went away: {code} {reason}")
        self.unwatch(tab_id)

    def get_session(self, tab_id: str) -> CDPSession | None:
        """CDPSession of a watched tab, None when not watched."""
        with self._lock:
            tab = self.tabs.get(tab_id)
        return tab.cdp if tab else None

    def watched(self) -> list[str]:
        with self._lock:
            return list(self.tabs)

    def evict_expired(self) -> int:
        """Evict pending requests older than store.pending_ttl (0 disables)."""
        ttl = self.config.store.pending_ttl
        if ttl <= 0:
            return 0
        return self.store.evict_older_than(ttl)

    def status(self) -> dict:
        """Connection, per-tab counters and pending entry count."""
        self.evict_expired()
        with self._lock:
            watched = list(self.tabs.values())
        tabs = {}
        for tab in watched:
            url = tab.page_info.get("url", "")
            tabs[tab.tab_id] = {"url": url, "in_flight": tab.lanes.active, **tab.correlator.snapshot()}
        return {
            "connected": self.browser.is_connected,
            "tabs": tabs,
            "pending": self.store.count(all_scopes=True),
        }

    def stop(self) -> None:
        """Finish in-flight work, unwatch every tab and close the browser connection."""
        with self._lock:
            tabs = list(self.tabs.values())
        for tab in tabs:
            if not tab.lanes.join(timeout=self.config.capture.fetch_timeout):
                logger.warning(f"Stopping {tab.tab_id} with {tab.lanes.active} requests still in flight")
        for tab_id in self.watched():
            self.unwatch(tab_id)
        self._pool.shutdown(wait=True)
        self.browser.disconnect()
        if self._owns_store:
            self.store.close()
