"""Browser-level DevTools connection shared by all observed tabs.

One WebSocket to /devtools/browser/<id> per Chrome debug port. Tabs attach
with flattened sessions; their Network.* events come back tagged with the
sessionId and are handed to the owning CDPSession. Everything else the
browser sends is either a command reply or a tab-loss notice.

PUBLIC API:
  - BrowserSession: Shared WebSocket, command replies and Network event routing
"""

import itertools
import json
import logging
import threading
from concurrent.futures import Future, TimeoutError
from typing import TYPE_CHECKING, Any

import httpx
import websocket

if TYPE_CHECKING:
    from nettap.cdp.session import CDPSession

__all__ = ["BrowserSession"]

logger = logging.getLogger(__name__)

ROUTED_PREFIX = "Network."

# Browser events after which a tab no longer delivers traffic
TAB_LOSS_EVENTS = {
    "Target.targetDestroyed": "Target destroyed",
    "Target.detachedFromTarget": "Target detached",
}
TAB_LOSS_CODE = 1001


class BrowserSession:
    """Shared DevTools WebSocket for one Chrome instance.

    Attributes:
        port: Chrome debugging port.
        host: Chrome debugging host.
    """

    def __init__(self, port: int = 9222, host: str = "localhost"):
        self.port = port
        self.host = host

        self._ws: websocket.WebSocketApp | None = None
        self._thread: threading.Thread | None = None
        self._opened = threading.Event()
        self._closing = False

        self._ids = itertools.count(1)
        self._replies: dict[int, Future] = {}
        self._tabs: dict[str, "CDPSession"] = {}
        self._lock = threading.Lock()

    @property
    def http_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        return self._opened.is_set()

    def _get_json(self, path: str) -> Any:
        resp = httpx.get(f"{self.http_url}{path}", timeout=2)
        resp.raise_for_status()
        return resp.json()

    def list_pages(self) -> list[dict]:
        """Open pages in Chrome's order (the order `nettap pages` shows).

        Raises:
            RuntimeError: If Chrome is not reachable.
        """
        try:
            targets = self._get_json("/json")
        except httpx.HTTPError as e:
            raise RuntimeError(f"Failed to list pages on port {self.port}: {e}") from e
        return [t for t in targets if t.get("type") == "page"]

    def connect(self) -> None:
        """Open the browser WebSocket and subscribe to target lifecycle events.

        Raises:
            RuntimeError: If already connected or Chrome has no browser endpoint.
            TimeoutError: If the WebSocket does not open within 5 seconds.
        """
        if self._ws:
            raise RuntimeError("Already connected")

        try:
            ws_url = self._get_json("/json/version").get("webSocketDebuggerUrl")
        except httpx.HTTPError as e:
            raise RuntimeError(f"Chrome not reachable on port {self.port}: {e}") from e
        if not ws_url:
            raise RuntimeError(f"Chrome on port {self.port} exposes no browser WebSocket")

        self._closing = False
        self._ws = websocket.WebSocketApp(
            ws_url,
            on_open=lambda ws: self._opened.set(),
            on_message=self._on_message,
            on_error=lambda ws, error: logger.error(f"Browser WebSocket error: {error}"),
            on_close=self._on_close,
        )
        self._thread = threading.Thread(
            target=self._ws.run_forever,
            kwargs={"ping_interval": 120, "ping_timeout": 60, "suppress_origin": True},
            name=f"nettap-ws-{self.port}",
            daemon=True,
        )
        self._thread.start()

        if not self._opened.wait(timeout=5):
            self.disconnect()
            raise TimeoutError(f"Browser WebSocket on port {self.port} did not open")
        logger.info(f"Connected to Chrome on port {self.port}")

        # targetDestroyed is only sent with discovery on
        try:
            self.execute("Target.setDiscoverTargets", {"discover": True})
        except (RuntimeError, TimeoutError) as e:
            logger.warning(f"Tab close detection unavailable: {e}")

    def disconnect(self) -> None:
        """Close the WebSocket. Attached tabs are not notified."""
        self._closing = True
        with self._lock:
            ws, self._ws = self._ws, None
        if ws:
            ws.close()

        thread, self._thread = self._thread, None
        if thread and thread.is_alive():
            thread.join(timeout=2)
        self._opened.clear()

    def attach(self, target_id: str) -> str:
        """Attach to a page target with a flattened session.

        Returns:
            sessionId for the target
        """
        return self.execute("Target.attachToTarget", {"targetId": target_id, "flatten": True})["sessionId"]

    def detach(self, session_id: str) -> None:
        try:
            self.execute("Target.detachFromTarget", {"sessionId": session_id})
        except (RuntimeError, TimeoutError) as e:
            logger.debug(f"Detach of {session_id[:8]} failed: {e}")

    def _submit(self, method: str, params: dict | None, session_id: str | None) -> tuple[int, Future]:
        ws = self._ws
        if not ws:
            raise RuntimeError("Not connected")

        msg_id = next(self._ids)
        reply: Future = Future()
        with self._lock:
            self._replies[msg_id] = reply

        message: dict[str, Any] = {"id": msg_id, "method": method, "params": params or {}}
        if session_id:
            message["sessionId"] = session_id
        ws.send(json.dumps(message))
        return msg_id, reply

    def send(self, method: str, params: dict | None = None, session_id: str | None = None) -> Future:
        """Send a command without waiting.

        Returns:
            Future resolved with the command's result

        Raises:
            RuntimeError: If not connected.
        """
        return self._submit(method, params, session_id)[1]

    def execute(
        self, method: str, params: dict | None = None, session_id: str | None = None, timeout: float = 30
    ) -> Any:
        """Send a command and wait for its result.

        Raises:
            RuntimeError: If not connected or Chrome answers with an error.
            TimeoutError: If no reply arrives within timeout.
        """
        msg_id, reply = self._submit(method, params, session_id)
        try:
            return reply.result(timeout=timeout)
        except TimeoutError:
            with self._lock:
                self._replies.pop(msg_id, None)
            raise TimeoutError(f"Command {method} timed out after {timeout}s")

    def register_session(self, session_id: str, cdp: "CDPSession") -> None:
        """Route Network events tagged with session_id to cdp."""
        with self._lock:
            self._tabs[session_id] = cdp

    def unregister_session(self, session_id: str) -> None:
        with self._lock:
            self._tabs.pop(session_id, None)

    def _on_message(self, ws, message: str) -> None:
        try:
            data = json.loads(message)
        except ValueError as e:
            logger.error(f"Unreadable message from Chrome: {e}")
            return

        if "id" in data:
            self._settle(data)
            return

        method = data.get("method", "")
        if method.startswith(ROUTED_PREFIX):
            self._route(data)
        elif method in TAB_LOSS_EVENTS:
            self._tab_lost(method, data.get("params", {}))

    def _settle(self, reply: dict) -> None:
        with self._lock:
            future = self._replies.pop(reply["id"], None)
        if future is None:
            return
        if "error" in reply:
            future.set_exception(RuntimeError(reply["error"]))
        else:
            future.set_result(reply.get("result", {}))

    def _route(self, event: dict) -> None:
        session_id = event.get("sessionId")
        if not session_id:
            return
        with self._lock:
            cdp = self._tabs.get(session_id)
        if cdp is not None:
            cdp._handle_event(event)

    def _tab_lost(self, method: str, params: dict) -> None:
        """Unregister tabs named by a tab-loss event and notify them."""
        with self._lock:
            if method == "Target.targetDestroyed":
                lost = [(sid, cdp) for sid, cdp in self._tabs.items() if cdp.chrome_target_id == params.get("targetId")]
            else:
                sid = params.get("sessionId")
                lost = [(sid, self._tabs[sid])] if sid in self._tabs else []
            for sid, _ in lost:
                del self._tabs[sid]

        self._notify_gone(lost, TAB_LOSS_CODE, TAB_LOSS_EVENTS[method])

    def _on_close(self, ws, code, reason) -> None:
        """Fail waiting commands; on an unexpected close, every tab is lost."""
        expected = self._closing
        self._opened.clear()
        logger.info(f"Browser WebSocket on port {self.port} closed: code={code} reason={reason}")

        with self._lock:
            self._ws = None
            replies, self._replies = self._replies, {}
            lost = [] if expected else list(self._tabs.items())
            if not expected:
                self._tabs.clear()

        error = RuntimeError(f"Browser connection closed: {reason or 'Unknown'}")
        for future in replies.values():
            future.set_exception(error)

        self._notify_gone(lost, code or TAB_LOSS_CODE, reason or "Browser connection closed")

    def _notify_gone(self, lost: list[tuple[str, "CDPSession"]], code: int, reason: str) -> None:
        # Off the WebSocket thread: the callback detaches, which sends commands
        for session_id, cdp in lost:
            threading.Thread(
                target=cdp.notify_gone, args=(code, reason), name=f"nettap-gone-{session_id[:8]}", daemon=True
            ).start()
