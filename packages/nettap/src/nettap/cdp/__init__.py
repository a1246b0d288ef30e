"""Chrome DevTools Protocol client.

Browser-level WebSocket multiplexing with one session per observed tab.

PUBLIC API:
  - BrowserSession: Browser-level WebSocket with session multiplexing
  - CDPSession: Tab-scoped CDP client with ordered event callbacks
"""

from nettap.cdp.browser import BrowserSession
from nettap.cdp.session import CDPSession

__all__ = ["BrowserSession", "CDPSession"]
