"""Request and response body resolution.

Chrome leaves bodies out of network events: large request bodies are only
flagged with hasPostData, and response bodies are never included. They are
fetched by request id with follow-up CDP commands. A failed fetch never drops
the record; it degrades to an empty body.

PUBLIC API:
  - BodyResolver: Fill in request and response bodies
  - BodyResult: Outcome of a body fetch
  - BodyFetcher: Protocol for the body fetch service
  - CdpBodyFetcher: BodyFetcher issuing Network.getRequestPostData/getResponseBody
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol

from nettap.errors import BodyFetchError
from nettap.models import PendingRequest

if TYPE_CHECKING:
    from nettap.cdp import CDPSession

__all__ = ["BodyResolver", "BodyResult", "BodyFetcher", "CdpBodyFetcher"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BodyResult:
    """Outcome of a body fetch.

    Attributes:
        ok: Whether the fetch succeeded.
        body: Fetched body, None on failure.
        is_binary: Whether body is base64-encoded binary data.
        error: Failure description when ok is False.
    """

    ok: bool
    body: Any = None
    is_binary: bool = False
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> "BodyResult":
        return cls(ok=False, error=error)


class BodyFetcher(Protocol):
    """Body fetch service. Implementations raise on failure."""

    def fetch_request_body(self, tab_id: str, identifier: str) -> str | bytes: ...

    def fetch_response_body(self, tab_id: str, identifier: str) -> tuple[Any, bool]: ...


class CdpBodyFetcher:
    """Fetch bodies from the tab's CDP session.

    Attributes:
        timeout: Seconds to wait for each CDP command.
    """

    def __init__(self, session_lookup: "Callable[[str], CDPSession | None]", timeout: float = 10.0):
        """Initialize fetcher.

        Args:
            session_lookup: Returns the CDPSession for a tab id, None when detached
            timeout: Seconds to wait for each CDP command
        """
        self._session_lookup = session_lookup
        self.timeout = timeout

    def _session(self, tab_id: str, identifier: str) -> "CDPSession":
        cdp = self._session_lookup(tab_id)
        if cdp is None:
            raise BodyFetchError(identifier, f"tab {tab_id} is not attached")
        return cdp

    def fetch_request_body(self, tab_id: str, identifier: str) -> str:
        cdp = self._session(tab_id, identifier)
        result = cdp.execute("Network.getRequestPostData", {"requestId": identifier}, timeout=self.timeout)
        return result.get("postData", "")

    def fetch_response_body(self, tab_id: str, identifier: str) -> tuple[Any, bool]:
        cdp = self._session(tab_id, identifier)
        result = cdp.execute("Network.getResponseBody", {"requestId": identifier}, timeout=self.timeout)
        return result.get("body", ""), bool(result.get("base64Encoded", False))


class BodyResolver:
    """Resolves bodies omitted from captured events."""

    def __init__(self, fetcher: BodyFetcher):
        """Initialize resolver.

        Args:
            fetcher: Body fetch service
        """
        self.fetcher = fetcher

    def fetch_request_body(self, tab_id: str, identifier: str) -> BodyResult:
        """Fetch a request body, converting failures to a BodyResult."""
        try:
            body = self.fetcher.fetch_request_body(tab_id, identifier)
        except Exception as e:
            logger.warning(f"Request body fetch failed for {identifier} on {tab_id}: {e}")
            return BodyResult.failed(str(e))
        return BodyResult(ok=True, body=body)

    def fetch_response_body(self, tab_id: str, identifier: str) -> BodyResult:
        """Fetch a response body, converting failures to a BodyResult."""
        try:
            body, is_binary = self.fetcher.fetch_response_body(tab_id, identifier)
        except Exception as e:
            logger.warning(f"Response body fetch failed for {identifier} on {tab_id}: {e}")
            return BodyResult.failed(str(e))
        return BodyResult(ok=True, body=body, is_binary=is_binary)

    def resolve_request_body(self, tab_id: str, identifier: str, request: PendingRequest) -> PendingRequest:
        """Fill in post data when Chrome flagged it but left it out.

        Args:
            tab_id: Tab the request belongs to
            identifier: CDP requestId
            request: Captured request data

        Returns:
            Request with post data filled in, or unchanged when nothing was
            omitted or the fetch failed
        """
        if not request.needs_post_data:
            return request

        result = self.fetch_request_body(tab_id, identifier)
        if not result.ok:
            return request
        return request.with_post_data(result.body)

    def resolve_response_body(self, tab_id: str, identifier: str) -> BodyResult:
        """Fetch the response body. On failure the result carries empty defaults."""
        return self.fetch_response_body(tab_id, identifier)
