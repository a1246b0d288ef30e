"""Delivery of finished records to the collector.

PUBLIC API:
  - Dispatcher: Send records, reporting acceptance as a bool
  - CollectorClient: HTTP transport posting records to {base_url}/events
  - Transport: Protocol for outbound transports
"""

import logging
from typing import Protocol

import httpx

from nettap.errors import DispatchError
from nettap.models import NetworkEventRecord

__all__ = ["Dispatcher", "CollectorClient", "Transport"]

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Outbound transport. Returns True only when the collector accepted the record."""

    def post_event(self, record: NetworkEventRecord) -> bool: ...


class CollectorClient:
    """HTTP client for the event collector.

    Credentials configured as headers and cookies are sent with every request.

    Attributes:
        base_url: Collector base URL (e.g. http://localhost:3000)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize collector client.

        Args:
            base_url: Collector base URL
            timeout: Request timeout in seconds
            headers: Extra headers (e.g. Authorization)
            cookies: Session cookies for the collector
            transport: Custom httpx transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            timeout=timeout,
            headers=headers or {},
            cookies=cookies or {},
            transport=transport,
        )

    @property
    def events_url(self) -> str:
        return f"{self.base_url}/events"

    def post_event(self, record: NetworkEventRecord) -> bool:
        """POST a record as JSON.

        Returns:
            True on a 2xx response, False otherwise

        Raises:
            DispatchError: On connection or protocol error
        """
        try:
            response = self._client.post(self.events_url, json=record.to_payload())
        except httpx.HTTPError as e:
            raise DispatchError(f"Failed to reach collector at {self.events_url}: {e}") from e

        if not response.is_success:
            logger.warning(f"Collector rejected {record.identifier}: HTTP {response.status_code}")
        return response.is_success

    def close(self) -> None:
        self._client.close()


class Dispatcher:
    """Hands finished records to the transport."""

    def __init__(self, transport: Transport):
        """Initialize dispatcher.

        Args:
            transport: Outbound transport
        """
        self.transport = transport

    def send(self, record: NetworkEventRecord) -> bool:
        """Send one record.

        Args:
            record: Finished record

        Returns:
            True if the collector accepted it. Transport errors are logged and
            reported as False.
        """
        try:
            accepted = bool(self.transport.post_event(record))
        except Exception as e:
            logger.error(f"Dispatch of {record.identifier} failed: {e}")
            return False

        if accepted:
            logger.info(f"Sent {record.method} {record.url} ({record.status}) as {record.identifier}")
        else:
            logger.error(f"Collector did not accept {record.identifier} ({record.method} {record.url})")
        return accepted

    @classmethod
    def from_config(cls, config) -> "Dispatcher":
        """Build a dispatcher posting to the configured collector.

        Args:
            config: NetTapConfig

        Returns:
            Dispatcher wrapping a CollectorClient
        """
        collector = config.collector
        return cls(
            CollectorClient(
                config.collector_url,
                timeout=collector.timeout,
                headers=dict(collector.headers),
                cookies=dict(collector.cookies),
            )
        )
