"""Data records passed between the correlator stages.

PUBLIC API:
  - PendingRequest: Request-phase data awaiting its response
  - ResponseEnvelope: Response-phase data, consumed immediately
  - NetworkEventRecord: Canonical request/response pair sent to the collector
"""

from dataclasses import dataclass, replace
from typing import Any

__all__ = ["PendingRequest", "ResponseEnvelope", "NetworkEventRecord"]


@dataclass
class PendingRequest:
    """Request-phase data captured from Network.requestWillBeSent.

    Attributes:
        identifier: CDP requestId, the sole correlation key.
        timestamp: CDP monotonic timestamp of the request.
        resource_type: CDP resource type (XHR, Fetch, Image, ...).
        url: Request URL.
        method: HTTP method.
        post_data: Request body, filled lazily when Chrome omitted it.
        has_post_data: Whether Chrome reported a body for this request.
    """

    identifier: str
    timestamp: float | None
    resource_type: str | None
    url: str
    method: str
    post_data: Any = None
    has_post_data: bool = False

    @property
    def needs_post_data(self) -> bool:
        """True when the request has a body that was left out of the event."""
        return self.has_post_data and not self.post_data

    def with_post_data(self, post_data: Any) -> "PendingRequest":
        """Return a copy with the post data filled in."""
        return replace(self, post_data=post_data)

    @classmethod
    def from_event(cls, params: dict) -> "PendingRequest":
        """Build from Network.requestWillBeSent params.

        Args:
            params: CDP event params

        Returns:
            PendingRequest for the event
        """
        request = params.get("request", {})
        return cls(
            identifier=str(params.get("requestId", "")),
            timestamp=params.get("timestamp"),
            resource_type=params.get("type"),
            url=request.get("url", ""),
            method=request.get("method", ""),
            post_data=request.get("postData"),
            has_post_data=bool(request.get("hasPostData", False)),
        )

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "timestamp": self.timestamp,
            "resource_type": self.resource_type,
            "url": self.url,
            "method": self.method,
            "post_data": self.post_data,
            "has_post_data": self.has_post_data,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingRequest":
        return cls(
            identifier=str(data.get("identifier", "")),
            timestamp=data.get("timestamp"),
            resource_type=data.get("resource_type"),
            url=data.get("url", ""),
            method=data.get("method", ""),
            post_data=data.get("post_data"),
            has_post_data=bool(data.get("has_post_data", False)),
        )


@dataclass
class ResponseEnvelope:
    """Response-phase data from Network.responseReceived plus its fetched body."""

    identifier: str
    status: int | None
    body: Any = None
    body_is_binary: bool = False

    @classmethod
    def from_event(cls, params: dict) -> "ResponseEnvelope":
        """Build from Network.responseReceived params (body is fetched later)."""
        response = params.get("response", {})
        return cls(identifier=str(params.get("requestId", "")), status=response.get("status"))


@dataclass(frozen=True)
class NetworkEventRecord:
    """Canonical, transport-ready request/response pair.

    Attributes:
        identifier: CDP requestId.
        timestamp: Request timestamp.
        resource_type: CDP resource type.
        url: Request URL.
        method: HTTP method.
        status: Response status code.
        request_body: Request body as text ("" when absent).
        response_body: Response body as text ("" when absent).
        response_body_is_binary: Whether response_body is base64-encoded.
    """

    identifier: str
    timestamp: float | None
    resource_type: str | None
    url: str
    method: str
    status: int | None
    request_body: str = ""
    response_body: str = ""
    response_body_is_binary: bool = False

    def to_payload(self) -> dict:
        """Render the collector wire format."""
        return {
            "requestId": self.identifier,
            "timestamp": self.timestamp,
            "type": self.resource_type,
            "url": self.url,
            "method": self.method,
            "status": self.status,
            "requestBody": self.request_body,
            "responseBody": self.response_body,
            "responseBodyBase64Encoded": self.response_body_is_binary,
        }
