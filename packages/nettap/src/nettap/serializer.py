"""Canonical record construction.

PUBLIC API:
  - to_canonical: Build a NetworkEventRecord from request and response data
  - stringify: Normalize a body value to text
"""

import base64
import json
import logging
from typing import Any

from nettap.models import NetworkEventRecord, PendingRequest, ResponseEnvelope

__all__ = ["to_canonical", "stringify"]

logger = logging.getLogger(__name__)


def stringify(value: Any) -> str:
    """Normalize a body value to text.

    None becomes "", strings pass through, bytes are decoded as UTF-8, anything
    else is encoded as compact JSON.

    Bytes that are not valid UTF-8 are base64-encoded. The record carries no
    flag for an encoded request body, so a collector sees base64 text; a
    warning is logged each time this happens.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(f"Body of {len(value)} bytes is not UTF-8, forwarding it base64-encoded")
            return base64.b64encode(value).decode("ascii")
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def to_canonical(request: PendingRequest, response: ResponseEnvelope) -> NetworkEventRecord:
    """Build the canonical record for one request/response pair.

    Args:
        request: Stored request-phase data
        response: Response-phase data with its resolved body

    Returns:
        Immutable record ready for the collector
    """
    return NetworkEventRecord(
        identifier=request.identifier or response.identifier,
        timestamp=request.timestamp,
        resource_type=request.resource_type,
        url=request.url or "",
        method=request.method or "",
        status=response.status,
        request_body=stringify(request.post_data),
        response_body=stringify(response.body),
        response_body_is_binary=bool(response.body_is_binary),
    )
