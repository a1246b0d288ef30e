"""Request/response correlation for one tab.

Network.requestWillBeSent and Network.responseReceived arrive independently,
keyed only by requestId. The correlator stores request-phase data, pairs it
with the response, resolves both bodies, and forwards the finished record.
The stored request is removed only once the collector accepted the record.

Events of one request id must be handled in arrival order. Different ids may
be handled concurrently (the monitor runs them on nettap.lanes).

Per request id:

    NO_REQUEST --request (relevant)--> REQUEST_PENDING
    NO_REQUEST --request (filtered)--> DISCARDED
    REQUEST_PENDING --response--> RESPONSE_ARRIVED --> COMPLETED
    NO_REQUEST --response--> DISCARDED (orphan)

PUBLIC API:
  - EventCorrelator: Per-tab correlation state machine
  - CorrelationState: States a request id moves through
"""

import logging
import threading
from collections import Counter
from enum import Enum

from nettap.body import BodyResolver
from nettap.dispatch import Dispatcher
from nettap.filters import ResourceFilter
from nettap.models import PendingRequest, ResponseEnvelope
from nettap.serializer import to_canonical
from nettap.store import PendingRequestStore

__all__ = ["EventCorrelator", "CorrelationState", "REQUEST_SENT", "RESPONSE_RECEIVED"]

logger = logging.getLogger(__name__)

REQUEST_SENT = "Network.requestWillBeSent"
RESPONSE_RECEIVED = "Network.responseReceived"


class CorrelationState(str, Enum):
    """State of a request id after an event was handled."""

    NO_REQUEST = "no_request"
    REQUEST_PENDING = "request_pending"
    RESPONSE_ARRIVED = "response_arrived"
    COMPLETED = "completed"
    DISCARDED = "discarded"


class EventCorrelator:
    """Pairs request and response events of a single tab.

    Attributes:
        tab_id: Tab this correlator observes.
        store: Pending requests for this tab.
        resolver: Body resolver.
        dispatcher: Record dispatcher.
        filter: Resource type filter applied to request events.
        stats: Counters of handled events by outcome.
    """

    def __init__(
        self,
        tab_id: str,
        store: PendingRequestStore,
        resolver: BodyResolver,
        dispatcher: Dispatcher,
        resource_filter: ResourceFilter | None = None,
    ):
        self.tab_id = tab_id
        self.store = store
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.filter = resource_filter or ResourceFilter()
        self.stats: Counter[str] = Counter()
        self._stats_lock = threading.Lock()

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    def snapshot(self) -> dict[str, int]:
        """Copy of the outcome counters, safe to read while events are handled."""
        with self._stats_lock:
            return dict(self.stats)

    def handle_event(self, method: str, params: dict) -> CorrelationState | None:
        """Route a CDP network event.

        Args:
            method: CDP event name
            params: CDP event params

        Returns:
            State the request id ended in, None for events that are not
            correlated
        """
        if method == REQUEST_SENT:
            return self.on_request_sent(params)
        if method == RESPONSE_RECEIVED:
            return self.on_response_received(params)
        return None

    def on_request_sent(self, params: dict) -> CorrelationState:
        """Store request-phase data for a relevant request.

        A repeated event for the same id (redirects reuse the id) overwrites the
        earlier entry.
        """
        request = PendingRequest.from_event(params)

        if not self.filter.is_relevant(request.resource_type):
            logger.debug(f"Ignoring {request.resource_type} request {request.identifier} on {self.tab_id}")
            self._count("filtered")
            return CorrelationState.DISCARDED

        if request.needs_post_data:
            request = self.resolver.resolve_request_body(self.tab_id, request.identifier, request)
            if request.needs_post_data:
                self._count("body_failures")

        try:
            self.store.put(request.identifier, request)
        except Exception as e:
            logger.error(f"Failed to store request {request.identifier} on {self.tab_id}: {e}")
            return CorrelationState.DISCARDED

        self._count("stored")
        logger.debug(f"Stored {request.method} {request.url} as {request.identifier} on {self.tab_id}")
        return CorrelationState.REQUEST_PENDING

    def on_response_received(self, params: dict) -> CorrelationState:
        """Pair a response with its stored request and dispatch the record.

        Never raises: a missing request is an orphan, body fetch failures fall
        back to an empty body, dispatch failures keep the stored request.
        """
        response = ResponseEnvelope.from_event(params)
        identifier = response.identifier

        try:
            request = self.store.get(identifier)
        except Exception as e:
            logger.error(f"Store lookup failed for {identifier} on {self.tab_id}: {e}")
            self._count("orphans")
            return CorrelationState.DISCARDED

        if request is None:
            logger.debug(f"Orphan response {identifier} on {self.tab_id}, no stored request")
            self._count("orphans")
            return CorrelationState.DISCARDED

        # RESPONSE_ARRIVED
        body = self.resolver.resolve_response_body(self.tab_id, identifier)
        if body.ok:
            response.body = body.body
            response.body_is_binary = body.is_binary
        else:
            self._count("body_failures")

        record = to_canonical(request, response)

        if not self.dispatcher.send(record):
            logger.error(f"Keeping pending request {identifier} on {self.tab_id} after failed dispatch")
            self._count("dispatch_failures")
            return CorrelationState.RESPONSE_ARRIVED

        try:
            self.store.remove(identifier)
        except Exception as e:
            logger.error(f"Failed to clear pending request {identifier} on {self.tab_id}: {e}")

        self._count("completed")
        return CorrelationState.COMPLETED
