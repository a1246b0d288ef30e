"""Resource type filter for captured network traffic.

Only programmatic data fetches are worth correlating; documents, scripts,
images and fonts are ignored before anything is stored.

PUBLIC API:
  - ResourceFilter: Whitelist predicate over CDP resource types
  - DEFAULT_RESOURCES: Default whitelist (XHR and Fetch)
"""

import logging
from typing import Iterable

__all__ = ["ResourceFilter", "DEFAULT_RESOURCES"]

logger = logging.getLogger(__name__)

DEFAULT_RESOURCES = ("XHR", "Fetch")


class ResourceFilter:
    """Selects which CDP resource types are correlated.

    Attributes:
        resources: Frozen set of accepted resource type names.
    """

    def __init__(self, resources: Iterable[str] | None = None):
        """Initialize filter.

        Args:
            resources: Accepted CDP resource types. Defaults to DEFAULT_RESOURCES.
        """
        self.resources = frozenset(DEFAULT_RESOURCES if resources is None else resources)
        if not self.resources:
            logger.warning("Resource filter is empty, no traffic will be forwarded")

    def is_relevant(self, resource_type: str | None) -> bool:
        """Check whether a resource type should be correlated.

        Args:
            resource_type: CDP resource type from the event (may be missing)

        Returns:
            True only for whitelisted types
        """
        return bool(resource_type) and resource_type in self.resources

    def __repr__(self) -> str:
        return f"ResourceFilter({sorted(self.resources)!r})"
