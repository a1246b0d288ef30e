"""Exception types for nettap.

Failures inside event handling are absorbed and logged; these exceptions mark
the points where a failure is raised to a caller.

PUBLIC API:
  - NetTapError: Base class for nettap errors
  - BodyFetchError: Follow-up body retrieval failed
  - DispatchError: Collector rejected or never received a record
  - ConfigError: Invalid or incomplete configuration
  - StoreError: Pending request store cannot be opened
"""

__all__ = ["NetTapError", "BodyFetchError", "DispatchError", "ConfigError", "StoreError"]


class NetTapError(Exception):
    """Base class for nettap errors."""


class BodyFetchError(NetTapError):
    """Raised by a body fetcher when Chrome cannot return a body.

    Attributes:
        identifier: CDP requestId the fetch was for.
    """

    def __init__(self, identifier: str, message: str):
        super().__init__(f"Body fetch failed for {identifier}: {message}")
        self.identifier = identifier


class DispatchError(NetTapError):
    """Raised by a transport when the collector cannot be reached."""


class ConfigError(NetTapError):
    """Raised when nettap.toml is invalid or selects an unusable environment."""


class StoreError(NetTapError):
    """Raised when the pending request database cannot be opened."""
