"""Durable pending-request store backed by DuckDB.

Request-phase data waits here between Network.requestWillBeSent and
Network.responseReceived. One row per outstanding request id, scoped per tab so
ids reused by different tabs never collide.

PUBLIC API:
  - PendingRequestStore: put/get/remove of PendingRequest by request id
"""

import json
import logging
import threading
import time
from pathlib import Path

import duckdb

from nettap.errors import StoreError
from nettap.models import PendingRequest

__all__ = ["PendingRequestStore"]

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS pending_requests (
    scope VARCHAR NOT NULL,
    request_id VARCHAR NOT NULL,
    data VARCHAR NOT NULL,
    stored_at DOUBLE NOT NULL,
    PRIMARY KEY (scope, request_id)
)
"""


def _open(path: str) -> "duckdb.DuckDBPyConnection":
    try:
        db = duckdb.connect(path)
        db.execute(_SCHEMA)
    except duckdb.IOException as e:
        raise StoreError(f"Pending request store {path} is unavailable (in use by a running watch?): {e}") from e
    except duckdb.Error as e:
        raise StoreError(f"Cannot open pending request store {path}: {e}") from e
    return db


class PendingRequestStore:
    """Pending requests keyed by request id.

    Stores created with for_tab() share the database connection and lock of
    the store they came from.

    Attributes:
        path: Database path, ":memory:" for a throwaway store.
        scope: Tab scope of this view ("" for the root store).
    """

    def __init__(self, path: str | Path = ":memory:", scope: str = "", *, _db=None, _lock=None):
        """Open or create the store.

        Args:
            path: DuckDB database file. Parent directories are created.
            scope: Tab scope for this view.

        Raises:
            StoreError: If DuckDB cannot open the file, e.g. while another
                process holds its lock.
        """
        self.path = str(path)
        self.scope = scope

        if _db is None:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            _db = _open(self.path)
            logger.debug(f"Opened pending request store at {self.path}")

        self._db = _db
        self._lock = _lock or threading.Lock()

    def for_tab(self, tab_id: str) -> "PendingRequestStore":
        """Get a view of this store scoped to one tab.

        Args:
            tab_id: Tab identifier

        Returns:
            Store sharing this connection, keyed under tab_id
        """
        return PendingRequestStore(self.path, scope=tab_id, _db=self._db, _lock=self._lock)

    def put(self, identifier: str, request: PendingRequest) -> None:
        """Insert or overwrite the entry for identifier (last writer wins)."""
        data = json.dumps(request.to_dict())
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO pending_requests VALUES (?, ?, ?, ?)",
                [self.scope, str(identifier), data, time.time()],
            )

    def get(self, identifier: str) -> PendingRequest | None:
        """Look up the entry for identifier.

        Returns:
            PendingRequest, or None when no request was recorded for it
        """
        with self._lock:
            row = self._db.execute(
                "SELECT data FROM pending_requests WHERE scope = ? AND request_id = ?",
                [self.scope, str(identifier)],
            ).fetchone()
        if row is None:
            return None
        return PendingRequest.from_dict(json.loads(row[0]))

    def remove(self, identifier: str) -> None:
        """Delete the entry for identifier. No-op when absent."""
        with self._lock:
            self._db.execute(
                "DELETE FROM pending_requests WHERE scope = ? AND request_id = ?",
                [self.scope, str(identifier)],
            )

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            row = self._db.execute(
                "SELECT 1 FROM pending_requests WHERE scope = ? AND request_id = ?",
                [self.scope, str(identifier)],
            ).fetchone()
        return row is not None

    def identifiers(self) -> list[str]:
        """Outstanding request ids in this scope, oldest first."""
        with self._lock:
            rows = self._db.execute(
                "SELECT request_id FROM pending_requests WHERE scope = ? ORDER BY stored_at",
                [self.scope],
            ).fetchall()
        return [row[0] for row in rows]

    def count(self, all_scopes: bool = False) -> int:
        """Count outstanding entries.

        Args:
            all_scopes: Count every tab's entries instead of this scope only.
        """
        with self._lock:
            if all_scopes:
                result = self._db.execute("SELECT COUNT(*) FROM pending_requests").fetchone()
            else:
                result = self._db.execute(
                    "SELECT COUNT(*) FROM pending_requests WHERE scope = ?", [self.scope]
                ).fetchone()
        return result[0] if result else 0

    def evict_older_than(self, seconds: float, all_scopes: bool = True) -> int:
        """Drop entries stored more than `seconds` ago.

        Entries left behind by failed dispatches or responses that never
        arrived otherwise stay forever.

        Args:
            seconds: Maximum entry age
            all_scopes: Evict across every tab, not just this scope.

        Returns:
            Number of evicted entries
        """
        cutoff = time.time() - seconds
        with self._lock:
            if all_scopes:
                evicted = self._db.execute(
                    "SELECT COUNT(*) FROM pending_requests WHERE stored_at < ?", [cutoff]
                ).fetchone()[0]
                self._db.execute("DELETE FROM pending_requests WHERE stored_at < ?", [cutoff])
            else:
                evicted = self._db.execute(
                    "SELECT COUNT(*) FROM pending_requests WHERE scope = ? AND stored_at < ?",
                    [self.scope, cutoff],
                ).fetchone()[0]
                self._db.execute(
                    "DELETE FROM pending_requests WHERE scope = ? AND stored_at < ?", [self.scope, cutoff]
                )

        if evicted:
            logger.warning(f"Evicted {evicted} pending requests older than {seconds}s")
        return evicted

    def close(self) -> None:
        """Close the shared database connection."""
        with self._lock:
            self._db.close()
