"""Concurrency-safe set of live viewer connections."""

import threading

from imagecast.logging import logger
from imagecast.protocols import Connection


class ConnectionRegistry:
    """
    Registry of currently connected viewers, keyed by connection id.

    All methods are synchronous and hold the internal lock only for a single
    dict operation, so joining and leaving viewers are never blocked by a
    broadcast in progress. Broadcasts iterate over `snapshot()` copies.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def register(self, conn: Connection) -> None:
        """
        Adds a viewer connection.

        Registering the same identity again overwrites the previous entry.

        Args:
            conn: The connection to add.
        """
        with self._lock:
            self._connections[conn.connection_id] = conn
            total = len(self._connections)

        logger.debug(
            f"Viewer {conn.connection_id} registered ({total} connected)"
        )

    def deregister(self, conn: Connection) -> bool:
        """
        Removes a viewer connection if present.

        Only removes the entry if it still refers to `conn`, so a stale
        handle never evicts a newer registration that reused its identity.

        Args:
            conn: The connection to remove.

        Returns:
            True if the connection was registered and has been removed.
        """
        with self._lock:
            current = self._connections.get(conn.connection_id)
            if current is not conn:
                return False
            del self._connections[conn.connection_id]
            total = len(self._connections)

        logger.debug(
            f"Viewer {conn.connection_id} deregistered ({total} connected)"
        )
        return True

    def snapshot(self) -> list[Connection]:
        """
        Point-in-time copy of all registered connections.

        Returns:
            List that is safe to iterate while other tasks register or
            deregister viewers.
        """
        with self._lock:
            return list(self._connections.values())

    def clear(self) -> list[Connection]:
        """
        Removes every connection.

        Returns:
            The connections that were registered.
        """
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        return connections

    def __contains__(self, conn: object) -> bool:
        connection_id = getattr(conn, "connection_id", None)
        with self._lock:
            return self._connections.get(connection_id) is conn  # type: ignore[arg-type]

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)
