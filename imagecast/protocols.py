"""
Protocol classes for structural subtyping (duck typing with type safety).

Protocols define interfaces without requiring explicit inheritance. The
registry and the broadcast hub only depend on `Connection`, so tests can use
any object exposing the same members instead of a real WebSocket.

Example:
    ```python
    from imagecast.protocols import Connection


    async def push(conn: Connection, data: str) -> None:
        if conn.is_open:
            await conn.send(data)
    ```
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Protocol for a single viewer's persistent duplex transport.

    The registry holds connections only for lookup and broadcast, their
    lifecycle belongs to the routine that accepted them.
    """

    @property
    def connection_id(self) -> str:
        """Unique identity used for registry membership and removal."""
        ...

    @property
    def is_open(self) -> bool:
        """
        Whether the transport still reports itself open.

        Advisory only: a connection may report open and still fail on the
        next send.
        """
        ...

    async def send(self, data: str) -> None:
        """
        Send one text frame to the viewer.

        Raises:
            Exception: Any transport error. Callers treat every failure as
                proof that the connection is dead.
        """
        ...

    async def close(self, code: int) -> None:
        """Close the transport with the given WebSocket close code."""
        ...
