import asyncio
import time

from imagecast.constants import (
    PAYLOAD_LOG_PREVIEW_CHARS,
    WS_CLOSE_TIMEOUT_SECONDS,
    WS_GOING_AWAY_CODE,
    WS_SEND_FAILED_CODE,
)
from imagecast.exceptions import InvalidPayloadError, SendFailure
from imagecast.logging import logger
from imagecast.managers.connection_registry import ConnectionRegistry
from imagecast.protocols import Connection
from imagecast.schemas.image import Image, PublishAck
from imagecast.settings import app_settings
from imagecast.utils.metrics import (
    broadcast_duration_seconds,
    image_deliveries_total,
    image_publish_rejected_total,
    image_size_bytes,
    images_published_total,
    viewer_connections_total,
    viewers_active,
    viewers_pruned_total,
)


class BroadcastHub:
    """
    Holds the latest published image and pushes it to registered viewers.

    Publishes are serialized: replacing the cached image and fanning it out
    to every viewer in the registry snapshot happen as one step, and the next
    publish waits until the previous fan-out is done. Within one fan-out the
    sends run concurrently, each bounded by `send_timeout`.

    A viewer whose send fails, times out, or that already reports itself
    closed is deregistered straight away and its transport is closed, so the
    viewer side notices and can reconnect. Such failures never fail the
    publish itself.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        send_timeout: float | None = None,
    ) -> None:
        """
        Args:
            registry: Registry of viewer connections to broadcast to.
            send_timeout: Per-viewer send timeout in seconds. Defaults to
                `WS_SEND_TIMEOUT_SECONDS`.

        Raises:
            ValueError: If `send_timeout` is not greater than zero.
        """
        if send_timeout is None:
            send_timeout = app_settings.WS_SEND_TIMEOUT_SECONDS
        if send_timeout <= 0:
            raise ValueError(f"send_timeout must be positive, got {send_timeout}")

        self.registry = registry
        self.send_timeout = send_timeout
        self._latest: Image | None = None
        self._sequence = 0
        self._publish_lock = asyncio.Lock()

    @property
    def sequence(self) -> int:
        """Number of successful publishes so far."""
        return self._sequence

    def current_image(self) -> Image | None:
        """Most recently published image, or None if nothing was published."""
        return self._latest

    async def publish(self, image: Image | None) -> PublishAck:
        """
        Replaces the cached image and delivers it to every registered viewer.

        Args:
            image: The image to publish.

        Returns:
            PublishAck with the publish sequence number and how many viewers
            received the image or were pruned.

        Raises:
            InvalidPayloadError: If the image is missing or empty. The cached
                image is left unchanged.
        """
        if image is None or image.is_empty:
            image_publish_rejected_total.inc()
            raise InvalidPayloadError("Image payload is empty")

        async with self._publish_lock:
            self._latest = image
            self._sequence += 1
            sequence = self._sequence

            start_time = time.time()
            targets = self.registry.snapshot()
            failures = await asyncio.gather(
                *[self._deliver(conn, image.data) for conn in targets]
            )
            dead = [
                (conn, failure)
                for conn, failure in zip(targets, failures)
                if failure is not None
            ]
            removed = self._prune(dead)
            broadcast_duration_seconds.observe(time.time() - start_time)

        await self._close_all(removed, WS_SEND_FAILED_CODE)
        pruned = len(removed)

        images_published_total.inc()
        image_size_bytes.observe(image.size)

        delivered = len(targets) - len(dead)
        logger.info(
            f"Published image #{sequence} ({image.size} bytes, "
            f"{image.data[:PAYLOAD_LOG_PREVIEW_CHARS]!r}...) to "
            f"{delivered}/{len(targets)} viewers, pruned {pruned}"
        )

        return PublishAck(
            sequence=sequence,
            delivered=delivered,
            pruned=pruned,
            published_at=image.published_at,
        )

    async def connect(self, conn: Connection) -> bool:
        """
        Registers a viewer and sends it the cached image.

        Both steps run under the publish lock, so a joining viewer never gets
        the cached image after a newer one from a concurrent publish.

        Args:
            conn: Newly accepted viewer connection.

        Returns:
            False if the join-time delivery failed and the viewer was pruned.
        """
        async with self._publish_lock:
            self.registry.register(conn)
            viewer_connections_total.inc()
            viewers_active.set(len(self.registry))
            return await self._deliver_latest(conn)

    async def on_join(self, conn: Connection) -> bool:
        """
        Sends the cached image, if any, to an already registered viewer.

        A failed send deregisters the viewer immediately instead of waiting
        for its read loop to notice the dead transport.

        Args:
            conn: Viewer connection that was just registered.

        Returns:
            False if the delivery failed and the viewer was pruned.
        """
        async with self._publish_lock:
            return await self._deliver_latest(conn)

    def disconnect(self, conn: Connection) -> bool:
        """
        Deregisters a viewer whose transport closed.

        Returns:
            True if the viewer was still registered.
        """
        removed = self.registry.deregister(conn)
        viewers_active.set(len(self.registry))
        return removed

    def prune_closed(self) -> int:
        """
        Deregisters every viewer that reports its transport closed.

        Nothing is sent to these viewers; their transport is already gone
        and their read loop ends on its own.

        Returns:
            Number of viewers removed.
        """
        dead = [
            (conn, SendFailure(conn.connection_id, "connection closed", "closed"))
            for conn in self.registry.snapshot()
            if not conn.is_open
        ]
        return len(self._prune(dead))

    async def shutdown(self) -> None:
        """Closes and deregisters every viewer."""
        connections = self.registry.clear()
        viewers_active.set(0)
        if not connections:
            return

        logger.info(f"Closing {len(connections)} viewer connections")
        await self._close_all(connections, WS_GOING_AWAY_CODE)

    async def _close_all(self, connections: list[Connection], code: int) -> None:
        """Closes connections concurrently, each bounded by a timeout."""

        async def safe_close(conn: Connection) -> None:
            try:
                await asyncio.wait_for(
                    conn.close(code), timeout=WS_CLOSE_TIMEOUT_SECONDS
                )
            except Exception as e:
                logger.debug(f"Error closing viewer {conn.connection_id}: {e}")

        if connections:
            await asyncio.gather(*[safe_close(conn) for conn in connections])

    async def _deliver_latest(self, conn: Connection) -> bool:
        image = self._latest
        if image is None:
            return True

        failure = await self._deliver(conn, image.data)
        if failure is not None:
            removed = self._prune([(conn, failure)])
            await self._close_all(removed, WS_SEND_FAILED_CODE)
            return False
        return True

    async def _deliver(self, conn: Connection, data: str) -> SendFailure | None:
        """
        Makes exactly one delivery attempt to a single viewer.

        Returns:
            None on success, otherwise the SendFailure describing why the
            viewer must be pruned.
        """
        if not conn.is_open:
            image_deliveries_total.labels(outcome="closed").inc()
            return SendFailure(conn.connection_id, "connection closed", "closed")

        try:
            await asyncio.wait_for(conn.send(data), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            image_deliveries_total.labels(outcome="timeout").inc()
            return SendFailure(
                conn.connection_id,
                f"send timed out after {self.send_timeout}s",
                "timeout",
            )
        except Exception as e:
            # Any transport error means the viewer is gone
            image_deliveries_total.labels(outcome="error").inc()
            return SendFailure(
                conn.connection_id, str(e) or type(e).__name__, "error"
            )

        image_deliveries_total.labels(outcome="delivered").inc()
        return None

    def _prune(
        self, dead: list[tuple[Connection, SendFailure]]
    ) -> list[Connection]:
        """
        Deregisters failed viewers.

        Returns:
            The connections this call removed. Viewers that were already
            deregistered elsewhere are left out, their owner closes them.
        """
        removed = []
        for conn, failure in dead:
            if not self.registry.deregister(conn):
                continue
            removed.append(conn)
            viewers_pruned_total.labels(reason=failure.kind).inc()
            logger.warning(f"Pruned viewer: {failure.message}")

        if removed:
            viewers_active.set(len(self.registry))
        return removed
