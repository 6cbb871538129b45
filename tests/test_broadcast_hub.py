"""
Tests for the broadcast hub.

This module tests publishing, fan-out to viewers, pruning of dead viewers,
join-time delivery of the cached image and shutdown.
"""

import asyncio

import pytest
from prometheus_client import REGISTRY

from imagecast.constants import WS_GOING_AWAY_CODE, WS_SEND_FAILED_CODE
from imagecast.exceptions import InvalidPayloadError
from imagecast.managers.broadcast_hub import BroadcastHub
from imagecast.schemas.image import Image
from tests.mocks import create_mock_connection, failing_send, slow_send


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestPublish:
    """Tests for BroadcastHub.publish."""

    def test_no_image_before_first_publish(self, hub):
        """Test the cache is empty on a fresh hub."""
        assert hub.current_image() is None
        assert hub.sequence == 0

    @pytest.mark.asyncio
    async def test_publish_caches_image(self, hub, image_factory):
        """Test current_image returns exactly the published image."""
        image = image_factory()

        ack = await hub.publish(image)

        assert hub.current_image() is image
        assert ack.sequence == 1
        assert ack.delivered == 0
        assert ack.pruned == 0
        assert ack.published_at == image.published_at

    @pytest.mark.asyncio
    async def test_publish_replaces_previous_image(self, hub, image_factory):
        """Test the latest publish wins."""
        await hub.publish(image_factory("first"))
        second = image_factory("second")

        ack = await hub.publish(second)

        assert hub.current_image() is second
        assert ack.sequence == 2

    @pytest.mark.asyncio
    async def test_publish_delivers_to_all_viewers(
        self, hub, registry, image_factory
    ):
        """Test every registered viewer receives the payload once."""
        connections = [create_mock_connection() for _ in range(3)]
        for conn in connections:
            registry.register(conn)
        image = image_factory()

        ack = await hub.publish(image)

        assert ack.delivered == 3
        assert ack.pruned == 0
        for conn in connections:
            conn.send.assert_awaited_once_with(image.data)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", ["", "   ", "\n\t"])
    async def test_publish_rejects_empty_payload(
        self, hub, registry, image_factory, data
    ):
        """Test an empty payload is rejected and nothing changes."""
        conn = create_mock_connection()
        registry.register(conn)
        previous = image_factory("previous")
        await hub.publish(previous)
        conn.send.reset_mock()

        with pytest.raises(InvalidPayloadError):
            await hub.publish(Image(data=data))

        assert hub.current_image() is previous
        assert hub.sequence == 1
        conn.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_rejects_missing_image(self, hub):
        """Test publishing None is rejected before any state changes."""
        before = _sample("image_publish_rejected_total")

        with pytest.raises(InvalidPayloadError) as exc_info:
            await hub.publish(None)

        assert exc_info.value.http_status == 400
        assert hub.current_image() is None
        assert _sample("image_publish_rejected_total") == before + 1

    @pytest.mark.asyncio
    async def test_publish_prunes_failed_viewers(
        self, hub, registry, image_factory
    ):
        """Test closed and failing viewers are removed, healthy ones kept."""
        healthy = create_mock_connection()
        closed = create_mock_connection(is_open=False)
        broken = create_mock_connection(send_side_effect=failing_send())
        for conn in (healthy, closed, broken):
            registry.register(conn)
        pruned_closed = _sample("viewers_pruned_total", {"reason": "closed"})
        pruned_error = _sample("viewers_pruned_total", {"reason": "error"})

        ack = await hub.publish(image_factory("A"))

        assert ack.delivered == 1
        assert ack.pruned == 2
        assert registry.snapshot() == [healthy]
        healthy.send.assert_awaited_once_with("A")
        closed.send.assert_not_awaited()
        broken.send.assert_awaited_once_with("A")
        assert (
            _sample("viewers_pruned_total", {"reason": "closed"})
            == pruned_closed + 1
        )
        assert (
            _sample("viewers_pruned_total", {"reason": "error"})
            == pruned_error + 1
        )

    @pytest.mark.asyncio
    async def test_pruned_viewer_gets_no_later_publish(
        self, hub, registry, image_factory
    ):
        """Test a pruned viewer is never sent to again."""
        broken = create_mock_connection(send_side_effect=failing_send())
        registry.register(broken)

        await hub.publish(image_factory("A"))
        await hub.publish(image_factory("B"))

        assert broken.send.await_count == 1
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_publish_prunes_slow_viewer(self, registry, image_factory):
        """Test a viewer that does not accept a send in time is pruned."""
        hub = BroadcastHub(registry, send_timeout=0.05)
        healthy = create_mock_connection()
        stuck = create_mock_connection(send_side_effect=slow_send(5))
        registry.register(healthy)
        registry.register(stuck)
        before = _sample("viewers_pruned_total", {"reason": "timeout"})

        ack = await asyncio.wait_for(hub.publish(image_factory()), timeout=2)

        assert ack.delivered == 1
        assert ack.pruned == 1
        assert registry.snapshot() == [healthy]
        assert _sample("viewers_pruned_total", {"reason": "timeout"}) == before + 1

    @pytest.mark.asyncio
    async def test_slow_viewer_does_not_delay_others(
        self, registry, image_factory
    ):
        """Test sends within one fan-out run concurrently."""
        hub = BroadcastHub(registry, send_timeout=1)
        slow_viewers = [
            create_mock_connection(send_side_effect=slow_send(0.3))
            for _ in range(5)
        ]
        for conn in slow_viewers:
            registry.register(conn)

        loop = asyncio.get_running_loop()
        start = loop.time()
        ack = await hub.publish(image_factory())
        elapsed = loop.time() - start

        assert ack.delivered == 5
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_viewer_removed_during_fan_out_is_not_counted(
        self, hub, registry, image_factory
    ):
        """Test a viewer deregistered mid-send is not reported as pruned."""
        conn = create_mock_connection()

        async def disconnect_then_fail(data):
            hub.disconnect(conn)
            raise ConnectionResetError("gone")

        conn.send.side_effect = disconnect_then_fail
        registry.register(conn)

        ack = await hub.publish(image_factory())

        assert ack.delivered == 0
        assert ack.pruned == 0
        assert len(registry) == 0
        conn.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_publishes_are_ordered(
        self, hub, registry, image_factory
    ):
        """Test every viewer sees concurrent publishes in one order."""
        received: dict[str, list[str]] = {}
        connections = []
        for index in range(3):
            conn = create_mock_connection(connection_id=f"viewer-{index}")
            log = received.setdefault(conn.connection_id, [])

            async def record(data, log=log):
                await asyncio.sleep(0.01)
                log.append(data)

            conn.send.side_effect = record
            registry.register(conn)
            connections.append(conn)

        acks = await asyncio.gather(
            hub.publish(image_factory("first")),
            hub.publish(image_factory("second")),
        )

        assert [ack.sequence for ack in acks] == [1, 2]
        for log in received.values():
            assert log == ["first", "second"]
        assert hub.current_image().data == "second"


class TestJoin:
    """Tests for join-time delivery of the cached image."""

    @pytest.mark.asyncio
    async def test_connect_receives_cached_image(self, hub, registry, image_factory):
        """Test a new viewer gets the current image exactly once."""
        await hub.publish(image_factory("A"))
        conn = create_mock_connection()

        delivered = await hub.connect(conn)

        assert delivered is True
        assert conn in registry
        conn.send.assert_awaited_once_with("A")

    @pytest.mark.asyncio
    async def test_connect_without_image_sends_nothing(
        self, hub, registry, image_factory
    ):
        """Test a viewer joining before any publish waits for the first one."""
        conn = create_mock_connection()

        assert await hub.connect(conn) is True
        conn.send.assert_not_awaited()

        await hub.publish(image_factory("first"))

        conn.send.assert_awaited_once_with("first")

    @pytest.mark.asyncio
    async def test_connect_failure_prunes_viewer(self, hub, registry, image_factory):
        """Test a failed join-time send deregisters the viewer at once."""
        await hub.publish(image_factory())
        conn = create_mock_connection(send_side_effect=failing_send())

        delivered = await hub.connect(conn)

        assert delivered is False
        assert conn not in registry

    @pytest.mark.asyncio
    async def test_on_join_registered_viewer(self, hub, registry, image_factory):
        """Test on_join delivers the cached image to a registered viewer."""
        await hub.publish(image_factory("A"))
        conn = create_mock_connection()
        registry.register(conn)

        assert await hub.on_join(conn) is True

        conn.send.assert_awaited_once_with("A")

    @pytest.mark.asyncio
    async def test_on_join_without_image(self, hub, registry):
        """Test on_join is a no-op before the first publish."""
        conn = create_mock_connection()
        registry.register(conn)

        assert await hub.on_join(conn) is True

        conn.send.assert_not_awaited()
        assert conn in registry

    @pytest.mark.asyncio
    async def test_on_join_failure_deregisters(self, hub, registry, image_factory):
        """Test on_join prunes a viewer whose send fails."""
        await hub.publish(image_factory())
        conn = create_mock_connection(send_side_effect=failing_send())
        registry.register(conn)

        assert await hub.on_join(conn) is False

        assert conn not in registry

    @pytest.mark.asyncio
    async def test_join_during_publish_sees_latest_last(
        self, registry, image_factory
    ):
        """Test a viewer joining mid-publish never ends on a stale image."""
        hub = BroadcastHub(registry, send_timeout=1)
        await hub.publish(image_factory("old"))
        existing = create_mock_connection(send_side_effect=slow_send(0.1))
        registry.register(existing)

        joining = create_mock_connection()
        publish_task = asyncio.create_task(hub.publish(image_factory("new")))
        await asyncio.sleep(0)
        await hub.connect(joining)
        await publish_task

        sent = [call.args[0] for call in joining.send.await_args_list]
        assert sent[-1] == "new"
        assert sent.count("new") == 1


class TestViewerLifecycle:
    """Tests for disconnect, pruning and shutdown."""

    @pytest.mark.asyncio
    async def test_connect_updates_gauge(self, hub, registry):
        """Test the active viewer gauge follows the registry."""
        await hub.connect(create_mock_connection())
        await hub.connect(create_mock_connection())

        assert _sample("viewers_active") == 2

    def test_disconnect(self, hub, registry):
        """Test disconnect removes the viewer and is idempotent."""
        conn = create_mock_connection()
        registry.register(conn)

        assert hub.disconnect(conn) is True
        assert hub.disconnect(conn) is False
        assert len(registry) == 0

    def test_prune_closed(self, hub, registry):
        """Test prune_closed removes only viewers reporting closed."""
        open_conn = create_mock_connection()
        closed_conn = create_mock_connection(is_open=False)
        registry.register(open_conn)
        registry.register(closed_conn)

        assert hub.prune_closed() == 1

        assert registry.snapshot() == [open_conn]
        open_conn.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_shutdown_closes_all_viewers(self, hub, registry):
        """Test shutdown closes every viewer with going-away and clears them."""
        connections = [create_mock_connection() for _ in range(3)]
        for conn in connections:
            registry.register(conn)

        await hub.shutdown()

        assert len(registry) == 0
        for conn in connections:
            conn.close.assert_awaited_once_with(WS_GOING_AWAY_CODE)

    @pytest.mark.asyncio
    async def test_shutdown_survives_close_errors(self, hub, registry):
        """Test one failing close does not stop the others."""
        broken = create_mock_connection()
        broken.close.side_effect = RuntimeError("already closed")
        healthy = create_mock_connection()
        registry.register(broken)
        registry.register(healthy)

        await hub.shutdown()

        healthy.close.assert_awaited_once_with(WS_GOING_AWAY_CODE)
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_shutdown_without_viewers(self, hub):
        """Test shutdown with no viewers is a no-op."""
        await hub.shutdown()


class TestPrunedViewerClose:
    """Tests that pruned viewers have their transport closed."""

    @pytest.mark.asyncio
    async def test_publish_closes_timed_out_and_failed_viewers(
        self, registry, image_factory
    ):
        """Test slow and broken viewers are closed, healthy ones are not."""
        hub = BroadcastHub(registry, send_timeout=0.05)
        healthy = create_mock_connection()
        slow = create_mock_connection(send_side_effect=slow_send(1.0))
        broken = create_mock_connection(send_side_effect=failing_send())
        for conn in (healthy, slow, broken):
            registry.register(conn)

        ack = await hub.publish(image_factory())

        assert ack.pruned == 2
        slow.close.assert_awaited_once_with(WS_SEND_FAILED_CODE)
        broken.close.assert_awaited_once_with(WS_SEND_FAILED_CODE)
        healthy.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_survives_close_errors(self, hub, registry, image_factory):
        """Test a failing close neither fails the publish nor other closes."""
        first = create_mock_connection(send_side_effect=failing_send())
        first.close.side_effect = RuntimeError("socket already gone")
        second = create_mock_connection(send_side_effect=failing_send())
        registry.register(first)
        registry.register(second)

        ack = await hub.publish(image_factory())

        assert ack.pruned == 2
        second.close.assert_awaited_once_with(WS_SEND_FAILED_CODE)

    @pytest.mark.asyncio
    async def test_publish_does_not_wait_on_hanging_close(
        self, hub, registry, image_factory, monkeypatch
    ):
        """Test a close that never completes is abandoned after a timeout."""
        monkeypatch.setattr(
            "imagecast.managers.broadcast_hub.WS_CLOSE_TIMEOUT_SECONDS", 0.05
        )
        conn = create_mock_connection(send_side_effect=failing_send())
        conn.close.side_effect = slow_send(5)
        registry.register(conn)

        ack = await asyncio.wait_for(hub.publish(image_factory()), timeout=2)

        assert ack.pruned == 1

    @pytest.mark.asyncio
    async def test_failed_join_closes_viewer(self, hub, image_factory):
        """Test a viewer whose join-time send fails is closed."""
        await hub.publish(image_factory())
        conn = create_mock_connection(send_side_effect=failing_send())

        assert await hub.connect(conn) is False

        conn.close.assert_awaited_once_with(WS_SEND_FAILED_CODE)

    def test_prune_closed_does_not_close(self, hub, registry):
        """Test viewers already reporting closed are only deregistered."""
        closed = create_mock_connection(is_open=False)
        registry.register(closed)

        assert hub.prune_closed() == 1

        closed.close.assert_not_called()


class TestSendTimeout:
    """Tests for the per-viewer send timeout setting."""

    def test_default_from_settings(self, registry):
        """Test the timeout defaults to WS_SEND_TIMEOUT_SECONDS."""
        from imagecast.settings import app_settings

        hub = BroadcastHub(registry)

        assert hub.send_timeout == app_settings.WS_SEND_TIMEOUT_SECONDS

    def test_explicit_timeout_kept(self, registry):
        """Test an explicit timeout is used as given."""
        assert BroadcastHub(registry, send_timeout=0.5).send_timeout == 0.5

    @pytest.mark.parametrize("timeout", [0, 0.0, -1])
    def test_non_positive_timeout_rejected(self, registry, timeout):
        """Test a zero or negative timeout is refused, not replaced."""
        with pytest.raises(ValueError):
            BroadcastHub(registry, send_timeout=timeout)
