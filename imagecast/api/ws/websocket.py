import uuid
from typing import Any

from starlette import status
from starlette.endpoints import WebSocketEndpoint
from starlette.websockets import WebSocket, WebSocketState

from imagecast.logging import clear_log_context, logger, set_log_context
from imagecast.managers.broadcast_hub import BroadcastHub


class WebSocketConnection:
    """
    Adapts a Starlette `WebSocket` to the `Connection` protocol.

    Each accepted viewer gets a random connection id; the registry keys on it.
    """

    def __init__(self, websocket: WebSocket, connection_id: str | None = None):
        self.websocket = websocket
        self.connection_id = connection_id or str(uuid.uuid4())

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, data: str) -> None:
        await self.websocket.send_text(data)

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE) -> None:
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        await self.websocket.close(code=code)

    def __repr__(self) -> str:
        return f"WebSocketConnection({self.connection_id!r})"


class ViewerWebSocketEndpoint(WebSocketEndpoint):  # type: ignore[misc]
    """
    WebSocket endpoint for image viewers.

    Handles the viewer connection lifecycle: on connect the viewer is
    registered with the broadcast hub and receives the cached image, the
    receive loop then only serves to detect the close, and on disconnect the
    viewer is deregistered. Viewers send no meaningful data upstream.
    """

    encoding = None

    @property
    def hub(self) -> BroadcastHub:
        """Broadcast hub of the application serving this endpoint."""
        return self.scope["app"].state.hub

    async def on_connect(self, websocket: WebSocket) -> None:
        """
        Accepts the viewer and hands it to the broadcast hub.

        The viewer id is bound to the log context of this connection task,
        so every log line about this viewer carries it.

        If the join-time delivery of the cached image fails, the hub has
        already pruned and closed the viewer; the receive loop then ends on
        the disconnect message.
        """
        await super().on_connect(websocket)

        self.connection = WebSocketConnection(websocket)
        set_log_context(viewer_id=self.connection.connection_id)
        client = websocket.client
        logger.debug(
            f"Viewer {self.connection.connection_id} connected from "
            f"{client.host if client else 'unknown'}"
        )

        if not await self.hub.connect(self.connection):
            logger.debug(
                f"Join-time delivery to viewer {self.connection.connection_id} "
                "failed"
            )

    async def decode(self, websocket: WebSocket, message: dict[str, Any]) -> Any:
        """Returns the raw frame payload, text or bytes."""
        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes") or b""

    async def on_receive(self, websocket: WebSocket, data: Any) -> None:
        """Ignores inbound frames; viewers only listen."""
        logger.debug(
            f"Ignoring {len(data)} byte frame from viewer "
            f"{self.connection.connection_id}"
        )

    async def on_disconnect(self, websocket: WebSocket, close_code: int) -> None:
        """
        Deregisters the viewer.

        Deregistration runs before anything is awaited, so it also happens
        when the connection task is being cancelled.
        """
        connection = getattr(self, "connection", None)
        if connection is None:
            return

        self.hub.disconnect(connection)
        logger.debug(
            f"Viewer {connection.connection_id} disconnected with code "
            f"{close_code}"
        )
        clear_log_context()
