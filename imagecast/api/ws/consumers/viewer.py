from fastapi import APIRouter

from imagecast.api.ws.websocket import ViewerWebSocketEndpoint
from imagecast.constants import VIEWER_WS_PATH

router = APIRouter()


@router.websocket_route(VIEWER_WS_PATH)
class Viewer(ViewerWebSocketEndpoint):
    """
    Live image viewer endpoint.

    Every connected viewer receives the most recently published image right
    after connecting and every image published afterwards as a text frame.
    """
