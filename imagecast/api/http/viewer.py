"""Live image viewer page."""

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from imagecast.constants import VIEWER_WS_PATH
from imagecast.settings import app_settings

router = APIRouter()

VIEWER_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>Live Image Viewer</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 20px; }
        #imageDisplay { max-width: 100%; height: auto; margin-top: 20px; }
        #status { color: #666; }
    </style>
</head>
<body>
    <h1>Live Image Viewer</h1>
    <div id="status">Connecting...</div>
    <img id="imageDisplay" alt="Live Feed" />

    <script>
        const status = document.getElementById('status');
        const reconnectDelay = __RECONNECT_DELAY_MS__;
        let ws;

        function connect() {
            const scheme = window.location.protocol === 'https:' ? 'wss:' : 'ws:';
            ws = new WebSocket(`${scheme}//${window.location.host}__WS_PATH__`);

            ws.onopen = () => {
                status.textContent = 'Connected';
                status.style.color = 'green';
            };

            ws.onclose = () => {
                status.textContent = 'Disconnected - Reconnecting...';
                status.style.color = 'red';
                setTimeout(connect, reconnectDelay);
            };

            ws.onmessage = (event) => {
                document.getElementById('imageDisplay').src = event.data;
            };

            ws.onerror = (error) => {
                console.error('WebSocket error:', error);
                ws.close();
            };
        }

        connect();
    </script>
</body>
</html>
"""


def render_viewer_page() -> str:
    return VIEWER_PAGE.replace("__WS_PATH__", VIEWER_WS_PATH).replace(
        "__RECONNECT_DELAY_MS__", str(app_settings.VIEWER_RECONNECT_DELAY_MS)
    )


@router.get(
    "/",
    response_class=HTMLResponse,
    summary="Live image viewer page",
    tags=["viewer"],
)
async def viewer_page() -> HTMLResponse:
    """
    Serve the browser page that displays the live image.

    The page opens a WebSocket to the viewer endpoint, shows every received
    image and reconnects automatically when the connection drops.
    """
    return HTMLResponse(content=render_viewer_page())
