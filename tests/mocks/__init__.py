from tests.mocks.connection_mocks import (
    create_mock_connection,
    create_mock_websocket,
    failing_send,
    slow_send,
)
from tests.mocks.image_mocks import PNG_DATA_URL

__all__ = [
    "PNG_DATA_URL",
    "create_mock_connection",
    "create_mock_websocket",
    "failing_send",
    "slow_send",
]
