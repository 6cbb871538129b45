"""
Pytest configuration and fixtures for testing.

This module provides shared fixtures for the connection registry, the
broadcast hub and a fully wired application with its test client.
"""

import pytest
from fastapi.testclient import TestClient

from imagecast import application
from imagecast.managers.broadcast_hub import BroadcastHub
from imagecast.managers.connection_registry import ConnectionRegistry
from imagecast.schemas.image import Image

from tests.mocks import PNG_DATA_URL


@pytest.fixture
def registry():
    """
    Provides an empty ConnectionRegistry.

    Returns:
        ConnectionRegistry: Fresh registry instance
    """
    return ConnectionRegistry()


@pytest.fixture
def hub(registry):
    """
    Provides a BroadcastHub with a short send timeout.

    Args:
        registry: Registry fixture the hub broadcasts to

    Returns:
        BroadcastHub: Hub without any published image
    """
    return BroadcastHub(registry, send_timeout=0.2)


@pytest.fixture
def image_factory():
    """
    Provides a factory for Image instances.

    Returns:
        Callable[[str], Image]: Builds an Image from its payload
    """

    def _make(data: str = PNG_DATA_URL, content_type: str | None = "image/png"):
        return Image(data=data, content_type=content_type)

    return _make


@pytest.fixture
def app():
    """
    Provides a fully configured application.

    Returns:
        FastAPI: Application with its own registry and hub
    """
    return application()


@pytest.fixture
def client(app):
    """
    Provides a test client running the application lifespan.

    All HTTP requests and WebSocket sessions of one test share the same
    event loop.

    Yields:
        TestClient: Client bound to the app fixture
    """
    with TestClient(app) as test_client:
        yield test_client
