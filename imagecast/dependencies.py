"""
Dependency injection for the HTTP endpoints.

The connection registry and the broadcast hub are created by
`imagecast.application()` and stored on `app.state`; these dependencies hand
the instances of the serving application to the endpoints. Tests can
override them using `app.dependency_overrides`.

Example:
    ```python
    from fastapi import APIRouter
    from imagecast.dependencies import HubDep

    router = APIRouter()

    @router.get("/viewers")
    async def viewers(hub: HubDep) -> int:
        return len(hub.registry)
    ```
"""

from typing import Annotated

from fastapi import Depends, Request

from imagecast.managers.broadcast_hub import BroadcastHub
from imagecast.managers.connection_registry import ConnectionRegistry


def get_hub(request: Request) -> BroadcastHub:
    """
    Get the broadcast hub of the serving application.

    Returns:
        BroadcastHub stored on app.state.
    """
    return request.app.state.hub


def get_registry(request: Request) -> ConnectionRegistry:
    """
    Get the viewer connection registry of the serving application.

    Returns:
        ConnectionRegistry stored on app.state.
    """
    return request.app.state.registry


HubDep = Annotated[BroadcastHub, Depends(get_hub)]
RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]
