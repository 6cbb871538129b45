"""Discovery of the HTTP routers and WebSocket consumers of the relay."""

import pkgutil
from importlib import import_module

from fastapi import APIRouter

from imagecast.logging import logger

# Subpackages scanned for modules exposing a module level `router`
ROUTER_PACKAGES = {
    "imagecast.api.http": "api",
    "imagecast.api.ws.consumers": "websocket consumer",
}

# Modules already logged, several apps may be built in one process
_announced: set[str] = set()


def collect_subrouters() -> APIRouter:
    """
    Collects the routers of every module in `ROUTER_PACKAGES`.

    Adding an endpoint means dropping a module with a `router` into one of
    those packages; nothing has to be registered by hand.
    """
    main_router = APIRouter()

    for package_name, kind in ROUTER_PACKAGES.items():
        package = import_module(package_name)
        for module_info in pkgutil.iter_modules(package.__path__):
            module_name = f"{package_name}.{module_info.name}"
            main_router.include_router(import_module(module_name).router)

            if module_name not in _announced:
                logger.info(f'Register "{module_info.name}" {kind}')
                _announced.add(module_name)

    return main_router
