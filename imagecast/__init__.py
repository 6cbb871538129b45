# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
from asyncio import Task, create_task, gather
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from imagecast.logging import logger
from imagecast.managers.broadcast_hub import BroadcastHub
from imagecast.managers.connection_registry import ConnectionRegistry
from imagecast.middlewares.correlation_id import CorrelationIDMiddleware
from imagecast.middlewares.prometheus import PrometheusMiddleware
from imagecast.middlewares.request_size_limit import RequestSizeLimitMiddleware
from imagecast.routing import collect_subrouters
from imagecast.settings import app_settings
from imagecast.tasks.liveness_sweep import liveness_sweep_task

__version__ = "1.0.0"


async def startup(app: FastAPI) -> list[Task]:
    """
    Application startup handler.

    Starts the background tasks enabled in the settings and returns them so
    shutdown can cancel them.
    """
    logger.info("Application startup initiated")
    tasks: list[Task] = []

    if app_settings.LIVENESS_SWEEP_ENABLED:
        tasks.append(
            create_task(
                liveness_sweep_task(
                    app.state.hub, app_settings.LIVENESS_SWEEP_INTERVAL_SECONDS
                )
            )
        )
        logger.info(
            "Started liveness sweep every "
            f"{app_settings.LIVENESS_SWEEP_INTERVAL_SECONDS}s"
        )

    return tasks


async def shutdown(app: FastAPI, tasks: list[Task]) -> None:
    """
    Application shutdown handler.

    Cleanup order:
    1. Cancel and wait for background tasks
    2. Close every registered viewer connection

    Uses gather() with return_exceptions=True to handle CancelledError
    exceptions gracefully during the cancellation process.
    """
    logger.info("Application shutdown initiated")

    if tasks:
        logger.info(f"Cancelling {len(tasks)} background tasks")
        for task in tasks:
            task.cancel()
        await gather(*tasks, return_exceptions=True)
        logger.info("All background tasks completed")

    try:
        await app.state.hub.shutdown()
    except Exception as ex:
        logger.error(f"Error closing viewer connections: {ex}")

    logger.info("Application shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    tasks = await startup(app)
    try:
        yield
    finally:
        await shutdown(app, tasks)


def application() -> FastAPI:
    """
    Initializes and configures the FastAPI application.

    The connection registry and broadcast hub are created here, once per
    application, and stored on `app.state` so endpoints receive them
    explicitly through dependencies instead of module globals.

    Routers are collected by `collect_subrouters()` and the following
    middleware is added:
    - `CorrelationIDMiddleware`: request correlation IDs for logging.
    - `PrometheusMiddleware`: HTTP request metrics.
    - `RequestSizeLimitMiddleware`: rejects oversized publish bodies.
    """
    app = FastAPI(
        title="Live image relay",
        description="Publish an image over HTTP, watch it live over WebSocket",
        version=__version__,
        lifespan=lifespan,
    )

    registry = ConnectionRegistry()
    app.state.registry = registry
    app.state.hub = BroadcastHub(
        registry, send_timeout=app_settings.WS_SEND_TIMEOUT_SECONDS
    )

    app.include_router(collect_subrouters())

    # Middlewares (execute in REVERSE order of registration)
    # Execution flow: CorrelationIDMiddleware → PrometheusMiddleware → RequestSizeLimitMiddleware
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    return app


app = application()  # Need for fastapi cli
