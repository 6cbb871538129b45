from asyncio import CancelledError, sleep

from imagecast.constants import TASK_ERROR_BACKOFF_SECONDS
from imagecast.logging import logger
from imagecast.managers.broadcast_hub import BroadcastHub


async def liveness_sweep_task(hub: BroadcastHub, interval: float) -> None:
    """
    Periodically removes viewers whose transport reports itself closed.

    Without this task, dead viewers are only pruned on the next publish. The
    sweep does not send anything, so a viewer that still reports open stays
    registered until a send proves otherwise.

    Args:
        hub: Broadcast hub owning the registry to sweep.
        interval: Seconds between two sweeps.
    """
    while True:
        try:
            await sleep(interval)

            pruned = hub.prune_closed()
            if pruned:
                logger.info(f"Liveness sweep pruned {pruned} closed viewers")

        except CancelledError:
            logger.info("Liveness sweep task cancelled!")
            break

        except Exception as ex:
            logger.error(f"Liveness sweep task error occurred with: {ex}")
            await sleep(TASK_ERROR_BACKOFF_SECONDS)
