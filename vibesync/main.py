"""
Sync process entry point.

Loads configuration, wires the components for one chain and runs the
orchestrator until SIGINT/SIGTERM.
"""

import asyncio
import signal
import sys
import warnings

# eth_utils warns about unknown chain ids on import
warnings.filterwarnings(
    "ignore",
    message=".*does not have a valid ChainId.*",
    category=UserWarning,
)

from loguru import logger  # noqa: E402
from pydantic import ValidationError  # noqa: E402

from vibesync.config.constants import EXIT_CONFIG_ERROR, EXIT_OK  # noqa: E402
from vibesync.config.settings import Settings, get_settings  # noqa: E402
from vibesync.initialization.logging import setup_logging  # noqa: E402
from vibesync.initialization.services import build_components  # noqa: E402
from vibesync.initialization.shutdown import shutdown_handler  # noqa: E402
from vibesync.services.health_server import (  # noqa: E402
    start_health_server,
    stop_health_server,
)
from vibesync.utils.exceptions import (  # noqa: E402
    ConfigurationError,
    TransientNetworkError,
)


async def main(settings: Settings) -> int:
    """
    Run sync until a shutdown signal arrives.

    Returns:
        Process exit code
    """
    components = build_components(settings)

    try:
        await components.gateway.verify_chain()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        await shutdown_handler(components)
        return EXIT_CONFIG_ERROR
    except TransientNetworkError as e:
        logger.warning(f"Chain node not reachable yet, sync will retry: {e}")

    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    health_runner = await start_health_server(
        components.orchestrator, port=settings.health_check_port
    )
    sync_task = components.orchestrator.start()

    try:
        stop_waiter = asyncio.create_task(stop_event.wait())
        done, _ = await asyncio.wait(
            {sync_task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED
        )
        stop_waiter.cancel()
        if sync_task in done and not sync_task.cancelled():
            # Orchestrator only returns by failing
            sync_task.result()
        logger.info("Shutdown signal received")
    finally:
        await shutdown_handler(components)
        await stop_health_server(health_runner)
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    return EXIT_OK


def run() -> int:
    """
    Console entry point.

    Returns:
        Process exit code (0 normal shutdown, 2 configuration error)
    """
    try:
        settings = get_settings()
    except (ValidationError, ConfigurationError) as e:
        setup_logging()
        logger.error(f"Invalid configuration:\n{e}")
        return EXIT_CONFIG_ERROR

    setup_logging(settings.log_level)
    logger.info(
        f"Starting vibesync for chain {settings.chain_name} ({settings.chain_id}), "
        f"environment {settings.environment}"
    )

    try:
        return asyncio.run(main(settings))
    except KeyboardInterrupt:
        logger.info("Stopped by user (KeyboardInterrupt)")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(run())
