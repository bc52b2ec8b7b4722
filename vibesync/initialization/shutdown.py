"""
Initialization - Shutdown Module.

Handles graceful shutdown of the sync process.
Stops the orchestrator and closes network and database connections.
"""

from loguru import logger

from .services import SyncComponents


async def shutdown_handler(components: SyncComponents) -> None:
    """Handle graceful shutdown."""
    logger.info("Graceful shutdown initiated...")

    # Checkpoint is durable, cancelling mid-window only repeats that window
    await components.orchestrator.stop()

    try:
        await components.bus.close()
        logger.info("Notification bus closed")
    except Exception as e:
        logger.warning(f"Error closing notification bus: {e}")

    try:
        await components.gateway.close()
        logger.info("Chain gateway closed")
    except Exception as e:
        logger.warning(f"Error closing chain gateway: {e}")

    try:
        await components.engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database: {e}")

    logger.info("Graceful shutdown complete")
