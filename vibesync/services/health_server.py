"""
Health endpoints of the sync process.

- /health: orchestrator status, 503 until caught up or when progress stalls
- /readiness: 200 once the initial backfill reached the confirmed head
- /liveness: 200 while the event loop answers
"""

import asyncio
from typing import Any

from aiohttp import web
from loguru import logger

from vibesync.services.chain_sync.orchestrator import SyncOrchestrator

ORCHESTRATOR_KEY = web.AppKey("orchestrator", SyncOrchestrator)


def _reply(ok: bool, body: dict[str, Any]) -> web.Response:
    return web.json_response(body, status=200 if ok else 503)


async def health_handler(request: web.Request) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        health = orchestrator.health()
    except Exception as e:
        logger.error(f"[Health] Could not collect sync status: {e}")
        return _reply(False, {"status": "unhealthy", "error": str(e)})

    status = "healthy" if health["healthy"] else "unhealthy"
    return _reply(health["healthy"], {"status": status, **health})


async def readiness_handler(request: web.Request) -> web.Response:
    ready = bool(request.app[ORCHESTRATOR_KEY].caught_up)
    return _reply(ready, {"status": "ready" if ready else "not_ready", "ready": ready})


async def liveness_handler(request: web.Request) -> web.Response:
    return _reply(True, {"status": "alive", "alive": True})


def create_health_app(orchestrator: SyncOrchestrator) -> web.Application:
    """aiohttp application reporting on one orchestrator."""
    app = web.Application()
    app[ORCHESTRATOR_KEY] = orchestrator
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    orchestrator: SyncOrchestrator,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> web.AppRunner:
    """
    Serve health endpoints in the running event loop.

    Args:
        orchestrator: Orchestrator to report on
        host: Bind address
        port: Bind port (HEALTH_CHECK_PORT)

    Returns:
        AppRunner, passed to stop_health_server on shutdown
    """
    runner = web.AppRunner(create_health_app(orchestrator), access_log=None)
    await runner.setup()
    await web.TCPSite(runner, host, port).start()
    logger.info(f"[Health] Serving /health, /readiness, /liveness on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: float = 5.0) -> None:
    """Stop serving, giving open requests up to timeout seconds."""
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
    except TimeoutError:
        logger.warning(f"[Health] Server cleanup timed out after {timeout}s")
        return
    logger.info("[Health] Server stopped")
