import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gatepass.logging_utils import get_logger
from gatepass.server.dependencies import get_config
from gatepass.server.endpoints import holder, scan, tickets

logger = get_logger(__name__)

NONCE_CLEANUP_INTERVAL_SECONDS = 60


async def _periodically_cleanup_nonces(app: FastAPI) -> None:
    config = app.dependency_overrides.get(get_config, get_config)()
    while True:
        await asyncio.sleep(NONCE_CLEANUP_INTERVAL_SECONDS)
        config.nonce_manager.cleanup_expired_nonces()


@asynccontextmanager
async def lifespan(app: FastAPI):
    cleanup_task = asyncio.create_task(_periodically_cleanup_nonces(app))
    logger.info("gatepass verifier is up")
    yield
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    logger.info("gatepass verifier shut down")


def factory_app(debug: bool = False) -> FastAPI:
    app = FastAPI(title="gatepass", debug=debug, lifespan=lifespan)
    app.include_router(scan.factory_router())
    app.include_router(tickets.factory_router())
    app.include_router(holder.factory_router())
    return app
