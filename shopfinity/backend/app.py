import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from shopfinity.backend.catalog import seed_products
from shopfinity.backend.consumers import register_consumers
from shopfinity.backend.routes import router
from shopfinity.broker.service import MessageService
from shopfinity.common.cache import RedisCache
from shopfinity.config import AppSettings

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format="[%(asctime)s] %(levelname)s %(name)s | %(message)s")


async def initialize_services(app: FastAPI) -> None:
    logger.info("Initializing Redis connection")
    await app.state.cache.connect_with_retry()

    logger.info("Initializing RabbitMQ connection")
    if await app.state.messaging.connect_with_retry():
        count = await register_consumers(app.state.messaging)
        logger.info("Registered %d message consumer(s)", count)

    logger.info("Service initialization finished")


def create_app(
    settings: Optional[AppSettings] = None,
    messaging: Optional[MessageService] = None,
    cache: Optional[RedisCache] = None,
) -> FastAPI:
    """Build the backend around one MessageService and one RedisCache.

    Both live for the lifetime of the app and are torn down on shutdown.
    Broker and cache are brought up in the background by default so the
    process answers /health before (or without) them.
    """
    settings = settings or AppSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.started_at = time.monotonic()
        init_task = asyncio.create_task(initialize_services(app))
        if settings.wait_for_services:
            await init_task
        try:
            yield
        finally:
            logger.info("Shutting down gracefully")
            init_task.cancel()
            await asyncio.gather(init_task, return_exceptions=True)
            await app.state.cache.disconnect()
            await app.state.messaging.disconnect()

    app = FastAPI(title="Shopfinity Backend", lifespan=lifespan)
    app.state.settings = settings
    app.state.messaging = messaging or MessageService()
    app.state.cache = cache or RedisCache()
    app.state.products = seed_products()
    app.state.orders = {}
    app.state.started_at = time.monotonic()
    app.include_router(router)
    return app
