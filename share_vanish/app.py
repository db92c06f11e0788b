"""
aiohttp application factory.

Wires the content store lifecycle, the exchange, the HTTP routes and a
periodic purge of expired records.
"""
import asyncio
import logging
from contextlib import suppress
from typing import Optional

from aiohttp import web

from .conf import ExchangeConfig
from .exchange import ContentExchange
from .handlers import EXCHANGE, error_middleware, setup_routes
from .storage import AbstractStore, create_store

logger = logging.getLogger("share_vanish.app")


async def purge_loop(exchange: ContentExchange, interval: int) -> None:
    """Run housekeeping passes forever, every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await exchange.purge()
        except Exception as err:
            logger.error("Purge of expired content failed: %s", err)
            continue
        if removed:
            logger.info("Purged %d expired record(s)", removed)


def create_app(
    config: Optional[ExchangeConfig] = None,
    store: Optional[AbstractStore] = None,
) -> web.Application:
    """Build the exchange web application.

    Args:
        config: Exchange configuration, loaded from the environment if None.
        store: Content store to use; built from ``config`` at startup if None.

    Returns:
        Configured ``web.Application``.
    """
    config = config or ExchangeConfig.from_env()
    app = web.Application(
        middlewares=[error_middleware],
        client_max_size=config.max_ciphertext_size + 64 * 1024,
    )

    async def exchange_ctx(app: web.Application):
        backend = store or await create_store(config)
        app[EXCHANGE] = ContentExchange(backend, config)
        logger.info(
            "Content exchange ready: storage=%s ttl=%ds policy=%s",
            type(backend).__name__, config.ttl, config.expiry_policy.value,
        )
        yield
        await backend.close()

    async def housekeeping_ctx(app: web.Application):
        task = asyncio.create_task(
            purge_loop(app[EXCHANGE], config.purge_interval)
        )
        yield
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    app.cleanup_ctx.append(exchange_ctx)
    app.cleanup_ctx.append(housekeeping_ctx)
    setup_routes(app)
    return app
