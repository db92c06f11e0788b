"""Content stores: ciphertext persistence with TTL expiry."""
from ..conf import ExchangeConfig
from .abstract import AbstractStore, StoredRecord
from .memory import MemoryStore
from .redis import RedisStore
from .postgres import PostgresStore


async def create_store(config: ExchangeConfig) -> AbstractStore:
    """Build the store selected by ``config.storage``."""
    options = {
        "ttl": config.ttl,
        "reservation_ttl": config.reservation_ttl,
        "expiry_policy": config.expiry_policy,
    }
    if config.storage == "redis":
        return RedisStore.from_url(config.redis_url, **options)
    if config.storage == "postgres":
        return await PostgresStore.connect(config.postgres_dsn, **options)
    return MemoryStore(**options)


__all__ = [
    "AbstractStore",
    "StoredRecord",
    "MemoryStore",
    "RedisStore",
    "PostgresStore",
    "create_store",
]
