"""Build an entity store from a :class:`StoreConfig`."""

from __future__ import annotations

import logging

from musty.config import StoreConfig
from musty.store.base import EntityStore

logger = logging.getLogger(__name__)


async def build_store(config: StoreConfig) -> EntityStore:
    """Connect the configured backend and return a ready store."""
    backend = config.backend.strip().lower()

    if backend == "memory":
        from musty.store.memory import InMemoryEntityStore

        store: EntityStore = InMemoryEntityStore()
    elif backend == "redis":
        from redis.asyncio import Redis  # type: ignore[import-untyped]

        from musty.store.redis import RedisEntityStore

        store = RedisEntityStore(
            Redis.from_url(config.redis_url), key_prefix=config.key_prefix
        )
    elif backend == "neo4j":
        if config.neo4j_url is None:
            raise ValueError("neo4j_url is required when backend='neo4j'")
        from neo4j import AsyncGraphDatabase

        from musty.store.graph import GraphEntityStore
        from musty.store.schema import init_schema

        driver = AsyncGraphDatabase.driver(config.neo4j_url)
        await init_schema(driver)
        store = GraphEntityStore(driver)
    else:
        msg = f"Unknown store backend: {config.backend!r}"
        raise ValueError(msg)

    logger.info("Entity store ready (backend=%s)", backend)
    return store
