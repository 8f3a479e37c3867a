"""Store domain: the entity store contract and its backends.

Exports are loaded lazily so the in-memory backend can be imported
without pulling in the Redis and Neo4j client libraries.
"""

from __future__ import annotations

from importlib import import_module

__all__ = [
    "EntityStore",
    "GraphEntityStore",
    "InMemoryEntityStore",
    "RedisEntityStore",
    "build_store",
    "init_schema",
    "normalize_filter",
]


_EXPORT_TO_MODULE = {
    "EntityStore": "musty.store.base",
    "normalize_filter": "musty.store.base",
    "GraphEntityStore": "musty.store.graph",
    "InMemoryEntityStore": "musty.store.memory",
    "RedisEntityStore": "musty.store.redis",
    "init_schema": "musty.store.schema",
    "build_store": "musty.store.factory",
}


def __getattr__(name: str):
    module_name = _EXPORT_TO_MODULE.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(module_name)
    return getattr(module, name)
