"""Per-pass batched loader in front of the entity store.

Wraps strawberry ``DataLoader`` instances: one per entity kind for id
lookups (batched into ``store.get_many``), and one keyed by
``(kind, normalized filter)`` for filtered lookups. Within one resolution
pass every distinct key costs at most one store round-trip.

The loader is a scoped resource. Create it through :func:`resolution_pass`
so its caches are discarded when the pass ends; entities may change
between passes and must never be served stale.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass

from strawberry.dataloader import DataLoader

from musty.models.entities import EntityBase
from musty.models.entities import EntityKind
from musty.store.base import EntityStore
from musty.store.base import FilterKey
from musty.store.base import normalize_filter
from musty.store.base import validate_filter

logger = logging.getLogger(__name__)


@dataclass
class LoaderStats:
    """Store round-trips issued during one pass."""

    id_batches: int = 0
    ids_requested: int = 0
    filter_queries: int = 0


class BatchedLoader:
    """Request-coalescing cache over an :class:`EntityStore` for one pass."""

    def __init__(
        self,
        store: EntityStore,
        *,
        max_batch_size: int | None = None,
    ) -> None:
        self._store = store
        self._closed = False
        self.stats = LoaderStats()
        self._by_id: dict[EntityKind, DataLoader[str, EntityBase | None]] = {
            kind: DataLoader(self._batch_loader_for(kind), max_batch_size=max_batch_size)
            for kind in EntityKind
        }
        self._by_filter: DataLoader[tuple[EntityKind, FilterKey], list[EntityBase]] = (
            DataLoader(self._load_filters, max_batch_size=max_batch_size)
        )

    # -- public --

    async def load_by_id(self, kind: EntityKind, entity_id: str | None) -> EntityBase | None:
        """Return the entity, or ``None`` when the id is ``None`` or unknown."""
        self._ensure_open()
        if entity_id is None:
            return None
        return await asyncio.shield(self._by_id[kind].load(entity_id))

    async def load_by_filter(
        self, kind: EntityKind, filter: Mapping[str, object] | None = None
    ) -> list[EntityBase]:
        """Return entities matching *filter*, in store order."""
        self._ensure_open()
        # Fail fast on bad keys instead of poisoning a shared batch
        validate_filter(kind, filter)
        key = (kind, normalize_filter(filter))
        entities = await asyncio.shield(self._by_filter.load(key))
        return list(entities)

    def close(self) -> None:
        """Discard every cached entry. The loader is unusable afterwards."""
        if self._closed:
            return
        self._closed = True
        for loader in self._by_id.values():
            loader.clear_all()
        self._by_filter.clear_all()
        logger.debug(
            "Resolution pass closed (id_batches=%d, ids=%d, filter_queries=%d)",
            self.stats.id_batches,
            self.stats.ids_requested,
            self.stats.filter_queries,
        )

    # -- internal --

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Loader used after its resolution pass ended.")

    def _batch_loader_for(self, kind: EntityKind):
        async def load(entity_ids: list[str]) -> list[EntityBase | None]:
            self.stats.id_batches += 1
            self.stats.ids_requested += len(entity_ids)
            found = await self._store.get_many(kind, entity_ids)
            return [found.get(eid) for eid in entity_ids]

        return load

    async def _load_filters(
        self, keys: list[tuple[EntityKind, FilterKey]]
    ) -> list[list[EntityBase]]:
        self.stats.filter_queries += len(keys)
        results = await asyncio.gather(
            *(self._store.find(kind, dict(criteria)) for kind, criteria in keys)
        )
        # Entities seen through a filter are served from cache by id later on
        for (kind, _), entities in zip(keys, results):
            if self._closed:
                break
            for entity in entities:
                self._by_id[kind].prime(entity.id, entity)
        return results


@asynccontextmanager
async def resolution_pass(
    store: EntityStore,
    *,
    max_batch_size: int | None = None,
) -> AsyncIterator[BatchedLoader]:
    """Yield a fresh loader and tear it down when the pass ends."""
    loader = BatchedLoader(store, max_batch_size=max_batch_size)
    try:
        yield loader
    finally:
        loader.close()
