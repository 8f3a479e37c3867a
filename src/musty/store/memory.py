"""In-process entity store backed by insertion-ordered dicts."""

from __future__ import annotations

from collections.abc import Mapping

from musty.errors import NotFoundError
from musty.models.entities import EntityBase
from musty.models.entities import EntityKind
from musty.models.entities import kind_of
from musty.store.base import build_entity
from musty.store.base import EntityStore
from musty.store.base import matches_filter
from musty.store.base import validate_filter


class InMemoryEntityStore(EntityStore):
    """Dict-backed store; every read and write goes through a deep copy."""

    def __init__(self) -> None:
        self._entities: dict[EntityKind, dict[str, EntityBase]] = {
            kind: {} for kind in EntityKind
        }

    async def get(self, kind: EntityKind, entity_id: str) -> EntityBase | None:
        entity = self._entities[kind].get(entity_id)
        return entity.model_copy(deep=True) if entity is not None else None

    async def find(
        self, kind: EntityKind, filter: Mapping[str, object] | None = None
    ) -> list[EntityBase]:
        criteria = validate_filter(kind, filter)
        return [
            entity.model_copy(deep=True)
            for entity in self._entities[kind].values()
            if matches_filter(entity, criteria)
        ]

    async def create(
        self, kind: EntityKind, attributes: Mapping[str, object]
    ) -> EntityBase:
        entity = build_entity(kind, attributes)
        self._entities[kind][entity.id] = entity.model_copy(deep=True)
        return entity

    async def update(self, entity: EntityBase) -> EntityBase:
        bucket = self._entities[kind_of(entity)]
        if entity.id not in bucket:
            msg = f"{type(entity).__name__} {entity.id!r} not found"
            raise NotFoundError(msg)
        bucket[entity.id] = entity.model_copy(deep=True)
        return entity

    async def clear(self) -> None:
        """Drop every entity (test helper)."""
        for bucket in self._entities.values():
            bucket.clear()
