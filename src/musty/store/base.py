"""Entity store contract shared by every backend.

A store exclusively owns the entities it holds. Readers receive fresh
model instances, never long-lived handles. Each call is atomic for its
single entity; there are no cross-call transactions.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC
from abc import abstractmethod
from collections.abc import Iterable
from collections.abc import Mapping

from musty.models.entities import EntityBase
from musty.models.entities import EntityKind
from musty.models.entities import ID_PREFIXES
from musty.models.entities import KIND_TO_MODEL
from musty.models.entities import model_fields_for

FilterKey = tuple[tuple[str, object], ...]


def new_entity_id(kind: EntityKind) -> str:
    """Generate an opaque id, e.g. ``usr_3f2a...``."""
    return f"{ID_PREFIXES[kind]}_{uuid.uuid4().hex}"


def normalize_filter(filter: Mapping[str, object] | None) -> FilterKey:
    """Canonical, hashable form of a field→value filter."""
    if not filter:
        return ()
    return tuple(sorted(filter.items()))


def validate_filter(kind: EntityKind, filter: Mapping[str, object] | None) -> dict:
    """Return *filter* as a dict after checking every key is a model field."""
    if not filter:
        return {}
    allowed = model_fields_for(kind)
    unknown = sorted(key for key in filter if key not in allowed)
    if unknown:
        msg = f"Invalid filter field(s) for {kind.value}: {', '.join(unknown)}"
        raise ValueError(msg)
    return dict(filter)


def matches_filter(entity: EntityBase, filter: Mapping[str, object]) -> bool:
    return all(getattr(entity, key) == value for key, value in filter.items())


def build_entity(kind: EntityKind, attributes: Mapping[str, object]) -> EntityBase:
    """Validate *attributes* into a new model instance with a fresh id."""
    payload = dict(attributes)
    payload["id"] = new_entity_id(kind)
    return KIND_TO_MODEL[kind].model_validate(payload)


class EntityStore(ABC):
    """Async lookup/persist interface over the four entity kinds."""

    @abstractmethod
    async def get(self, kind: EntityKind, entity_id: str) -> EntityBase | None:
        """Return the entity, or ``None`` if no entity has that id."""

    async def get_many(
        self, kind: EntityKind, entity_ids: Iterable[str]
    ) -> dict[str, EntityBase]:
        """Batch form of :meth:`get`. Missing ids are left out of the result."""
        unique_ids = list(dict.fromkeys(entity_ids))
        found = await asyncio.gather(*(self.get(kind, eid) for eid in unique_ids))
        return {eid: entity for eid, entity in zip(unique_ids, found) if entity is not None}

    @abstractmethod
    async def find(
        self, kind: EntityKind, filter: Mapping[str, object] | None = None
    ) -> list[EntityBase]:
        """Return every entity matching *filter* by equality, oldest first."""

    @abstractmethod
    async def create(
        self, kind: EntityKind, attributes: Mapping[str, object]
    ) -> EntityBase:
        """Persist a new entity under a freshly assigned id and return it."""

    @abstractmethod
    async def update(self, entity: EntityBase) -> EntityBase:
        """Persist changes to an existing entity.

        Raises:
            NotFoundError: no stored entity has ``entity.id``.
        """

    async def close(self) -> None:
        """Release backend resources."""
        return None
