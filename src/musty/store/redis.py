"""Redis-backed entity store.

Entities are stored as JSON strings keyed by ``{prefix}:entity:{kind}:{id}``.
A sorted set ``{prefix}:order:{kind}`` tracks creation order (score taken
from the ``{prefix}:seq`` counter). Sorted sets
``{prefix}:idx:{kind}:{field}:{value}`` index the reference fields so
filtered lookups do not scan the whole kind.
Unique fields are claimed with ``SET NX`` on
``{prefix}:unique:{kind}:{field}:{value}`` before the entity is written.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from collections.abc import Mapping

from redis.asyncio import Redis  # type: ignore[import-untyped]

from musty.errors import ConflictError
from musty.errors import NotFoundError
from musty.models.entities import EntityBase
from musty.models.entities import EntityKind
from musty.models.entities import KIND_TO_MODEL
from musty.models.entities import kind_of
from musty.models.entities import serialize_entity
from musty.store.base import build_entity
from musty.store.base import EntityStore
from musty.store.base import matches_filter
from musty.store.base import validate_filter

logger = logging.getLogger(__name__)

# Fields maintained in equality indexes, per kind
_INDEXED_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.user: ("email",),
    EntityKind.post: ("posted_by_id", "topic_id"),
    EntityKind.comment: ("post_id", "commented_by_id"),
    EntityKind.topic: (),
}

_UNIQUE_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.user: ("email",),
}

_CLEAR_BATCH_SIZE = 100


def _decode(raw: bytes | str) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


class RedisEntityStore(EntityStore):
    """Entity store over a ``redis.asyncio`` client."""

    def __init__(self, redis: Redis, *, key_prefix: str = "musty") -> None:
        self._redis = redis
        self._prefix = key_prefix

    # -- keys --

    def _entity_key(self, kind: EntityKind, entity_id: str) -> str:
        return f"{self._prefix}:entity:{kind.value}:{entity_id}"

    def _order_key(self, kind: EntityKind) -> str:
        return f"{self._prefix}:order:{kind.value}"

    def _index_key(self, kind: EntityKind, field: str, value: object) -> str:
        return f"{self._prefix}:idx:{kind.value}:{field}:{value}"

    def _index_entries(self, kind: EntityKind, entity: EntityBase) -> list[str]:
        keys = []
        for field in _INDEXED_FIELDS[kind]:
            value = getattr(entity, field)
            if value is not None:
                keys.append(self._index_key(kind, field, value))
        return keys

    def _unique_key(self, kind: EntityKind, field: str, value: object) -> str:
        return f"{self._prefix}:unique:{kind.value}:{field}:{value}"

    async def _claim_unique(
        self, kind: EntityKind, entity: EntityBase, *, previous: EntityBase | None = None
    ) -> list[str]:
        """Claim every changed unique value for *entity*, all or nothing."""
        claimed: list[str] = []
        for field in _UNIQUE_FIELDS.get(kind, ()):
            value = getattr(entity, field)
            if value is None or (previous is not None and getattr(previous, field) == value):
                continue
            key = self._unique_key(kind, field, value)
            if not await self._redis.set(key, entity.id, nx=True):
                if claimed:
                    await self._redis.delete(*claimed)
                msg = f"{kind.value} with this {field} already exists"
                raise ConflictError(msg)
            claimed.append(key)
        return claimed

    def _load(self, kind: EntityKind, raw: bytes | str) -> EntityBase:
        return KIND_TO_MODEL[kind].model_validate(json.loads(raw))

    # -- read --

    async def get(self, kind: EntityKind, entity_id: str) -> EntityBase | None:
        raw = await self._redis.get(self._entity_key(kind, entity_id))
        if raw is None:
            return None
        return self._load(kind, raw)

    async def get_many(
        self, kind: EntityKind, entity_ids: Iterable[str]
    ) -> dict[str, EntityBase]:
        """Fetch all ids in a single pipeline round-trip."""
        unique_ids = list(dict.fromkeys(entity_ids))
        if not unique_ids:
            return {}
        pipe = self._redis.pipeline()
        for eid in unique_ids:
            pipe.get(self._entity_key(kind, eid))
        raw_results = await pipe.execute()
        return {
            eid: self._load(kind, raw)
            for eid, raw in zip(unique_ids, raw_results)
            if raw is not None
        }

    async def find(
        self, kind: EntityKind, filter: Mapping[str, object] | None = None
    ) -> list[EntityBase]:
        criteria = validate_filter(kind, filter)

        # Narrow the candidates through an index when one covers a filter key
        indexed = [key for key in criteria if key in _INDEXED_FIELDS[kind]]
        if indexed:
            source_key = self._index_key(kind, indexed[0], criteria[indexed[0]])
        else:
            source_key = self._order_key(kind)
        ids = [_decode(raw_id) for raw_id in await self._redis.zrange(source_key, 0, -1)]
        if not ids:
            return []

        found = await self.get_many(kind, ids)
        return [
            found[eid]
            for eid in ids
            if eid in found and matches_filter(found[eid], criteria)
        ]

    # -- write --

    async def create(
        self, kind: EntityKind, attributes: Mapping[str, object]
    ) -> EntityBase:
        entity = build_entity(kind, attributes)
        await self._claim_unique(kind, entity)
        seq = await self._redis.incr(f"{self._prefix}:seq")

        pipe = self._redis.pipeline()
        pipe.set(
            self._entity_key(kind, entity.id),
            json.dumps(serialize_entity(entity)),
        )
        pipe.zadd(self._order_key(kind), {entity.id: seq})
        for index_key in self._index_entries(kind, entity):
            pipe.zadd(index_key, {entity.id: seq})
        await pipe.execute()

        logger.debug("Stored %s %s (seq=%d)", kind.value, entity.id, seq)
        return entity

    async def update(self, entity: EntityBase) -> EntityBase:
        kind = kind_of(entity)
        previous = await self.get(kind, entity.id)
        if previous is None:
            msg = f"{kind.value} {entity.id!r} not found"
            raise NotFoundError(msg)

        await self._claim_unique(kind, entity, previous=previous)
        seq = await self._redis.zscore(self._order_key(kind), entity.id)
        stale = set(self._index_entries(kind, previous))
        fresh = set(self._index_entries(kind, entity))

        pipe = self._redis.pipeline()
        pipe.set(
            self._entity_key(kind, entity.id),
            json.dumps(serialize_entity(entity)),
        )
        for index_key in stale - fresh:
            pipe.zrem(index_key, entity.id)
        for index_key in fresh - stale:
            pipe.zadd(index_key, {entity.id: seq or 0})
        for field in _UNIQUE_FIELDS.get(kind, ()):
            old = getattr(previous, field)
            if old is not None and old != getattr(entity, field):
                pipe.delete(self._unique_key(kind, field, old))
        await pipe.execute()
        return entity

    # -- lifecycle --

    async def clear(self) -> None:
        """Remove all entities and indexes.

        Deletes in batches to avoid loading all keys into memory at once.
        """
        batch: list = []
        async for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
            batch.append(key)
            if len(batch) >= _CLEAR_BATCH_SIZE:
                await self._redis.delete(*batch)
                batch.clear()
        if batch:
            await self._redis.delete(*batch)

    async def close(self) -> None:
        await self._redis.aclose()
