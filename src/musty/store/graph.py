"""Neo4j-backed entity store.

Each entity kind maps to one node label (``User``, ``Post``, ``Comment``,
``Topic``). Follow lists stay list properties on ``User`` nodes, matching
the normalized id-reference model. A ``created_at`` property orders
``find`` results and is dropped again on deserialization.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from collections.abc import Mapping

from neo4j import AsyncDriver
from neo4j import time as neo4j_time
from neo4j.exceptions import ConstraintError

from musty.errors import ConflictError
from musty.errors import NotFoundError
from musty.models.entities import EntityBase
from musty.models.entities import EntityKind
from musty.models.entities import KIND_TO_MODEL
from musty.models.entities import kind_of
from musty.models.entities import serialize_entity
from musty.store.base import build_entity
from musty.store.base import EntityStore
from musty.store.base import validate_filter

# ---------------------------------------------------------------------------
# Query safety guards
# ---------------------------------------------------------------------------

_ALLOWED_LABELS = {kind.value for kind in EntityKind}


def _label(kind: EntityKind) -> str:
    if kind.value not in _ALLOWED_LABELS:
        msg = f"Invalid label: {kind.value!r}"
        raise ValueError(msg)
    return kind.value


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _neo4j_to_python(value: object) -> object:
    """Convert Neo4j temporal types to Python stdlib equivalents."""
    if isinstance(value, neo4j_time.DateTime):
        return value.to_native()
    if isinstance(value, neo4j_time.Date):
        return value.to_native()
    return value


def _serialize_props(entity: EntityBase) -> dict:
    """Drop ``None`` values; the Neo4j driver handles ``datetime`` itself."""
    data = serialize_entity(entity, mode="python")
    return {key: value for key, value in data.items() if value is not None}


def _deserialize(kind: EntityKind, props: dict) -> EntityBase:
    converted = {
        key: _neo4j_to_python(value)
        for key, value in props.items()
        if key != "created_at"
    }
    return KIND_TO_MODEL[kind].model_validate(converted)


# ---------------------------------------------------------------------------
# GraphEntityStore
# ---------------------------------------------------------------------------


class GraphEntityStore(EntityStore):
    """Async entity store over a Neo4j driver."""

    def __init__(self, driver: AsyncDriver) -> None:
        self._driver = driver

    async def get(self, kind: EntityKind, entity_id: str) -> EntityBase | None:
        query = f"MATCH (n:{_label(kind)} {{id: $id}}) RETURN properties(n) AS props"
        async with self._driver.session() as session:
            result = await session.run(query, id=entity_id)
            record = await result.single()
            if record is None:
                return None
            return _deserialize(kind, record["props"])

    async def get_many(
        self, kind: EntityKind, entity_ids: Iterable[str]
    ) -> dict[str, EntityBase]:
        unique_ids = list(dict.fromkeys(entity_ids))
        if not unique_ids:
            return {}
        query = (
            f"MATCH (n:{_label(kind)}) WHERE n.id IN $ids "
            "RETURN properties(n) AS props"
        )
        async with self._driver.session() as session:
            result = await session.run(query, ids=unique_ids)
            records = [record async for record in result]
        entities = [_deserialize(kind, record["props"]) for record in records]
        return {entity.id: entity for entity in entities}

    async def find(
        self, kind: EntityKind, filter: Mapping[str, object] | None = None
    ) -> list[EntityBase]:
        criteria = validate_filter(kind, filter)
        params: dict[str, object] = {}
        clauses: list[str] = []
        # Keys are model field names (validated above); values stay parameters
        for idx, (field, value) in enumerate(sorted(criteria.items())):
            params[f"p{idx}"] = value
            clauses.append(f"n.{field} = $p{idx}")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        query = (
            f"MATCH (n:{_label(kind)}){where} "
            "RETURN properties(n) AS props ORDER BY n.created_at, n.id"
        )
        async with self._driver.session() as session:
            result = await session.run(query, **params)
            records = [record async for record in result]
        return [_deserialize(kind, record["props"]) for record in records]

    async def create(
        self, kind: EntityKind, attributes: Mapping[str, object]
    ) -> EntityBase:
        entity = build_entity(kind, attributes)
        props = _serialize_props(entity)
        props["created_at"] = time.time()
        query = f"CREATE (n:{_label(kind)} $props) RETURN n.id AS id"
        try:
            async with self._driver.session() as session:
                result = await session.run(query, props=props)
                await result.consume()
        except ConstraintError as exc:
            msg = f"{kind.value} conflicts with an existing entity"
            raise ConflictError(msg) from exc
        return entity

    async def update(self, entity: EntityBase) -> EntityBase:
        kind = kind_of(entity)
        props = _serialize_props(entity)
        query = (
            f"MATCH (n:{_label(kind)} {{id: $id}}) SET n += $props "
            "RETURN n.id AS id"
        )
        async with self._driver.session() as session:
            result = await session.run(query, id=entity.id, props=props)
            record = await result.single()
        if record is None:
            msg = f"{kind.value} {entity.id!r} not found"
            raise NotFoundError(msg)
        return entity

    async def close(self) -> None:
        await self._driver.close()
