"""Unit tests for the in-memory entity store and the shared store helpers."""

from __future__ import annotations

import pytest

from musty.config import StoreConfig
from musty.errors import NotFoundError
from musty.models.entities import EntityKind
from musty.models.entities import Topic
from musty.store import build_store
from musty.store import InMemoryEntityStore
from musty.store.base import new_entity_id
from musty.store.base import normalize_filter
from musty.store.base import validate_filter


async def _post(store, caption: str, *, by: str = "usr_1", topic: str = "tpc_1"):
    return await store.create(
        EntityKind.post,
        {
            "caption": caption,
            "posted_by_id": by,
            "topic_id": topic,
            "date_posted": "Oct Mon 2026",
        },
    )


class TestHelpers:
    def test_new_ids_carry_kind_prefix(self):
        assert new_entity_id(EntityKind.user).startswith("usr_")
        assert new_entity_id(EntityKind.comment).startswith("cmt_")
        assert new_entity_id(EntityKind.topic) != new_entity_id(EntityKind.topic)

    def test_normalize_filter_is_order_independent(self):
        assert normalize_filter({"b": 1, "a": 2}) == normalize_filter({"a": 2, "b": 1})
        assert normalize_filter(None) == ()
        assert normalize_filter({}) == ()

    def test_validate_filter_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="Invalid filter field"):
            validate_filter(EntityKind.post, {"postedByID": "u"})


class TestCreateAndGet:
    async def test_create_assigns_id(self, store):
        topic = await store.create(EntityKind.topic, {"title": "music"})
        assert topic.id.startswith("tpc_")
        assert await store.get(EntityKind.topic, topic.id) == topic

    async def test_get_missing_returns_none(self, store):
        assert await store.get(EntityKind.user, "usr_missing") is None

    async def test_get_is_kind_scoped(self, store):
        topic = await store.create(EntityKind.topic, {"title": "music"})
        assert await store.get(EntityKind.post, topic.id) is None

    async def test_reads_are_isolated_copies(self, store):
        topic = await store.create(EntityKind.topic, {"title": "music"})
        fetched = await store.get(EntityKind.topic, topic.id)
        fetched.title = "changed"
        assert (await store.get(EntityKind.topic, topic.id)).title == "music"

    async def test_get_many_skips_missing(self, store):
        first = await store.create(EntityKind.topic, {"title": "a"})
        found = await store.get_many(EntityKind.topic, [first.id, "tpc_missing", first.id])
        assert list(found) == [first.id]


class TestFind:
    async def test_find_all_preserves_creation_order(self, store):
        created = [await _post(store, f"p{i}") for i in range(5)]
        found = await store.find(EntityKind.post)
        assert [p.id for p in found] == [p.id for p in created]

    async def test_find_by_field(self, store):
        mine = await _post(store, "mine", by="usr_a")
        await _post(store, "theirs", by="usr_b")
        found = await store.find(EntityKind.post, {"posted_by_id": "usr_a"})
        assert found == [mine]

    async def test_find_no_match_returns_empty(self, store):
        await _post(store, "p")
        assert await store.find(EntityKind.post, {"topic_id": "tpc_none"}) == []

    async def test_find_rejects_unknown_field(self, store):
        with pytest.raises(ValueError):
            await store.find(EntityKind.post, {"nope": 1})


class TestUpdate:
    async def test_update_persists(self, store):
        topic = await store.create(EntityKind.topic, {"title": "a"})
        topic.title = "b"
        await store.update(topic)
        assert (await store.get(EntityKind.topic, topic.id)).title == "b"

    async def test_update_unknown_raises(self, store):
        with pytest.raises(NotFoundError):
            await store.update(Topic(id="tpc_missing"))

    async def test_clear(self, store):
        await store.create(EntityKind.topic, {"title": "a"})
        await store.clear()
        assert await store.find(EntityKind.topic) == []


class TestBuildStore:
    async def test_memory_backend(self):
        store = await build_store(StoreConfig(backend=" Memory "))
        assert isinstance(store, InMemoryEntityStore)

    async def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown store backend"):
            await build_store(StoreConfig(backend="sqlite"))

    async def test_neo4j_requires_url(self):
        with pytest.raises(ValueError, match="neo4j_url is required"):
            await build_store(StoreConfig(backend="neo4j"))
