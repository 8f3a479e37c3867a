"""Unit tests for the per-pass batched loader."""

from __future__ import annotations

import asyncio

import pytest

from musty.engine.loader import BatchedLoader
from musty.engine.loader import resolution_pass
from musty.models.entities import EntityKind


async def _topic(store, title: str = "t"):
    return await store.create(EntityKind.topic, {"title": title})


class TestCoalescing:
    async def test_duplicate_concurrent_ids_fetch_once(self, counting_store):
        topic = await _topic(counting_store)

        async with resolution_pass(counting_store) as loader:
            first, second = await asyncio.gather(
                loader.load_by_id(EntityKind.topic, topic.id),
                loader.load_by_id(EntityKind.topic, topic.id),
            )

        assert first == topic
        assert second == topic
        assert counting_store.get_calls[(EntityKind.topic, topic.id)] == 1

    async def test_sequential_duplicates_hit_cache(self, counting_store):
        topic = await _topic(counting_store)

        async with resolution_pass(counting_store) as loader:
            await loader.load_by_id(EntityKind.topic, topic.id)
            await loader.load_by_id(EntityKind.topic, topic.id)

        assert counting_store.get_calls[(EntityKind.topic, topic.id)] == 1

    async def test_same_id_different_kind_is_a_different_key(self, counting_store):
        async with resolution_pass(counting_store) as loader:
            await asyncio.gather(
                loader.load_by_id(EntityKind.topic, "x"),
                loader.load_by_id(EntityKind.user, "x"),
            )

        assert counting_store.get_calls[(EntityKind.topic, "x")] == 1
        assert counting_store.get_calls[(EntityKind.user, "x")] == 1

    async def test_concurrent_distinct_ids_share_one_batch(self, counting_store):
        topics = [await _topic(counting_store, str(i)) for i in range(3)]

        async with resolution_pass(counting_store) as loader:
            await asyncio.gather(
                *(loader.load_by_id(EntityKind.topic, t.id) for t in topics)
            )
            assert loader.stats.id_batches == 1
            assert loader.stats.ids_requested == 3

    async def test_max_batch_size_splits_batches(self, counting_store):
        topics = [await _topic(counting_store, str(i)) for i in range(5)]

        async with resolution_pass(counting_store, max_batch_size=2) as loader:
            await asyncio.gather(
                *(loader.load_by_id(EntityKind.topic, t.id) for t in topics)
            )
            assert loader.stats.id_batches == 3

    async def test_duplicate_filters_query_once(self, counting_store):
        async with resolution_pass(counting_store) as loader:
            await asyncio.gather(
                loader.load_by_filter(EntityKind.comment, {"post_id": "pst_1"}),
                loader.load_by_filter(EntityKind.comment, {"post_id": "pst_1"}),
            )

        assert sum(counting_store.find_calls.values()) == 1

    async def test_filter_results_prime_id_cache(self, counting_store):
        topic = await _topic(counting_store)

        async with resolution_pass(counting_store) as loader:
            await loader.load_by_filter(EntityKind.topic)
            assert await loader.load_by_id(EntityKind.topic, topic.id) == topic

        assert counting_store.get_calls[(EntityKind.topic, topic.id)] == 0


class TestMissingAndInvalid:
    async def test_missing_id_resolves_none(self, counting_store):
        async with resolution_pass(counting_store) as loader:
            assert await loader.load_by_id(EntityKind.user, "usr_missing") is None

    async def test_none_id_skips_store(self, counting_store):
        async with resolution_pass(counting_store) as loader:
            assert await loader.load_by_id(EntityKind.topic, None) is None
        assert not counting_store.get_calls

    async def test_invalid_filter_field_raises(self, counting_store):
        async with resolution_pass(counting_store) as loader:
            with pytest.raises(ValueError):
                await loader.load_by_filter(EntityKind.post, {"bogus": "x"})

    async def test_filtered_results_are_copies_of_the_list(self, counting_store):
        await _topic(counting_store)
        async with resolution_pass(counting_store) as loader:
            first = await loader.load_by_filter(EntityKind.topic)
            first.clear()
            assert len(await loader.load_by_filter(EntityKind.topic)) == 1


class TestScope:
    async def test_cache_is_not_shared_across_passes(self, counting_store):
        topic = await _topic(counting_store, "before")

        async with resolution_pass(counting_store) as loader:
            assert (await loader.load_by_id(EntityKind.topic, topic.id)).title == "before"

        topic.title = "after"
        await counting_store.update(topic)

        async with resolution_pass(counting_store) as loader:
            assert (await loader.load_by_id(EntityKind.topic, topic.id)).title == "after"

        assert counting_store.get_calls[(EntityKind.topic, topic.id)] == 2

    async def test_loader_unusable_after_pass(self, counting_store):
        async with resolution_pass(counting_store) as loader:
            pass

        with pytest.raises(RuntimeError, match="resolution pass ended"):
            await loader.load_by_id(EntityKind.topic, "tpc_1")

    async def test_teardown_runs_when_pass_raises(self, counting_store):
        with pytest.raises(KeyError):
            async with resolution_pass(counting_store) as loader:
                raise KeyError("boom")

        with pytest.raises(RuntimeError):
            await loader.load_by_filter(EntityKind.topic)

    async def test_store_errors_propagate(self, store):
        class BrokenStore(type(store)):
            async def find(self, kind, filter=None):
                raise ConnectionError("store down")

        async with resolution_pass(BrokenStore()) as loader:
            with pytest.raises(ConnectionError):
                await loader.load_by_filter(EntityKind.post)

    async def test_close_is_idempotent(self, store):
        loader = BatchedLoader(store)
        loader.close()
        loader.close()
