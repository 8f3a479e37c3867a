"""Graph resolver: rebuilds denormalized shapes from normalized entities.

Every operation runs inside its own resolution pass:

1. resolve the root entity (or list) through the loader,
2. issue the related-field loads of every root item together,
3. join all of them before assembling the composed shapes.

List results keep the order the store returned the root list in. Missing
related entities resolve to ``None`` / ``[]``; store failures propagate.
"""

from __future__ import annotations

import asyncio

from musty.config import LoaderConfig
from musty.engine.loader import BatchedLoader
from musty.engine.loader import resolution_pass
from musty.models.entities import EntityKind
from musty.models.entities import Post
from musty.models.entities import Topic
from musty.models.entities import User
from musty.models.schemas import PostQuery
from musty.models.schemas import ProfileQuery
from musty.models.schemas import TopicQuery
from musty.observability import timed
from musty.store.base import EntityStore


class GraphResolver:
    """Query operations over an :class:`EntityStore`."""

    def __init__(
        self,
        store: EntityStore,
        *,
        loader_config: LoaderConfig | None = None,
    ) -> None:
        self._store = store
        self._loader_config = loader_config or LoaderConfig()

    def resolution_pass(self):
        """Open a loader scope configured for this resolver."""
        return resolution_pass(
            self._store, max_batch_size=self._loader_config.max_batch_size
        )

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    async def compose_post(
        self,
        loader: BatchedLoader,
        post: Post,
        *,
        include_topic: bool = True,
    ) -> PostQuery:
        """Attach author, comments and (optionally) topic to *post*."""
        lookups = [
            loader.load_by_id(EntityKind.user, post.posted_by_id),
            loader.load_by_filter(EntityKind.comment, {"post_id": post.id}),
        ]
        if include_topic:
            lookups.append(loader.load_by_id(EntityKind.topic, post.topic_id))
        results = await asyncio.gather(*lookups)

        return PostQuery(
            post=post,
            posted_by=results[0],
            comments=results[1],
            topic=results[2] if include_topic else None,
        )

    async def _compose_posts(
        self,
        loader: BatchedLoader,
        posts: list[Post],
        *,
        include_topic: bool = True,
    ) -> list[PostQuery]:
        return list(
            await asyncio.gather(
                *(
                    self.compose_post(loader, post, include_topic=include_topic)
                    for post in posts
                )
            )
        )

    async def _compose_topic(
        self,
        loader: BatchedLoader,
        topic: Topic,
        *,
        join_field: str,
    ) -> TopicQuery:
        posts = await loader.load_by_filter(EntityKind.post, {join_field: topic.id})
        return TopicQuery(
            topic=topic,
            posts=await self._compose_posts(loader, posts, include_topic=False),
        )

    # ------------------------------------------------------------------
    # Query operations
    # ------------------------------------------------------------------

    async def users(self) -> list[User]:
        with timed("query.users"):
            async with self.resolution_pass() as loader:
                return await loader.load_by_filter(EntityKind.user)

    async def posts(self) -> list[PostQuery]:
        with timed("query.posts"):
            async with self.resolution_pass() as loader:
                posts = await loader.load_by_filter(EntityKind.post)
                return await self._compose_posts(loader, posts)

    async def post(self, post_id: str) -> PostQuery | None:
        with timed("query.post"):
            async with self.resolution_pass() as loader:
                post = await loader.load_by_id(EntityKind.post, post_id)
                if post is None:
                    return None
                return await self.compose_post(loader, post)

    async def profile(self, user_id: str) -> ProfileQuery | None:
        """A user and their posts; the posts carry no topic."""
        with timed("query.profile"):
            async with self.resolution_pass() as loader:
                user, posts = await asyncio.gather(
                    loader.load_by_id(EntityKind.user, user_id),
                    loader.load_by_filter(EntityKind.post, {"posted_by_id": user_id}),
                )
                if user is None:
                    return None
                return ProfileQuery(
                    user=user,
                    posts=await self._compose_posts(loader, posts, include_topic=False),
                )

    async def topic(self, topic_id: str) -> TopicQuery | None:
        with timed("query.topic"):
            async with self.resolution_pass() as loader:
                topic = await loader.load_by_id(EntityKind.topic, topic_id)
                if topic is None:
                    return None
                return await self._compose_topic(loader, topic, join_field="topic_id")

    async def topics(self) -> list[TopicQuery]:
        """Every topic with its posts.

        Known defect, kept for compatibility: posts are joined on the
        author id (``posted_by_id == topic.id``), not on ``topic_id``.
        """
        with timed("query.topics"):
            async with self.resolution_pass() as loader:
                topics = await loader.load_by_filter(EntityKind.topic)
                return list(
                    await asyncio.gather(
                        *(
                            self._compose_topic(loader, topic, join_field="posted_by_id")
                            for topic in topics
                        )
                    )
                )
