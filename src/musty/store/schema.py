"""Neo4j schema initialization: constraints and indexes.

All statements use ``IF NOT EXISTS`` so they are safe to run repeatedly
(idempotent). Email uniqueness is also checked by the mutation service;
the constraint backs it up at the DB level.
"""

from __future__ import annotations

from neo4j import AsyncDriver

_CONSTRAINTS = [
    "CREATE CONSTRAINT user_unique_id IF NOT EXISTS FOR (n:User) REQUIRE n.id IS UNIQUE",
    "CREATE CONSTRAINT post_unique_id IF NOT EXISTS FOR (n:Post) REQUIRE n.id IS UNIQUE",
    "CREATE CONSTRAINT comment_unique_id IF NOT EXISTS FOR (n:Comment) REQUIRE n.id IS UNIQUE",
    "CREATE CONSTRAINT topic_unique_id IF NOT EXISTS FOR (n:Topic) REQUIRE n.id IS UNIQUE",
    "CREATE CONSTRAINT user_unique_email IF NOT EXISTS FOR (n:User) REQUIRE n.email IS UNIQUE",
]

_NODE_INDEXES = [
    # Reference-field lookups used by the resolver
    "CREATE INDEX post_posted_by IF NOT EXISTS FOR (n:Post) ON (n.posted_by_id)",
    "CREATE INDEX post_topic IF NOT EXISTS FOR (n:Post) ON (n.topic_id)",
    "CREATE INDEX comment_post IF NOT EXISTS FOR (n:Comment) ON (n.post_id)",
    "CREATE INDEX comment_author IF NOT EXISTS FOR (n:Comment) ON (n.commented_by_id)",
]


async def init_schema(driver: AsyncDriver) -> None:
    """Create all constraints and indexes (idempotent).

    Runs each statement in its own transaction to avoid batching issues
    with schema commands in Neo4j.
    """
    async with driver.session() as session:
        for stmt in _CONSTRAINTS + _NODE_INDEXES:
            await session.run(stmt)
