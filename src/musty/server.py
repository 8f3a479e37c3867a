"""musty: FastMCP server exposing the query and mutation operations.

Every tool validates its arguments, delegates to ``GraphResolver`` or
``MutationService`` and wraps the outcome in a ``ToolResult``. Typed
failures from the core become ``status="error"`` results keyed by the
error's ``code``. Call ``configure(...)`` before using the server.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable
from collections.abc import Callable
from time import perf_counter
from typing import Any

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from musty.audit import AuditLogger
from musty.auth import create_mcp_auth
from musty.auth import CredentialVerifier
from musty.config import AuditConfig
from musty.config import DisplayConfig
from musty.config import LoaderConfig
from musty.config import StoreConfig
from musty.engine import GraphResolver
from musty.engine import MutationService
from musty.errors import MustyError
from musty.models.schemas import CreateCommentInput
from musty.models.schemas import CreatePostInput
from musty.models.schemas import CreateTopicInput
from musty.models.schemas import CreateUserInput
from musty.models.schemas import FollowInput
from musty.models.schemas import IdInput
from musty.models.schemas import LoginInput
from musty.models.schemas import ToolResult
from musty.observability import record_latency
from musty.store import build_store
from musty.store import EntityStore

logger = logging.getLogger(__name__)

mcp = FastMCP("musty")

# ---------------------------------------------------------------------------
# Backend instances (set via configure())
# ---------------------------------------------------------------------------

_store: EntityStore | None = None
_resolver: GraphResolver | None = None
_mutations: MutationService | None = None


async def configure(
    store: EntityStore | None = None,
    *,
    store_config: StoreConfig | None = None,
    loader_config: LoaderConfig | None = None,
    audit_config: AuditConfig | None = None,
    display_config: DisplayConfig | None = None,
    verifier: CredentialVerifier | None = None,
) -> None:
    """Wire the entity store, resolver and mutation service.

    Pass an existing *store* to share it with the caller (tests do this);
    otherwise one is built from *store_config*. Must be called before the
    tools can function.
    """
    global _store, _resolver, _mutations
    await shutdown()

    if store is None:
        store = await build_store(store_config or StoreConfig())
    _store = store
    _resolver = GraphResolver(store, loader_config=loader_config)
    _mutations = MutationService(
        store,
        resolver=_resolver,
        verifier=verifier,
        audit_logger=AuditLogger(audit_config or AuditConfig()),
        display=display_config,
    )


async def shutdown() -> None:
    """Close the backend store and release server resources."""
    global _store, _resolver, _mutations
    store = _store
    _store = None
    _resolver = None
    _mutations = None
    if store is not None:
        await store.close()


def _get_resolver() -> GraphResolver:
    if _resolver is None:
        raise RuntimeError("Server not configured. Call configure() first.")
    return _resolver


def _get_mutations() -> MutationService:
    if _mutations is None:
        raise RuntimeError("Server not configured. Call configure() first.")
    return _mutations


# ---------------------------------------------------------------------------
# Result helpers
# ---------------------------------------------------------------------------


def _dump(value: object) -> Any:
    """Convert models (and lists of them) to camelCase JSON-ready data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


def _validation_message(exc: PydanticValidationError) -> str:
    err = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = str(err.get("msg", "Invalid input"))
    return f"{loc}: {msg}" if loc else msg


def _error(error_code: str, message: str) -> ToolResult:
    return ToolResult(status="error", error_code=error_code, message=message)


async def _run(
    tool: str,
    input_model: type[BaseModel] | None,
    arguments: dict[str, object],
    call: Callable[..., Awaitable[object]],
) -> ToolResult:
    """Validate *arguments*, run *call* and wrap the outcome."""
    start = perf_counter()
    ok = False
    try:
        if input_model is not None:
            try:
                validated = input_model.model_validate(arguments)
            except PydanticValidationError as exc:
                return _error("validation_error", _validation_message(exc))
            arguments = validated.model_dump()

        try:
            data = await call(**arguments)
        except MustyError as exc:
            logger.info("tool=%s rejected code=%s", tool, exc.code)
            return _error(exc.code, exc.message)

        ok = True
        return ToolResult(status="ok", data=_dump(data))
    finally:
        record_latency(
            operation=f"tool.{tool}",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


# ---------------------------------------------------------------------------
# Query tools
# ---------------------------------------------------------------------------


@mcp.tool
async def users() -> ToolResult:
    """List every user."""
    return await _run("users", None, {}, _get_resolver().users)


@mcp.tool
async def posts() -> ToolResult:
    """List every post with its author, comments and topic."""
    return await _run("posts", None, {}, _get_resolver().posts)


@mcp.tool
async def post(id: str) -> ToolResult:
    """Get one post with its author, comments and topic.

    Args:
        id: Post id. ``data`` is null when no post has this id.
    """
    resolver = _get_resolver()
    return await _run(
        "post", IdInput, {"id": id}, lambda id: resolver.post(id)
    )


@mcp.tool
async def profile(id: str) -> ToolResult:
    """Get a user and the posts they authored.

    Args:
        id: User id. ``data`` is null when no user has this id.
    """
    resolver = _get_resolver()
    return await _run(
        "profile", IdInput, {"id": id}, lambda id: resolver.profile(id)
    )


@mcp.tool
async def topic(id: str) -> ToolResult:
    """Get a topic and the posts filed under it.

    Args:
        id: Topic id. ``data`` is null when no topic has this id.
    """
    resolver = _get_resolver()
    return await _run("topic", IdInput, {"id": id}, lambda id: resolver.topic(id))


@mcp.tool
async def topics() -> ToolResult:
    """List every topic with its posts."""
    return await _run("topics", None, {}, _get_resolver().topics)


# ---------------------------------------------------------------------------
# Mutation tools
# ---------------------------------------------------------------------------


@mcp.tool
async def create_user(
    name: str,
    email: str,
    password: str,
    pronoun: str | None = None,
) -> ToolResult:
    """Register a user.

    Args:
        name: Display name.
        email: Login address; must be unique.
        password: Credential checked by ``login``.
        pronoun: Optional pronoun shown on the profile.
    """
    return await _run(
        "create_user",
        CreateUserInput,
        {"name": name, "email": email, "password": password, "pronoun": pronoun},
        _get_mutations().create_user,
    )


@mcp.tool
async def create_topic(title: str | None = None) -> ToolResult:
    """Create a topic posts can be filed under."""
    return await _run(
        "create_topic",
        CreateTopicInput,
        {"title": title},
        _get_mutations().create_topic,
    )


@mcp.tool
async def create_post(caption: str, posted_by_id: str, topic_id: str) -> ToolResult:
    """Publish a post and return it with its relations.

    Args:
        caption: Post text.
        posted_by_id: Author's user id (not checked for existence).
        topic_id: Topic id (not checked for existence).
    """
    return await _run(
        "create_post",
        CreatePostInput,
        {"caption": caption, "posted_by_id": posted_by_id, "topic_id": topic_id},
        _get_mutations().create_post,
    )


@mcp.tool
async def create_comment(comment: str, commented_by_id: str, post_id: str) -> ToolResult:
    """Comment on a post.

    Args:
        comment: Comment text.
        commented_by_id: Commenter's user id (not checked for existence).
        post_id: Post id (not checked for existence).
    """
    return await _run(
        "create_comment",
        CreateCommentInput,
        {"comment": comment, "commented_by_id": commented_by_id, "post_id": post_id},
        _get_mutations().create_comment,
    )


@mcp.tool
async def login(email: str, password: str) -> ToolResult:
    """Check a user's credentials and return the user."""
    return await _run(
        "login",
        LoginInput,
        {"email": email, "password": password},
        _get_mutations().login,
    )


@mcp.tool
async def follow(id: str, follower_id: str) -> ToolResult:
    """Add *follower_id* to the followers of user *id*.

    Args:
        id: User being followed.
        follower_id: User doing the following.
    """
    mutations = _get_mutations()
    return await _run(
        "follow",
        FollowInput,
        {"id": id, "follower_id": follower_id},
        lambda id, follower_id: mutations.follow(id, follower_id),
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _config_from_env() -> tuple[StoreConfig, AuditConfig]:
    store_config = StoreConfig(
        backend=os.getenv("MUSTY_STORE_BACKEND", "memory"),
        redis_url=os.getenv("MUSTY_REDIS_URL", "redis://localhost:6379"),
        neo4j_url=os.getenv("MUSTY_NEO4J_URL") or None,
    )
    audit_file = os.getenv("MUSTY_AUDIT_FILE")
    audit_config = AuditConfig(file_path=audit_file) if audit_file else AuditConfig()
    return store_config, audit_config


def load_environment(dotenv_path: str | None = None) -> tuple[StoreConfig, AuditConfig]:
    """Load ``.env``, attach bearer auth to the server and read backend config.

    Must run before serving: ``MUSTY_AUTH_KEY`` may only be set in ``.env``.
    """
    load_dotenv(dotenv_path, override=False)
    mcp.auth = create_mcp_auth()
    return _config_from_env()


def main() -> None:
    """Configure from the environment (and ``.env``) and serve over stdio."""
    store_config, audit_config = load_environment()
    logging.basicConfig(
        level=os.getenv("MUSTY_LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    async def serve() -> None:
        await configure(store_config=store_config, audit_config=audit_config)
        logger.info("Starting musty (backend=%s)", store_config.backend)
        if mcp.auth is not None:
            logger.info("Bearer auth enabled")
        try:
            await mcp.run_async()
        finally:
            await shutdown()

    asyncio.run(serve())
