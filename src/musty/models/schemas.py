"""Composed response shapes and transport input models.

Composed shapes are the denormalized views the resolver assembles from
normalized entities. Input models validate tool arguments before they
reach the mutation service; ``ToolResult`` is the envelope every tool
returns. FastMCP serializes Pydantic models automatically.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from musty.models.entities import Comment
from musty.models.entities import Post
from musty.models.entities import Topic
from musty.models.entities import User

# ---------------------------------------------------------------------------
# Composed shapes
# ---------------------------------------------------------------------------


class PostQuery(BaseModel):
    """A post bundled with its author, comments and topic."""

    model_config = ConfigDict(populate_by_name=True)

    post: Post
    posted_by: User | None = Field(default=None, alias="postedBy")
    comments: list[Comment] = Field(default_factory=list)
    topic: Topic | None = None


class ProfileQuery(BaseModel):
    """A user with the posts they authored."""

    user: User
    posts: list[PostQuery] = Field(default_factory=list)


class TopicQuery(BaseModel):
    """A topic with its associated posts."""

    topic: Topic
    posts: list[PostQuery] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class IdInput(BaseModel):
    id: str = Field(min_length=1)


class CreateUserInput(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    pronoun: str | None = None


class CreateTopicInput(BaseModel):
    title: str | None = None


class CreatePostInput(BaseModel):
    caption: str = Field(min_length=1)
    posted_by_id: str = Field(min_length=1)
    topic_id: str = Field(min_length=1)


class CreateCommentInput(BaseModel):
    comment: str = Field(min_length=1)
    commented_by_id: str = Field(min_length=1)
    post_id: str = Field(min_length=1)


class LoginInput(BaseModel):
    email: str = Field(min_length=1)
    password: str


class FollowInput(BaseModel):
    id: str = Field(min_length=1)
    follower_id: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Output envelope
# ---------------------------------------------------------------------------


class ToolResult(BaseModel):
    """Envelope returned by every MCP tool."""

    status: str = Field(description="'ok' or 'error'.")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error category when status is 'error'.",
    )
    message: str | None = None
    data: Any = Field(
        default=None,
        description="camelCase JSON payload of the operation result.",
    )
