"""Pydantic models for the four normalized entity kinds.

Entities reference each other only by id. Field names are snake_case;
the camelCase aliases are the names the transport layer exposes
(``postedByID``, ``datePosted``...). Models accept either form on input.

``User.password`` is excluded from every dump so it never leaks into a
response. Stores persist it through :func:`serialize_entity`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class EntityKind(str, Enum):
    """The entity kinds held by the store."""

    user = "User"
    post = "Post"
    comment = "Comment"
    topic = "Topic"


class EntityBase(BaseModel):
    """Fields shared by every entity."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Opaque, store-assigned identifier.")


class User(EntityBase):
    name: str
    email: str = Field(description="Globally unique login address.")
    password: str = Field(
        exclude=True,
        repr=False,
        description="Opaque stored credential, compared by a CredentialVerifier.",
    )
    pronoun: str | None = None
    date_joined: datetime | None = Field(default=None, alias="dateJoined")
    joined: str | None = Field(
        default=None,
        description="Display string of the join month, e.g. 'Oct 2026'.",
    )
    followers: list[str] = Field(
        default_factory=list,
        description="Ids of users following this user, in follow order.",
    )
    following: list[str] = Field(
        default_factory=list,
        description="Ids of users this user follows. Not kept in sync with followers.",
    )


class Post(EntityBase):
    caption: str
    posted_by_id: str = Field(alias="postedByID")
    topic_id: str | None = Field(default=None, alias="topicID")
    date_posted: str = Field(
        alias="datePosted",
        description="Display string, e.g. 'Oct Mon 2026'.",
    )


class Comment(EntityBase):
    comment: str
    commented_by_id: str = Field(alias="commentedByID")
    post_id: str = Field(alias="postID")
    date_commented: datetime | None = Field(default=None, alias="dateCommented")


class Topic(EntityBase):
    title: str | None = None


Entity = User | Post | Comment | Topic

KIND_TO_MODEL: dict[EntityKind, type[EntityBase]] = {
    EntityKind.user: User,
    EntityKind.post: Post,
    EntityKind.comment: Comment,
    EntityKind.topic: Topic,
}

ID_PREFIXES: dict[EntityKind, str] = {
    EntityKind.user: "usr",
    EntityKind.post: "pst",
    EntityKind.comment: "cmt",
    EntityKind.topic: "tpc",
}


def kind_of(entity: EntityBase) -> EntityKind:
    """Return the :class:`EntityKind` of a model instance."""
    for kind, model_cls in KIND_TO_MODEL.items():
        if type(entity) is model_cls:
            return kind
    msg = f"Unknown entity type: {type(entity).__name__}"
    raise TypeError(msg)


def model_fields_for(kind: EntityKind) -> frozenset[str]:
    """Field names that may appear in a store filter for *kind*."""
    return frozenset(KIND_TO_MODEL[kind].model_fields)


def serialize_entity(entity: EntityBase, *, mode: str = "json") -> dict:
    """Dump an entity for persistence, including excluded credential fields."""
    data = entity.model_dump(mode=mode)
    if isinstance(entity, User):
        data["password"] = entity.password
    return data
