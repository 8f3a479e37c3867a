"""Models domain: normalized entities and composed response shapes."""

from __future__ import annotations

from musty.models.entities import Comment
from musty.models.entities import Entity
from musty.models.entities import EntityBase
from musty.models.entities import EntityKind
from musty.models.entities import ID_PREFIXES
from musty.models.entities import KIND_TO_MODEL
from musty.models.entities import kind_of
from musty.models.entities import model_fields_for
from musty.models.entities import Post
from musty.models.entities import serialize_entity
from musty.models.entities import Topic
from musty.models.entities import User
from musty.models.schemas import PostQuery
from musty.models.schemas import ProfileQuery
from musty.models.schemas import ToolResult
from musty.models.schemas import TopicQuery

__all__ = [
    "Comment",
    "Entity",
    "EntityBase",
    "EntityKind",
    "ID_PREFIXES",
    "KIND_TO_MODEL",
    "Post",
    "PostQuery",
    "ProfileQuery",
    "ToolResult",
    "Topic",
    "TopicQuery",
    "User",
    "kind_of",
    "model_fields_for",
    "serialize_entity",
]
