"""Audit event types and data models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class AuditEventType(str, Enum):
    """Categories of auditable mutations."""

    USER_CREATED = "USER_CREATED"
    TOPIC_CREATED = "TOPIC_CREATED"
    POST_CREATED = "POST_CREATED"
    COMMENT_CREATED = "COMMENT_CREATED"
    LOGIN = "LOGIN"
    FOLLOW = "FOLLOW"


class AuditEvent(BaseModel):
    """A single immutable audit log entry."""

    model_config = {"frozen": True}

    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the event occurred.",
    )
    event_type: AuditEventType
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Ids involved in the mutation; never credentials.",
    )
