"""Audit subsystem: async JSONL log of applied mutations."""

from musty.audit.schemas import AuditEvent
from musty.audit.schemas import AuditEventType
from musty.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
