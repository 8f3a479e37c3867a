"""Unit test fixtures: in-memory stores, a call-counting store and a FastMCP client."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from datetime import datetime
from datetime import timezone
from pathlib import Path

import pytest
from fastmcp import Client

from musty.audit import AuditEvent
from musty.audit import AuditEventType
from musty.config import AuditConfig
from musty.engine import GraphResolver
from musty.engine import MutationService
from musty.models.entities import EntityBase
from musty.models.entities import EntityKind
from musty.store.memory import InMemoryEntityStore

FIXED_NOW = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)


class CountingStore(InMemoryEntityStore):
    """In-memory store that records every underlying fetch."""

    def __init__(self) -> None:
        super().__init__()
        self.get_calls: Counter[tuple[EntityKind, str]] = Counter()
        self.find_calls: Counter[tuple[EntityKind, tuple]] = Counter()

    async def get(self, kind: EntityKind, entity_id: str) -> EntityBase | None:
        self.get_calls[(kind, entity_id)] += 1
        return await super().get(kind, entity_id)

    async def find(
        self, kind: EntityKind, filter: Mapping[str, object] | None = None
    ) -> list[EntityBase]:
        self.find_calls[(kind, tuple(sorted((filter or {}).items())))] += 1
        return await super().find(kind, filter)

    def reset_counts(self) -> None:
        self.get_calls.clear()
        self.find_calls.clear()


@pytest.fixture()
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture()
def counting_store() -> CountingStore:
    return CountingStore()


@pytest.fixture()
def resolver(store) -> GraphResolver:
    return GraphResolver(store)


@pytest.fixture()
def now() -> datetime:
    """Fixed clock reading: a Monday in October 2026."""
    return FIXED_NOW


@pytest.fixture()
def mutations(store, resolver, now) -> MutationService:
    return MutationService(store, resolver=resolver, clock=lambda: now)


@pytest.fixture()
def audit_config(tmp_path) -> AuditConfig:
    return AuditConfig(file_path=str(tmp_path / "audit.jsonl"))


@pytest.fixture()
def audit_events(audit_config):
    """Return a reader that parses the audit file, optionally by event type."""

    def read(event_type: AuditEventType | None = None) -> list[AuditEvent]:
        path = Path(audit_config.file_path)
        if not path.exists():
            return []
        events = [
            AuditEvent.model_validate_json(line)
            for line in path.read_text().splitlines()
        ]
        return [e for e in events if event_type is None or e.event_type == event_type]

    return read


@pytest.fixture()
async def mcp_client(audit_config):
    """Yield a FastMCP Client wired to the musty server over a fresh memory store."""
    from musty.server import configure
    from musty.server import mcp
    from musty.server import shutdown

    await configure(InMemoryEntityStore(), audit_config=audit_config)

    async with Client(mcp) as client:
        yield client

    await shutdown()
