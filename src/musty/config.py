"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.
No env-var loading or YAML parsing here; ``musty.server.main`` reads the
environment and builds these explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StoreConfig:
    """Entity store backend selection and connection settings."""

    backend: str = "memory"
    redis_url: str = "redis://localhost:6379"
    neo4j_url: str | None = None
    key_prefix: str = "musty"


@dataclass(frozen=True)
class LoaderConfig:
    """Batching parameters for the per-pass loader."""

    # None lets the loader send every queued id in a single batch
    max_batch_size: int | None = 100


@dataclass(frozen=True)
class DisplayConfig:
    """strftime formats for the server-set display strings."""

    joined_format: str = "%b %Y"
    posted_format: str = "%b %a %Y"


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL mutation audit log."""

    file_path: str = "musty_audit.jsonl"
    enabled: bool = True
