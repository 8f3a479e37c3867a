"""Async JSONL audit logger."""

from __future__ import annotations

import asyncio
from functools import partial

from musty.audit.schemas import AuditEvent
from musty.config import AuditConfig


class AuditLogger:
    """Append-only JSONL audit log.

    File I/O runs in ``asyncio.to_thread`` behind an ``asyncio.Lock`` so
    concurrent mutations never interleave lines.
    """

    def __init__(self, config: AuditConfig) -> None:
        self.config = config
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        """Append *event* as a single JSON line to the audit file."""
        if not self.config.enabled:
            return
        line = event.model_dump_json() + "\n"
        async with self._lock:
            await asyncio.to_thread(
                partial(self._append, self.config.file_path, line),
            )

    @staticmethod
    def _append(path: str, line: str) -> None:
        with open(path, "a") as fh:
            fh.write(line)

