"""Engine domain: batched loading, graph resolution and mutations."""

from musty.engine.loader import BatchedLoader
from musty.engine.loader import LoaderStats
from musty.engine.loader import resolution_pass
from musty.engine.mutations import is_email
from musty.engine.mutations import MutationService
from musty.engine.resolver import GraphResolver

__all__ = [
    "BatchedLoader",
    "GraphResolver",
    "LoaderStats",
    "MutationService",
    "is_email",
    "resolution_pass",
]
