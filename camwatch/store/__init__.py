"""
camwatch.store: the document store consumed by the worker.
"""

from .base import (
    Document,
    DocumentStore,
    Mutation,
    MutationOp,
    SnapshotError,
    StoreError,
    WriteFailure,
    chunked,
)
from .memory import InMemoryStore

__all__ = [
    "Document",
    "DocumentStore",
    "Mutation",
    "MutationOp",
    "SnapshotError",
    "StoreError",
    "WriteFailure",
    "chunked",
    "InMemoryStore",
]
