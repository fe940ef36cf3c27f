"""
Document store interface consumed by the worker.

The worker never holds a global client: a ``DocumentStore`` is passed in and
exposes exactly the reads and writes one maintenance pass needs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


logger = logging.getLogger(__name__)

# (document id, document fields)
Document = Tuple[str, Dict[str, Any]]


class StoreError(Exception):
    """A store read or write failed."""


class SnapshotError(StoreError):
    """The initial record snapshot could not be read."""


class MutationOp(str, Enum):
    PATCH = "patch"
    DELETE = "delete"
    UPSERT_SUMMARY = "upsert_summary"


@dataclass(frozen=True)
class Mutation:
    """One write addressed to a single document."""

    op: MutationOp
    doc_id: str
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WriteFailure:
    """A mutation the store rejected."""

    doc_id: str
    op: MutationOp
    error: str


def chunked(items: List[Mutation], size: Optional[int]) -> Iterable[List[Mutation]]:
    """Split ``items`` into lists of at most ``size`` (one list when size is None)."""
    if not size or size <= 0:
        if items:
            yield items
        return
    for start in range(0, len(items), size):
        yield items[start:start + size]


class DocumentStore(ABC):
    """Records, an optional append-only raw-report source and hotspot summaries."""

    @abstractmethod
    def fetch_records(self) -> List[Document]:
        """Return the full record collection. Raises ``SnapshotError`` on failure."""

    @abstractmethod
    def fetch_reports(self, since_ms: int) -> List[Document]:
        """Return raw reports with ``timestamp >= since_ms``. Raises ``StoreError``."""

    @abstractmethod
    def patch_record(self, doc_id: str, fields: Dict[str, Any]) -> None:
        """Set ``fields`` on an existing record."""

    @abstractmethod
    def delete_record(self, doc_id: str) -> None:
        """Physically delete a record."""

    @abstractmethod
    def upsert_summary(self, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into the summary ``doc_id``, creating it if absent."""

    def apply_one(self, mutation: Mutation) -> None:
        if mutation.op is MutationOp.PATCH:
            self.patch_record(mutation.doc_id, mutation.fields)
        elif mutation.op is MutationOp.DELETE:
            self.delete_record(mutation.doc_id)
        elif mutation.op is MutationOp.UPSERT_SUMMARY:
            self.upsert_summary(mutation.doc_id, mutation.fields)
        else:
            raise ValueError(f"Unsupported mutation op: {mutation.op}")

    def apply(
        self,
        mutations: List[Mutation],
        batch_size: Optional[int] = None,
    ) -> List[WriteFailure]:
        """
        Apply mutations one by one, isolating failures.

        A ``StoreError`` on one mutation is recorded and the rest still run.
        ``batch_size`` is accepted for interface parity with bulk stores.
        """
        failures: List[WriteFailure] = []
        for mutation in mutations:
            try:
                self.apply_one(mutation)
            except StoreError as e:
                logger.error("[%s] %s failed: %s", mutation.doc_id, mutation.op.value, e)
                failures.append(WriteFailure(mutation.doc_id, mutation.op, str(e)))
        return failures
