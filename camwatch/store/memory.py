"""Dict-backed store for tests and local replays."""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Optional, Set

from ..lifecycle.records import to_millis
from .base import Document, DocumentStore, SnapshotError, StoreError


class InMemoryStore(DocumentStore):
    """
    In-process store with optional injected failures.

    Args:
        records: Initial record documents by id
        reports: Initial raw-report documents by id, or None when the report
            source does not exist
        fail_ids: Record ids whose writes raise ``StoreError``
        snapshot_unavailable: Make ``fetch_records`` raise ``SnapshotError``
    """

    def __init__(
        self,
        records: Optional[Dict[str, Dict[str, Any]]] = None,
        reports: Optional[Dict[str, Dict[str, Any]]] = None,
        *,
        fail_ids: Iterable[str] = (),
        snapshot_unavailable: bool = False,
    ):
        self.records: Dict[str, Dict[str, Any]] = copy.deepcopy(records or {})
        self.reports: Optional[Dict[str, Dict[str, Any]]] = copy.deepcopy(reports)
        self.summaries: Dict[str, Dict[str, Any]] = {}
        self.fail_ids: Set[str] = set(fail_ids)
        self.snapshot_unavailable = snapshot_unavailable
        self.write_log: List[tuple] = []

    def fetch_records(self) -> List[Document]:
        if self.snapshot_unavailable:
            raise SnapshotError("record collection unavailable")
        return [(doc_id, copy.deepcopy(doc)) for doc_id, doc in self.records.items()]

    def fetch_reports(self, since_ms: int) -> List[Document]:
        if self.reports is None:
            raise StoreError("report collection unavailable")
        return [
            (doc_id, copy.deepcopy(doc))
            for doc_id, doc in self.reports.items()
            if (to_millis(doc.get("timestamp")) or 0) >= since_ms
        ]

    def _check(self, doc_id: str) -> None:
        if doc_id in self.fail_ids:
            raise StoreError(f"write rejected for {doc_id}")

    def patch_record(self, doc_id: str, fields: Dict[str, Any]) -> None:
        self._check(doc_id)
        if doc_id not in self.records:
            raise StoreError(f"no record {doc_id}")
        self.records[doc_id].update(copy.deepcopy(fields))
        self.write_log.append(("patch", doc_id, dict(fields)))

    def delete_record(self, doc_id: str) -> None:
        self._check(doc_id)
        self.records.pop(doc_id, None)
        self.write_log.append(("delete", doc_id, {}))

    def upsert_summary(self, doc_id: str, fields: Dict[str, Any]) -> None:
        self._check(doc_id)
        self.summaries.setdefault(doc_id, {}).update(copy.deepcopy(fields))
        self.write_log.append(("upsert_summary", doc_id, dict(fields)))
