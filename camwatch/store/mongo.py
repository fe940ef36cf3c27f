"""
MongoDB-backed store.

Records, raw reports and hotspot summaries live in three collections of one
database. Batched writes use unordered ``bulk_write`` so one rejected
operation does not stop the others in its chunk.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo import DeleteOne, MongoClient, UpdateOne
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError, PyMongoError

from ..lifecycle.records import to_millis
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


logger = logging.getLogger(__name__)


class MongoStore(DocumentStore):
    """
    Store backed by three pymongo collections.

    Collections are injected so tests can pass mocks; use ``from_uri`` to
    connect to a server.
    """

    def __init__(
        self,
        records: Collection,
        reports: Optional[Collection],
        summaries: Collection,
    ):
        self.records = records
        self.reports = reports
        self.summaries = summaries
        # str(id) -> stored _id, so ObjectId keys round-trip through writes
        self._ids: Dict[str, Any] = {}

    @classmethod
    def from_uri(
        cls,
        uri: str,
        database: str,
        *,
        records_collection: str = "cameras",
        reports_collection: Optional[str] = "camera_reports",
        summaries_collection: str = "camera_hotspots",
    ) -> "MongoStore":
        client = MongoClient(uri)
        db = client[database]
        return cls(
            db[records_collection],
            db[reports_collection] if reports_collection else None,
            db[summaries_collection],
        )

    def _key(self, doc_id: str) -> Any:
        return self._ids.get(doc_id, doc_id)

    def _split(self, doc: Dict[str, Any]) -> Document:
        raw_id = doc.pop("_id")
        doc_id = str(raw_id)
        self._ids[doc_id] = raw_id
        return doc_id, doc

    def fetch_records(self) -> List[Document]:
        try:
            return [self._split(doc) for doc in self.records.find({})]
        except PyMongoError as e:
            raise SnapshotError(f"could not read records: {e}") from e

    def fetch_reports(self, since_ms: int) -> List[Document]:
        if self.reports is None:
            raise StoreError("no report collection configured")
        # Numeric timestamps are filtered server-side; string and date values
        # are fetched and compared after coercion.
        query = {"$or": [
            {"timestamp": {"$gte": since_ms}},
            {"timestamp": {"$type": ["string", "date"]}},
        ]}
        try:
            docs = list(self.reports.find(query))
        except PyMongoError as e:
            raise StoreError(f"could not read reports: {e}") from e
        return [
            (str(doc.pop("_id")), doc)
            for doc in docs
            if (to_millis(doc.get("timestamp")) or 0) >= since_ms
        ]

    def patch_record(self, doc_id: str, fields: Dict[str, Any]) -> None:
        try:
            self.records.update_one({"_id": self._key(doc_id)}, {"$set": fields})
        except PyMongoError as e:
            raise StoreError(str(e)) from e

    def delete_record(self, doc_id: str) -> None:
        try:
            self.records.delete_one({"_id": self._key(doc_id)})
        except PyMongoError as e:
            raise StoreError(str(e)) from e

    def upsert_summary(self, doc_id: str, fields: Dict[str, Any]) -> None:
        try:
            self.summaries.update_one({"_id": doc_id}, {"$set": fields}, upsert=True)
        except PyMongoError as e:
            raise StoreError(str(e)) from e

    def _operation(self, mutation: Mutation):
        if mutation.op is MutationOp.PATCH:
            return UpdateOne({"_id": self._key(mutation.doc_id)}, {"$set": mutation.fields})
        if mutation.op is MutationOp.DELETE:
            return DeleteOne({"_id": self._key(mutation.doc_id)})
        return UpdateOne({"_id": mutation.doc_id}, {"$set": mutation.fields}, upsert=True)

    def _bulk(self, collection: Collection, batch: List[Mutation]) -> List[WriteFailure]:
        try:
            collection.bulk_write([self._operation(m) for m in batch], ordered=False)
        except BulkWriteError as e:
            failures = []
            for err in e.details.get("writeErrors", []):
                mutation = batch[err["index"]]
                failures.append(WriteFailure(mutation.doc_id, mutation.op, err.get("errmsg", "write error")))
            return failures
        except PyMongoError as e:
            return [WriteFailure(m.doc_id, m.op, str(e)) for m in batch]
        return []

    def apply(
        self,
        mutations: List[Mutation],
        batch_size: Optional[int] = None,
    ) -> List[WriteFailure]:
        """Apply mutations as unordered bulk writes of at most ``batch_size`` operations."""
        record_ops = [m for m in mutations if m.op is not MutationOp.UPSERT_SUMMARY]
        summary_ops = [m for m in mutations if m.op is MutationOp.UPSERT_SUMMARY]

        failures: List[WriteFailure] = []
        for collection, ops in ((self.records, record_ops), (self.summaries, summary_ops)):
            for batch in chunked(ops, batch_size):
                batch_failures = self._bulk(collection, batch)
                for failure in batch_failures:
                    logger.error("[%s] %s failed: %s", failure.doc_id, failure.op.value, failure.error)
                failures.extend(batch_failures)
        return failures
