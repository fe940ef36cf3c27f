"""
Batch orchestrator: one maintenance pass over the record collection.

Sequence (single pass, no rollback):
1. Read the full record snapshot (failure aborts the run)
2. Normalise and evaluate every record, collecting mutations
3. Apply normalisation, hide and delete mutations
4. Rebuild the clustering working set from the post-mutation state plus any
   recent raw reports (an unavailable report source counts as empty)
5. Detect hotspots on that frozen snapshot
6. Apply promotion patches and summary upserts
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .lifecycle.evaluator import LifecycleDecision, evaluate_record
from .lifecycle.records import Kind, Record, normalize_record, parse_kind, to_int, to_millis
from .spatial.distance import valid_coordinates
from .spatial.hotspots import (
    REPORT_ID_PREFIX,
    ClusterPoint,
    HotspotDiagnostics,
    detect_hotspots,
    window_cutoff,
)
from .store.base import DocumentStore, Mutation, MutationOp, StoreError, WriteFailure
from .tools.config_loader import WorkerConfig


logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """What one pass read, decided and wrote."""

    now: int
    dry_run: bool = False
    records_read: int = 0
    normalized: int = 0
    hidden: int = 0
    deleted: int = 0
    extended: int = 0
    reactivated: int = 0
    skipped: int = 0
    promoted: int = 0
    summaries: int = 0
    reports_included: int = 0
    reports_available: bool = True
    mutations: List[Mutation] = field(default_factory=list)
    failures: List[WriteFailure] = field(default_factory=list)
    diagnostics: HotspotDiagnostics = field(default_factory=HotspotDiagnostics)

    @property
    def mutation_count(self) -> int:
        return len(self.mutations)

    def summary_line(self) -> str:
        return (
            f"read={self.records_read} normalized={self.normalized} hidden={self.hidden} "
            f"deleted={self.deleted} extended={self.extended} reactivated={self.reactivated} "
            f"skipped={self.skipped} promoted={self.promoted} summaries={self.summaries} "
            f"reports={self.reports_included} mutations={self.mutation_count} "
            f"failures={len(self.failures)}" + (" (dry run)" if self.dry_run else "")
        )


def _merge_patch(first: Dict[str, Any], second: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(first)
    merged.update(second)
    return merged


def _count_decision(report: RunReport, decision: LifecycleDecision) -> None:
    if decision.skipped:
        report.skipped += 1
    elif decision.delete:
        report.deleted += 1
    elif decision.patch.get("removed") is True:
        report.hidden += 1
    elif decision.patch.get("removed") is False:
        report.reactivated += 1
    elif "expiresAt" in decision.patch:
        report.extended += 1


def evaluate_snapshot(
    documents: List[tuple],
    *,
    now: int,
    config: WorkerConfig,
    report: RunReport,
) -> tuple:
    """
    Normalise and evaluate every record.

    Returns:
        (mutations, survivors) where survivors maps record id to the
        post-mutation Record for every record not deleted
    """
    mutations: List[Mutation] = []
    survivors: Dict[str, Record] = {}

    for doc_id, raw in documents:
        normalized = normalize_record(
            doc_id,
            raw or {},
            now=now,
            mobile_lifetime_hours=config.mobile_lifetime_hours,
            other_lifetime_hours=config.other_lifetime_hours,
        )
        record = normalized.record
        if normalized.patch:
            report.normalized += 1
            logger.info("[%s] Filled missing fields: %s", record.id, ", ".join(sorted(normalized.patch)))

        decision = evaluate_record(
            record,
            now=now,
            window_days=config.hotspot_window_days,
            preserve_days=config.preserve_hotspot_days,
            fixed_remove_threshold=config.fixed_remove_threshold,
        )
        _count_decision(report, decision)
        if decision.reason and decision.mutates:
            logger.info("[%s] %s (%s)", record.id, decision.state.value, decision.reason)

        if decision.delete:
            mutations.append(Mutation(MutationOp.DELETE, record.id))
            continue

        patch = _merge_patch(normalized.patch, decision.patch)
        if patch:
            mutations.append(Mutation(MutationOp.PATCH, record.id, patch))
        survivors[record.id] = record.with_patch(decision.patch)

    return mutations, survivors


def record_points(records: List[Record], cutoff: int) -> List[ClusterPoint]:
    """Clustering view of surviving records: mobile, geolocated, in window."""
    points = []
    for record in records:
        if record.kind is not Kind.MOBILE or record.removed_externally:
            continue
        if record.coordinates is None or record.timestamp < cutoff:
            continue
        points.append(ClusterPoint(
            id=record.id,
            lat=record.lat,
            lon=record.lon,
            timestamp=record.timestamp,
            promotable=True,
            hotspot=record.hotspot,
            confidence=record.confidence,
            last_seen=record.last_seen,
        ))
    return points


def report_points(documents: List[tuple], cutoff: int) -> List[ClusterPoint]:
    """Clustering view of raw reports; they only ever count as neighbours."""
    points = []
    for doc_id, raw in documents:
        raw = raw or {}
        if parse_kind(raw) is not Kind.MOBILE:
            continue
        coords = valid_coordinates(raw.get("lat"), raw.get("lon"))
        timestamp = to_millis(raw.get("timestamp"))
        if coords is None or not timestamp or timestamp < cutoff:
            continue
        points.append(ClusterPoint(
            id=f"{REPORT_ID_PREFIX}{doc_id}",
            lat=coords[0],
            lon=coords[1],
            timestamp=timestamp,
            promotable=False,
            confidence=to_int(raw.get("confidence"), 70),
        ))
    return points


def _fetch_reports(store: DocumentStore, cutoff: int, report: RunReport) -> List[tuple]:
    try:
        documents = store.fetch_reports(cutoff)
    except StoreError as e:
        report.reports_available = False
        logger.warning("Raw report source unavailable, clustering local records only: %s", e)
        return []
    return documents


def _apply(
    store: DocumentStore,
    mutations: List[Mutation],
    config: WorkerConfig,
    report: RunReport,
) -> None:
    report.mutations.extend(mutations)
    if report.dry_run or not mutations:
        return
    report.failures.extend(store.apply(mutations, batch_size=config.write_batch_size))


def run_pass(
    store: DocumentStore,
    config: WorkerConfig,
    now: int,
    *,
    dry_run: bool = False,
) -> RunReport:
    """
    Run one maintenance pass.

    Args:
        store: Injected document store
        config: Worker constants
        now: Evaluation instant (epoch ms), used for every decision in the pass
        dry_run: Compute and report mutations without writing them

    Returns:
        RunReport with counts, planned mutations and per-record write failures

    Raises:
        SnapshotError: If the record collection cannot be read
    """
    report = RunReport(now=now, dry_run=dry_run)

    documents = store.fetch_records()
    report.records_read = len(documents)
    logger.info("Found %d record docs", report.records_read)

    # 1) Normalisation and lifecycle
    lifecycle_mutations, survivors = evaluate_snapshot(
        documents, now=now, config=config, report=report
    )
    _apply(store, lifecycle_mutations, config, report)

    # 2) Hotspot detection over post-mutation state
    cutoff = window_cutoff(now, config.hotspot_window_days)
    points = record_points(list(survivors.values()), cutoff)
    reports = report_points(_fetch_reports(store, cutoff, report), cutoff)
    report.reports_included = len(reports)
    if reports:
        logger.info("Included %d recent raw reports for hotspot detection", len(reports))

    logger.info("Checking hotspots among %d recent mobile docs/reports", len(points) + len(reports))
    result = detect_hotspots(
        points + reports,
        now=now,
        radius_m=config.hotspot_radius_m,
        threshold=config.hotspot_threshold,
        preserve_days=config.preserve_hotspot_days,
        precision=config.summary_precision,
        index=config.spatial_index,
    )
    report.diagnostics = result.diagnostics

    cluster_mutations: List[Mutation] = []
    for record_id, patch in result.promotions.items():
        logger.info("[%s] Promoted to hotspot", record_id)
        cluster_mutations.append(Mutation(MutationOp.PATCH, record_id, patch))
    for summary in result.summaries.values():
        logger.info("[HOTSPOT] Updated hotspot doc %s (reports=%d)", summary.id, summary.report_count)
        cluster_mutations.append(Mutation(MutationOp.UPSERT_SUMMARY, summary.id, summary.to_document()))
    report.promoted = len(result.promotions)
    report.summaries = len(result.summaries)
    _apply(store, cluster_mutations, config, report)

    logger.info("Pass finished: %s", report.summary_line())
    return report

