"""
Spatial-temporal hotspot detection over recent mobile reports.

This module provides:
1. ``ClusterPoint`` - the clustering view of a stored record or raw report
2. ``detect_hotspots`` - seed-by-seed fixed-radius neighbour clustering
3. ``HotspotSummary`` - the derived per-grid-cell summary document
4. Diagnostics describing what a detection pass saw and emitted

Detection semantics:
- Every non-hotspot, promotable point is a seed. Its neighbourhood is every
  point (records and raw reports, itself included) within the radius.
- Neighbourhoods are measured against the snapshot handed in, never against
  promotions made earlier in the same pass.
- A neighbourhood at or above the threshold promotes its promotable members
  and emits one summary keyed by the seed's rounded coordinates.
- A point promoted earlier in the pass no longer seeds, but still counts as a
  neighbour of later seeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .grid import build_index


logger = logging.getLogger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000

# Prefix marking raw-report entries; these are never promoted or written.
REPORT_ID_PREFIX = "r_"


@dataclass(frozen=True)
class ClusterPoint:
    """A geolocated, timestamped entry in the clustering working set."""

    id: str
    """Record id, or ``r_<id>`` for raw reports."""

    lat: float
    lon: float

    timestamp: int
    """Observation instant (epoch ms)."""

    promotable: bool = True
    """False for raw reports: they count as neighbours only."""

    hotspot: bool = False
    """Hotspot flag as read at the start of the pass."""

    confidence: int = 70
    last_seen: int = 0


@dataclass
class HotspotSummary:
    """Derived summary of one detected cluster, keyed by a rounded grid cell."""

    id: str
    lat: float
    lon: float
    report_count: int
    last_reported: int
    confidence: float
    updated_at: int
    kind: str = "mobile"

    def to_document(self) -> Dict[str, Any]:
        """Fields to merge into the stored summary (id excluded)."""
        return {
            "lat": self.lat,
            "lon": self.lon,
            "kind": self.kind,
            "reportCount": self.report_count,
            "lastReported": self.last_reported,
            "confidence": self.confidence,
            "updatedAt": self.updated_at,
        }


@dataclass
class HotspotDiagnostics:
    """What a detection pass considered and produced."""

    num_candidates: int = 0
    """Promotable records in the working set."""

    num_reports: int = 0
    """Raw reports in the working set."""

    seeds_evaluated: int = 0
    clusters_found: int = 0
    largest_cluster: int = 0
    index_used: str = "h3"


@dataclass
class HotspotResult:
    """Output of ``detect_hotspots``."""

    promotions: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    """Record id -> field patch, one entry per promoted record."""

    summaries: Dict[str, HotspotSummary] = field(default_factory=dict)
    """Summary id -> summary; a later cluster on the same cell replaces an earlier one."""

    diagnostics: HotspotDiagnostics = field(default_factory=HotspotDiagnostics)


def summary_key(lat: float, lon: float, precision: int = 4) -> str:
    """Deterministic summary id for a location (4 decimals is roughly an 11 m grid)."""
    return f"hs_{lat:.{precision}f}_{lon:.{precision}f}"


def window_cutoff(now: int, window_days: float) -> int:
    """Oldest timestamp (epoch ms) still inside the lookback window."""
    return int(now - window_days * MS_PER_DAY)


def promotion_patch(point: ClusterPoint, now: int, preserve_days: float) -> Dict[str, Any]:
    """Field patch applied to a record promoted to hotspot."""
    return {
        "hotspot": True,
        "confidence": min(100, point.confidence + 20),
        "expiresAt": int(now + preserve_days * MS_PER_DAY),
        "lastSeen": max(point.last_seen, point.timestamp),
    }


def detect_hotspots(
    points: Sequence[ClusterPoint],
    *,
    now: int,
    radius_m: float,
    threshold: int,
    preserve_days: float,
    precision: int = 4,
    index: str = "h3",
) -> HotspotResult:
    """
    Find clusters of mutually nearby points and build promotions and summaries.

    Args:
        points: Working set; records first, then raw reports. Already filtered
            to mobile kind, valid coordinates and the lookback window.
        now: Evaluation instant (epoch ms)
        radius_m: Neighbourhood radius in metres (inclusive)
        threshold: Minimum neighbourhood size, seed included
        preserve_days: Retention granted to promoted records
        precision: Decimal places used for summary ids
        index: Neighbour index, ``"h3"`` or ``"scan"``

    Returns:
        HotspotResult with per-record promotion patches, summaries and diagnostics
    """
    result = HotspotResult()
    diag = result.diagnostics
    diag.index_used = index
    diag.num_candidates = sum(1 for p in points if p.promotable)
    diag.num_reports = len(points) - diag.num_candidates

    if not points:
        return result

    neighbors = build_index([(p.lat, p.lon) for p in points], radius_m, kind=index)
    promoted_in_pass: set = set()

    for seed in points:
        if not seed.promotable or seed.hotspot or seed.id in promoted_in_pass:
            continue
        diag.seeds_evaluated += 1

        nearby: List[ClusterPoint] = [points[i] for i in neighbors.within(seed.lat, seed.lon, radius_m)]
        if len(nearby) < threshold:
            continue

        diag.clusters_found += 1
        diag.largest_cluster = max(diag.largest_cluster, len(nearby))

        for member in nearby:
            if not member.promotable:
                continue
            result.promotions[member.id] = promotion_patch(member, now, preserve_days)
            promoted_in_pass.add(member.id)

        summary = HotspotSummary(
            id=summary_key(seed.lat, seed.lon, precision),
            lat=seed.lat,
            lon=seed.lon,
            report_count=len(nearby),
            last_reported=max(m.timestamp for m in nearby),
            confidence=min(1.0, len(nearby) / threshold),
            updated_at=now,
        )
        result.summaries[summary.id] = summary
        logger.debug(
            "Cluster at %s: %d members (%d promotable)",
            summary.id,
            len(nearby),
            sum(1 for m in nearby if m.promotable),
        )

    return result

