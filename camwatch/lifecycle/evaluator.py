"""
Per-record lifecycle (time-to-live) evaluation.

States:
    ACTIVE             visible, within its TTL
    HOTSPOT_PRESERVED  promoted by clustering; TTL extended instead of expiring
    HIDDEN             ``removed = true``; kept so it can still join a hotspot
    DELETED            physically removed from the store (terminal)

A record is only deleted once it has failed its count/TTL test *and* its
timestamp has left the hotspot lookback window. Fixed records are never
deleted; past the removal threshold they are hidden.

Every transition is written as plain field sets computed from ``now`` so
re-evaluating an unchanged record yields no further mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from .records import Kind, Record


MS_PER_DAY = 24 * 60 * 60 * 1000


class LifecycleState(Enum):
    ACTIVE = "active"
    HOTSPOT_PRESERVED = "hotspot_preserved"
    HIDDEN = "hidden"
    DELETED = "deleted"


@dataclass
class LifecycleDecision:
    """Outcome of evaluating one record."""

    record_id: str
    state: LifecycleState
    patch: Dict[str, Any] = field(default_factory=dict)
    delete: bool = False
    reason: str = ""
    skipped: bool = False
    """True when the record was removed by another actor and left untouched."""

    @property
    def mutates(self) -> bool:
        return self.delete or bool(self.patch)


def _hide_patch(record: Record, now: int) -> Dict[str, Any]:
    if record.removed:
        return {}
    return {"removed": True, "removedByWorker": True, "lastSeen": now}


def _state_of(record: Record) -> LifecycleState:
    if record.removed:
        return LifecycleState.HIDDEN
    if record.hotspot:
        return LifecycleState.HOTSPOT_PRESERVED
    return LifecycleState.ACTIVE


def _evaluate_fixed(record: Record, now: int, fixed_remove_threshold: int) -> LifecycleDecision:
    patch: Dict[str, Any] = {}
    if not record.hotspot:
        patch["hotspot"] = True

    if record.count <= fixed_remove_threshold:
        patch.update(_hide_patch(record, now))
        return LifecycleDecision(
            record.id,
            LifecycleState.HIDDEN,
            patch=patch,
            reason=f"fixed count {record.count} <= {fixed_remove_threshold}",
        )

    if record.removed:
        # Only worker-hidden records reach here; their count has recovered.
        patch.update({"removed": False, "removedByWorker": False, "lastSeen": now})
        return LifecycleDecision(
            record.id,
            LifecycleState.HOTSPOT_PRESERVED,
            patch=patch,
            reason=f"fixed count {record.count} recovered above {fixed_remove_threshold}",
        )

    return LifecycleDecision(
        record.id,
        LifecycleState.HOTSPOT_PRESERVED,
        patch=patch,
        reason="fixed camera" if patch else "",
    )


def evaluate_record(
    record: Record,
    *,
    now: int,
    window_days: float,
    preserve_days: float,
    fixed_remove_threshold: int,
) -> LifecycleDecision:
    """
    Decide the next lifecycle state of a normalised record.

    Args:
        record: Normalised record
        now: Evaluation instant (epoch ms)
        window_days: Hotspot lookback window
        preserve_days: Retention granted to hotspot records on expiry
        fixed_remove_threshold: Count at or below which a fixed record is hidden

    Returns:
        LifecycleDecision carrying the target state and the field patch or
        deletion needed to reach it
    """
    if record.removed_externally:
        return LifecycleDecision(
            record.id, LifecycleState.HIDDEN, reason="removed externally", skipped=True
        )

    if record.kind is Kind.FIXED:
        return _evaluate_fixed(record, now, fixed_remove_threshold)

    window_cutoff = now - window_days * MS_PER_DAY
    in_window = record.timestamp >= window_cutoff

    if record.count <= 0 and not record.hotspot:
        if not in_window:
            return LifecycleDecision(
                record.id,
                LifecycleState.DELETED,
                delete=True,
                reason="count <= 0 and older than hotspot window",
            )
        return LifecycleDecision(
            record.id,
            LifecycleState.HIDDEN,
            patch=_hide_patch(record, now),
            reason="count <= 0, kept for hotspot window",
        )

    if record.expires_at is not None and record.expires_at < now:
        if record.hotspot:
            preserve_until = int(now + preserve_days * MS_PER_DAY)
            return LifecycleDecision(
                record.id,
                LifecycleState.HOTSPOT_PRESERVED,
                patch={"expiresAt": preserve_until, "lastSeen": now},
                reason="hotspot preserved",
            )
        if not in_window:
            return LifecycleDecision(
                record.id,
                LifecycleState.DELETED,
                delete=True,
                reason="expired and older than hotspot window",
            )
        return LifecycleDecision(
            record.id,
            LifecycleState.HIDDEN,
            patch=_hide_patch(record, now),
            reason="expired, kept for hotspot window",
        )

    return LifecycleDecision(record.id, _state_of(record))
