"""
Record model and normalisation.

Stored documents are loosely typed: counts may be strings, instants may be
epoch milliseconds, ISO strings or datetimes, and mandatory fields may be
missing. ``normalize_record`` turns a raw document into a typed ``Record``
and the write-once patch that persists every default it had to invent.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from ..spatial.distance import valid_coordinates


MS_PER_HOUR = 60 * 60 * 1000

DEFAULT_CONFIDENCE_FIXED = 100
DEFAULT_CONFIDENCE_OTHER = 70


class Kind(str, Enum):
    """Record kind."""
    FIXED = "fixed"
    MOBILE = "mobile"
    OTHER = "other"


_KIND_ALIASES = {
    "fixed": Kind.FIXED,
    "fixed_camera": Kind.FIXED,
    "mobile": Kind.MOBILE,
    "mobile_camera": Kind.MOBILE,
    "other": Kind.OTHER,
}


def parse_kind(raw: Mapping[str, Any]) -> Kind:
    """Read ``kind`` (or the legacy ``type`` field); absent means mobile, unknown means other."""
    value = raw.get("kind") or raw.get("type")
    if not value:
        return Kind.MOBILE
    return _KIND_ALIASES.get(str(value).strip().lower(), Kind.OTHER)


def to_millis(value: Any) -> Optional[int]:
    """
    Coerce a stored instant to epoch milliseconds.

    Accepts numbers, numeric strings, ISO-8601 strings and datetimes (naive
    datetimes are taken as UTC). Returns ``None`` for empty values and 0 for
    values that are present but unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            pass
        else:
            return int(number) if math.isfinite(number) else 0
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return 0
        return to_millis(parsed)
    return 0


def to_int(value: Any, default: int = 0) -> int:
    """Numeric-or-string coercion with a fallback for anything unparseable."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(number)


_TRUE_STRINGS = {"true", "1", "yes"}


def to_bool(value: Any) -> bool:
    """Strict flag coercion: only True, 1 and "true"/"1"/"yes" strings are true."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _is_set(raw: Mapping[str, Any], key: str) -> bool:
    return raw.get(key) not in (None, "")


def _timestamp_missing(value: Any) -> bool:
    # A numeric zero timestamp is treated as never set.
    if value is None or value == "":
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0


# Wire name -> Record attribute, for fields a patch may touch.
FIELD_MAP = {
    "timestamp": "timestamp",
    "count": "count",
    "confidence": "confidence",
    "hotspot": "hotspot",
    "expiresAt": "expires_at",
    "removed": "removed",
    "removedByWorker": "removed_by_worker",
    "lastSeen": "last_seen",
}


@dataclass(frozen=True)
class Record:
    """A fully typed report as the lifecycle and clustering logic see it."""

    id: str
    kind: Kind
    timestamp: int
    count: int
    confidence: int
    last_seen: int
    expires_at: Optional[int] = None
    hotspot: bool = False
    removed: bool = False
    removed_by_worker: bool = False
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.lat is None or self.lon is None:
            return None
        return self.lat, self.lon

    @property
    def removed_externally(self) -> bool:
        """Hidden by another actor rather than by this worker."""
        return self.removed and not self.removed_by_worker

    def with_patch(self, patch: Mapping[str, Any]) -> "Record":
        """Return a copy with a wire-named field patch applied."""
        changes = {FIELD_MAP[k]: v for k, v in patch.items() if k in FIELD_MAP}
        return replace(self, **changes) if changes else self


@dataclass(frozen=True)
class NormalizedRecord:
    """A typed record plus the fields that must be written back."""

    record: Record
    patch: Dict[str, Any]


def lifetime_hours(kind: Kind, mobile_hours: float, other_hours: float) -> float:
    return other_hours if kind is Kind.OTHER else mobile_hours


def normalize_record(
    doc_id: str,
    raw: Mapping[str, Any],
    *,
    now: int,
    mobile_lifetime_hours: float,
    other_lifetime_hours: float,
) -> NormalizedRecord:
    """
    Fill in missing mandatory fields on a raw document.

    Rules:
    - ``timestamp`` absent or numeric 0 -> now
    - ``confidence`` absent -> 100 for fixed, 70 otherwise
    - ``count`` absent -> 0; non-numeric values are coerced in memory only
    - ``expiresAt`` absent (non-fixed) -> timestamp + lifetime of the kind,
      counted from now when the stored timestamp cannot be parsed
    - ``lastSeen`` absent -> timestamp

    Only previously unset fields are added to the patch. A field that already
    holds a value is never overwritten, even if it cannot be parsed.
    """
    kind = parse_kind(raw)
    patch: Dict[str, Any] = {}

    if _timestamp_missing(raw.get("timestamp")):
        timestamp = now
        patch["timestamp"] = timestamp
    else:
        timestamp = to_millis(raw["timestamp"]) or 0

    default_confidence = DEFAULT_CONFIDENCE_FIXED if kind is Kind.FIXED else DEFAULT_CONFIDENCE_OTHER
    if _is_set(raw, "confidence"):
        confidence = to_int(raw["confidence"], default_confidence)
    else:
        confidence = default_confidence
        patch["confidence"] = confidence

    if _is_set(raw, "count"):
        count = to_int(raw["count"], 0)
    else:
        count = 0
        patch["count"] = count

    expires_at: Optional[int] = None
    if _is_set(raw, "expiresAt"):
        expires_at = to_millis(raw["expiresAt"])
    elif kind is not Kind.FIXED:
        hours = lifetime_hours(kind, mobile_lifetime_hours, other_lifetime_hours)
        # An unparseable timestamp still gets a full lifetime from now.
        expires_at = int((timestamp or now) + hours * MS_PER_HOUR)
        patch["expiresAt"] = expires_at

    if _is_set(raw, "lastSeen"):
        last_seen = to_millis(raw["lastSeen"]) or 0
    else:
        last_seen = timestamp
        patch["lastSeen"] = last_seen

    coords = valid_coordinates(raw.get("lat"), raw.get("lon"))

    record = Record(
        id=str(doc_id),
        kind=kind,
        timestamp=timestamp,
        count=count,
        confidence=confidence,
        last_seen=last_seen,
        expires_at=expires_at,
        hotspot=to_bool(raw.get("hotspot")),
        removed=to_bool(raw.get("removed")),
        removed_by_worker=to_bool(raw.get("removedByWorker")),
        lat=coords[0] if coords else None,
        lon=coords[1] if coords else None,
    )
    return NormalizedRecord(record=record, patch=patch)
