"""
camwatch.lifecycle: record normalisation and the TTL state machine.
"""

from .records import (
    FIELD_MAP,
    Kind,
    NormalizedRecord,
    Record,
    normalize_record,
    parse_kind,
    to_bool,
    to_int,
    to_millis,
)
from .evaluator import LifecycleDecision, LifecycleState, evaluate_record

__all__ = [
    "FIELD_MAP",
    "Kind",
    "NormalizedRecord",
    "Record",
    "normalize_record",
    "parse_kind",
    "to_bool",
    "to_int",
    "to_millis",
    "LifecycleDecision",
    "LifecycleState",
    "evaluate_record",
]
