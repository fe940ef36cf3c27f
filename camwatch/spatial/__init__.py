"""
camwatch.spatial: great-circle distance, H3 neighbour index and hotspot detection.
"""

from .distance import (
    EARTH_RADIUS_M,
    haversine_m,
    haversine_m_array,
    valid_coordinates,
)
from .grid import NeighborIndex, ScanIndex, H3Index, build_index
from .hotspots import (
    ClusterPoint,
    HotspotDiagnostics,
    HotspotResult,
    HotspotSummary,
    detect_hotspots,
    summary_key,
)

__all__ = [
    "EARTH_RADIUS_M",
    "haversine_m",
    "haversine_m_array",
    "valid_coordinates",
    "NeighborIndex",
    "ScanIndex",
    "H3Index",
    "build_index",
    "ClusterPoint",
    "HotspotDiagnostics",
    "HotspotResult",
    "HotspotSummary",
    "detect_hotspots",
    "summary_key",
]
