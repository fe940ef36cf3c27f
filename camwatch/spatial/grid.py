"""
Neighbour lookup for the hotspot detector.

Two interchangeable indexes answer "which points lie within ``radius_m`` of
this point":

- ``ScanIndex`` compares the origin with every point (the O(n²) baseline).
- ``H3Index`` buckets points into H3 cells sized from the radius and only
  measures points in the surrounding k-ring.

Both apply the same exact haversine test, so membership is identical.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

import h3
import numpy as np

from .distance import haversine_m_array


# Finest resolution considered when sizing cells from a radius.
MAX_H3_RES = 12

# H3 edge lengths vary across the globe; treat the shortest edge as half the
# average when deriving the ring count.
EDGE_SAFETY_FACTOR = 0.5


class NeighborIndex:
    """Base class: exact-radius neighbour search over a fixed point set."""

    name = "base"

    def __init__(self, coords: Sequence[Tuple[float, float]]):
        self.lats = np.array([c[0] for c in coords], dtype=float)
        self.lons = np.array([c[1] for c in coords], dtype=float)

    def _candidate_indices(self, lat: float, lon: float) -> np.ndarray:
        raise NotImplementedError

    def within(self, lat: float, lon: float, radius_m: float) -> np.ndarray:
        """Return sorted indices of all points at distance <= ``radius_m``."""
        idx = self._candidate_indices(lat, lon)
        if idx.size == 0:
            return idx
        dist = haversine_m_array(lat, lon, self.lats[idx], self.lons[idx])
        return np.sort(idx[dist <= radius_m])


class ScanIndex(NeighborIndex):
    """Brute-force index: every point is a candidate."""

    name = "scan"

    def _candidate_indices(self, lat: float, lon: float) -> np.ndarray:
        return np.arange(len(self.lats))


def resolution_for_radius(radius_m: float) -> int:
    """Return the finest H3 resolution whose average edge is >= ``radius_m``."""
    res = 0
    for candidate in range(MAX_H3_RES + 1):
        if h3.average_hexagon_edge_length(candidate, unit="m") >= radius_m:
            res = candidate
        else:
            break
    return res


def _steps_for_radius(radius_m: float, resolution: int) -> int:
    """Return the number of rings needed so no point within ``radius_m`` is missed."""
    edge_length = h3.average_hexagon_edge_length(resolution, unit="m") * EDGE_SAFETY_FACTOR
    if edge_length == 0:
        return 1
    # Adjacent cell centres are sqrt(3) edges apart; +1 covers in-cell offsets.
    return max(1, int(math.ceil(radius_m / (math.sqrt(3) * edge_length))) + 1)


class H3Index(NeighborIndex):
    """Bucket points by H3 cell and search the k-ring around the origin cell."""

    name = "h3"

    def __init__(self, coords: Sequence[Tuple[float, float]], radius_m: float):
        super().__init__(coords)
        self.resolution = resolution_for_radius(radius_m)
        self.k = _steps_for_radius(radius_m, self.resolution)
        self._cells: Dict[str, List[int]] = defaultdict(list)
        for i, (lat, lon) in enumerate(zip(self.lats, self.lons)):
            self._cells[h3.latlng_to_cell(float(lat), float(lon), self.resolution)].append(i)

    def _candidate_indices(self, lat: float, lon: float) -> np.ndarray:
        origin = h3.latlng_to_cell(lat, lon, self.resolution)
        found: List[int] = []
        for cell in h3.grid_disk(origin, self.k):
            found.extend(self._cells.get(cell, ()))
        return np.array(sorted(found), dtype=int)


def build_index(
    coords: Sequence[Tuple[float, float]],
    radius_m: float,
    kind: str = "h3",
) -> NeighborIndex:
    """Build the neighbour index named by ``kind`` (``"h3"`` or ``"scan"``)."""
    if kind == "h3":
        return H3Index(coords, radius_m)
    if kind == "scan":
        return ScanIndex(coords)
    raise ValueError(f"Unknown spatial index '{kind}'. Expected 'h3' or 'scan'.")
