"""Great-circle distance on a spherical Earth."""

from __future__ import annotations

import math
from typing import Any, Optional, Tuple

import numpy as np


# Mean Earth radius (IUGG). No ellipsoidal correction is applied.
EARTH_RADIUS_M = 6371008.8


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the haversine distance in metres between two lat/lon points."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def haversine_m_array(
    lat: float,
    lon: float,
    lats: np.ndarray,
    lons: np.ndarray,
) -> np.ndarray:
    """
    Vectorised haversine from one origin to many points.

    Args:
        lat: Origin latitude in degrees
        lon: Origin longitude in degrees
        lats: Array of target latitudes
        lons: Array of target longitudes

    Returns:
        Array of distances in metres, same shape as ``lats``
    """
    lats = np.asarray(lats, dtype=float)
    lons = np.asarray(lons, dtype=float)

    p1 = np.radians(lat)
    p2 = np.radians(lats)
    dphi = p2 - p1
    dl = np.radians(lons - lon)

    a = np.sin(dphi / 2) ** 2 + np.cos(p1) * np.cos(p2) * np.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_M * np.arcsin(np.minimum(1.0, np.sqrt(a)))


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def valid_coordinates(lat: Any, lon: Any) -> Optional[Tuple[float, float]]:
    """
    Coerce a stored lat/lon pair to floats.

    Returns ``None`` when either value is missing, non-numeric, non-finite or
    out of range (|lat| > 90, |lon| > 180). Zero is a valid coordinate.
    """
    flat = _as_float(lat)
    flon = _as_float(lon)
    if flat is None or flon is None:
        return None
    if not (-90.0 <= flat <= 90.0 and -180.0 <= flon <= 180.0):
        return None
    return flat, flon
