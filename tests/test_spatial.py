"""
Unit Tests for Spatial Module (camwatch/spatial)

Tests haversine distance, coordinate validation, the H3 neighbour index and
hotspot detection.
"""

import math

import h3
import numpy as np
import pytest

from camwatch.spatial.distance import (
    EARTH_RADIUS_M,
    haversine_m,
    haversine_m_array,
    valid_coordinates,
)
from camwatch.spatial.grid import (
    H3Index,
    ScanIndex,
    build_index,
    resolution_for_radius,
)
from camwatch.spatial.hotspots import (
    ClusterPoint,
    detect_hotspots,
    promotion_patch,
    summary_key,
    window_cutoff,
)


DAY_MS = 24 * 60 * 60 * 1000


# ==============================================================================
# Distance Tests
# ==============================================================================

class TestHaversine:
    """Test great-circle distance."""

    def test_same_point_is_zero(self):
        assert haversine_m(35.6812, 139.7671, 35.6812, 139.7671) == 0.0

    def test_small_offset(self):
        """0.0005 degrees of latitude is about 55.6 m."""
        d = haversine_m(0.0, 0.0, 0.0005, 0.0)
        assert d == pytest.approx(math.radians(0.0005) * EARTH_RADIUS_M, rel=1e-9)
        assert 55.0 < d < 56.0

    def test_one_degree_longitude_at_equator(self):
        d = haversine_m(0.0, 0.0, 0.0, 1.0)
        assert d == pytest.approx(111195, abs=5)

    def test_symmetric(self):
        a = haversine_m(35.6812, 139.7671, 35.6895, 139.6917)
        b = haversine_m(35.6895, 139.6917, 35.6812, 139.7671)
        assert a == pytest.approx(b)

    def test_antipodes(self):
        d = haversine_m(0.0, 0.0, 0.0, 180.0)
        assert d == pytest.approx(math.pi * EARTH_RADIUS_M)

    def test_vectorised_matches_scalar(self):
        lats = np.array([35.6812, 35.6895, 35.6764, 0.0])
        lons = np.array([139.7671, 139.6917, 139.6993, 0.0])

        dists = haversine_m_array(35.7148, 139.7967, lats, lons)

        for i in range(len(lats)):
            assert dists[i] == pytest.approx(haversine_m(35.7148, 139.7967, lats[i], lons[i]))


class TestValidCoordinates:
    """Test coordinate coercion and range checks."""

    def test_zero_is_valid(self):
        assert valid_coordinates(0, 0) == (0.0, 0.0)

    def test_numeric_strings_coerced(self):
        assert valid_coordinates("35.5", "139.25") == (35.5, 139.25)

    @pytest.mark.parametrize("lat,lon", [
        (None, 10.0),
        (10.0, None),
        ("abc", 10.0),
        (91.0, 0.0),
        (0.0, -180.5),
        (float("nan"), 0.0),
        (float("inf"), 0.0),
        (True, 0.0),
    ])
    def test_invalid(self, lat, lon):
        assert valid_coordinates(lat, lon) is None


# ==============================================================================
# Neighbour Index Tests
# ==============================================================================

class TestNeighborIndex:
    """Test that the H3 index finds exactly what the full scan finds."""

    @pytest.fixture
    def scattered_coords(self):
        rng = np.random.default_rng(42)
        lats = 35.6812 + rng.uniform(-0.01, 0.01, size=200)
        lons = 139.7671 + rng.uniform(-0.01, 0.01, size=200)
        return list(zip(lats.tolist(), lons.tolist()))

    def test_resolution_for_radius(self):
        res = resolution_for_radius(200)

        assert h3.average_hexagon_edge_length(res, unit="m") >= 200
        assert h3.average_hexagon_edge_length(res + 1, unit="m") < 200

    @pytest.mark.parametrize("radius_m", [50, 200, 750])
    def test_h3_matches_scan(self, scattered_coords, radius_m):
        scan = ScanIndex(scattered_coords)
        grid = H3Index(scattered_coords, radius_m)

        for lat, lon in scattered_coords:
            expected = scan.within(lat, lon, radius_m)
            found = grid.within(lat, lon, radius_m)
            np.testing.assert_array_equal(found, expected)

    def test_radius_is_inclusive(self):
        coords = [(35.6812, 139.7671), (35.6830, 139.7690)]
        lats, lons = zip(*coords)
        radius = float(haversine_m_array(35.6812, 139.7671, np.array(lats), np.array(lons))[1])

        for index in (ScanIndex(coords), H3Index(coords, radius)):
            assert list(index.within(35.6812, 139.7671, radius)) == [0, 1]

    def test_includes_self(self):
        index = build_index([(10.0, 10.0)], 200)
        assert list(index.within(10.0, 10.0, 200)) == [0]

    def test_unknown_index(self):
        with pytest.raises(ValueError):
            build_index([(0.0, 0.0)], 200, kind="kdtree")


# ==============================================================================
# Hotspot Detection Tests
# ==============================================================================

class TestHotspotDetection:
    """Test seed-by-seed fixed-radius clustering."""

    NOW = 1_760_274_000_000

    def _point(self, pid, lat, lon, **kwargs):
        kwargs.setdefault("timestamp", self.NOW)
        kwargs.setdefault("last_seen", self.NOW)
        return ClusterPoint(id=pid, lat=lat, lon=lon, **kwargs)

    def _detect(self, points, **kwargs):
        params = dict(now=self.NOW, radius_m=200, threshold=3, preserve_days=10)
        params.update(kwargs)
        return detect_hotspots(points, **params)

    def test_three_nearby_points_form_hotspot(self):
        points = [
            self._point("a", 0.0, 0.0),
            self._point("b", 0.0005, 0.0),
            self._point("c", 0.0, 0.0005),
        ]

        result = self._detect(points)

        assert set(result.promotions) == {"a", "b", "c"}
        assert list(result.summaries) == ["hs_0.0000_0.0000"]
        summary = result.summaries["hs_0.0000_0.0000"]
        assert summary.report_count == 3
        assert summary.confidence == 1.0
        assert summary.lat == 0.0 and summary.lon == 0.0
        assert result.diagnostics.clusters_found == 1
        assert result.diagnostics.largest_cluster == 3

    def test_below_threshold_no_promotion(self):
        points = [self._point("a", 0.0, 0.0), self._point("b", 0.0005, 0.0)]

        result = self._detect(points)

        assert result.promotions == {}
        assert result.summaries == {}
        assert result.diagnostics.seeds_evaluated == 2

    def test_far_points_do_not_cluster(self):
        points = [
            self._point("a", 0.0, 0.0),
            self._point("b", 0.01, 0.0),
            self._point("c", 0.0, 0.01),
        ]

        assert self._detect(points).promotions == {}

    def test_existing_hotspots_do_not_seed(self):
        points = [
            self._point("a", 0.0, 0.0, hotspot=True),
            self._point("b", 0.0005, 0.0, hotspot=True),
            self._point("c", 0.0, 0.0005, hotspot=True),
        ]

        result = self._detect(points)

        assert result.promotions == {}
        assert result.diagnostics.seeds_evaluated == 0

    def test_existing_hotspot_counts_as_neighbour(self):
        points = [
            self._point("a", 0.0, 0.0, hotspot=True),
            self._point("b", 0.0005, 0.0, hotspot=True),
            self._point("new", 0.0, 0.0005),
        ]

        result = self._detect(points)

        assert set(result.promotions) == {"a", "b", "new"}
        assert list(result.summaries) == ["hs_0.0000_0.0005"]

    def test_raw_reports_count_but_are_never_promoted(self):
        points = [
            self._point("a", 0.0, 0.0),
            self._point("b", 0.0005, 0.0),
            self._point("r_x", 0.0, 0.0005, promotable=False),
        ]

        result = self._detect(points)

        assert set(result.promotions) == {"a", "b"}
        assert result.summaries["hs_0.0000_0.0000"].report_count == 3
        assert result.diagnostics.num_candidates == 2
        assert result.diagnostics.num_reports == 1

    def test_raw_reports_never_seed(self):
        points = [self._point(f"r_{i}", 0.0, 0.0001 * i, promotable=False) for i in range(5)]

        result = self._detect(points)

        assert result.promotions == {}
        assert result.summaries == {}

    def test_overlapping_clusters(self):
        """A member promoted by the first cluster is still a neighbour of the next seed."""
        points = [
            self._point("p0", 0.0, 0.0),
            self._point("p1", 0.00135, 0.0),
            self._point("p2", 0.0027, 0.0),
        ]

        result = self._detect(points, threshold=2)

        assert set(result.promotions) == {"p0", "p1", "p2"}
        assert set(result.summaries) == {"hs_0.0000_0.0000", "hs_0.0027_0.0000"}
        assert all(s.report_count == 2 for s in result.summaries.values())
        # p1 was promoted by p0's cluster so it never seeds
        assert result.diagnostics.seeds_evaluated == 2

    def test_summary_fields(self):
        points = [
            self._point("a", 0.0, 0.0, timestamp=self.NOW - 3 * DAY_MS),
            self._point("b", 0.0005, 0.0, timestamp=self.NOW - DAY_MS),
            self._point("c", 0.0, 0.0005, timestamp=self.NOW - 2 * DAY_MS),
            self._point("d", 0.0005, 0.0005, timestamp=self.NOW - 5 * DAY_MS),
        ]

        summary = self._detect(points, threshold=3).summaries["hs_0.0000_0.0000"]
        doc = summary.to_document()

        assert doc["reportCount"] == 4
        assert doc["lastReported"] == self.NOW - DAY_MS
        assert doc["confidence"] == 1.0
        assert doc["updatedAt"] == self.NOW
        assert doc["kind"] == "mobile"

    def test_summary_confidence_saturates(self):
        points = [self._point(str(i), 0.0, 0.0001 * i) for i in range(3)]

        result = self._detect(points, threshold=2)

        assert result.summaries["hs_0.0000_0.0000"].confidence == 1.0

    def test_h3_and_scan_agree(self):
        rng = np.random.default_rng(7)
        points = [
            self._point(f"p{i}", float(lat), float(lon))
            for i, (lat, lon) in enumerate(zip(
                rng.uniform(-0.005, 0.005, 60), rng.uniform(-0.005, 0.005, 60)
            ))
        ]

        via_h3 = self._detect(points, index="h3")
        via_scan = self._detect(points, index="scan")

        assert via_h3.promotions == via_scan.promotions
        assert via_h3.summaries == via_scan.summaries

    def test_empty_input(self):
        result = self._detect([])
        assert result.promotions == {}
        assert result.diagnostics.num_candidates == 0


class TestPromotionHelpers:
    """Test promotion patches, summary keys and window cutoffs."""

    def test_promotion_patch(self):
        point = ClusterPoint(id="a", lat=0, lon=0, timestamp=500, confidence=70, last_seen=100)

        patch = promotion_patch(point, now=1000, preserve_days=10)

        assert patch == {
            "hotspot": True,
            "confidence": 90,
            "expiresAt": 1000 + 10 * DAY_MS,
            "lastSeen": 500,
        }

    def test_promotion_confidence_capped(self):
        point = ClusterPoint(id="a", lat=0, lon=0, timestamp=0, confidence=95)
        assert promotion_patch(point, now=0, preserve_days=1)["confidence"] == 100

    def test_summary_key_rounds_to_four_places(self):
        assert summary_key(52.520008, 13.404954) == "hs_52.5200_13.4050"

    def test_summary_key_precision(self):
        assert summary_key(1.23456, 2.34567, precision=2) == "hs_1.23_2.35"

    def test_window_cutoff(self):
        assert window_cutoff(10 * DAY_MS, 7) == 3 * DAY_MS
