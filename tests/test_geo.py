"""
Tests for distance and routing helpers
"""
import pytest

from services.geo import haversine_distance, is_within_radius, nearest_neighbor_order


@pytest.mark.unit
class TestHaversine:

    def test_same_point_is_zero(self):
        assert haversine_distance(40.7128, -74.0060, 40.7128, -74.0060) == 0

    def test_one_degree_of_longitude_on_equator(self):
        assert haversine_distance(0, 0, 0, 1) == pytest.approx(111195, rel=1e-3)

    def test_distance_is_symmetric(self):
        a = haversine_distance(51.5074, -0.1278, 48.8566, 2.3522)
        b = haversine_distance(48.8566, 2.3522, 51.5074, -0.1278)
        assert a == pytest.approx(b)
        assert a == pytest.approx(343500, rel=0.01)


@pytest.mark.unit
class TestWithinRadius:

    def test_point_inside(self):
        inside, distance = is_within_radius((40.0, -75.0), (40.0005, -75.0), 100)
        assert inside is True
        assert distance == pytest.approx(55.6, rel=0.01)

    def test_point_outside(self):
        inside, distance = is_within_radius((40.0, -75.0), (40.01, -75.0), 100)
        assert inside is False
        assert distance > 1000

    def test_boundary_counts_as_inside(self):
        _, distance = is_within_radius((0, 0), (0, 0.001), 1)
        inside, _ = is_within_radius((0, 0), (0, 0.001), distance)
        assert inside is True


@pytest.mark.unit
class TestNearestNeighborOrder:

    def _stop(self, stop_id, lat, lng):
        return {'id': stop_id, 'latitude': lat, 'longitude': lng}

    def test_starts_at_first_stop_without_origin(self):
        stops = [self._stop('a', 0, 0), self._stop('b', 0, 3), self._stop('c', 0, 1)]
        ordered, total = nearest_neighbor_order(stops)
        assert [s['id'] for s in ordered] == ['a', 'c', 'b']
        assert total == pytest.approx(haversine_distance(0, 0, 0, 3), rel=1e-6)

    def test_origin_picks_the_closest_first(self):
        stops = [self._stop('a', 0, 0), self._stop('b', 0, 3), self._stop('c', 0, 1)]
        ordered, total = nearest_neighbor_order(stops, origin=(0, 4))
        assert [s['id'] for s in ordered] == ['b', 'c', 'a']
        assert total == pytest.approx(haversine_distance(0, 4, 0, 0), rel=1e-6)

    def test_unlocated_stops_go_last(self):
        stops = [self._stop('x', None, None), self._stop('a', 0, 0), self._stop('b', 0, 1)]
        ordered, _ = nearest_neighbor_order(stops)
        assert [s['id'] for s in ordered] == ['a', 'b', 'x']

    def test_no_located_stops(self):
        stops = [self._stop('x', None, None)]
        ordered, total = nearest_neighbor_order(stops)
        assert ordered == stops
        assert total == 0.0

    def test_empty(self):
        assert nearest_neighbor_order([]) == ([], 0.0)
