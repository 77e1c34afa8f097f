"""
Tests for the Distance Matrix client
"""
import pytest
from unittest.mock import Mock

import requests

from services.travel_time import DISTANCE_MATRIX_URL, DistanceMatrixClient, TravelTimeError


def matrix_response(element=None, status='OK'):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {
        'status': status,
        'rows': [{'elements': [element or {
            'status': 'OK',
            'distance': {'value': 12500, 'text': '12.5 km'},
            'duration': {'value': 900, 'text': '15 mins'},
            'duration_in_traffic': {'value': 1080, 'text': '18 mins'},
        }]}]
    }
    return response


def make_client(*responses, api_key='maps-key'):
    http = Mock()
    http.get.side_effect = list(responses)
    return DistanceMatrixClient(api_key, timeout=3, session=http), http


@pytest.mark.unit
class TestTravelTime:

    def test_successful_lookup(self):
        client, http = make_client(matrix_response())
        result = client.travel_time(40.0, -75.0, 40.1, -75.1)

        assert result == {
            'distance_meters': 12500,
            'distance_text': '12.5 km',
            'duration_seconds': 900,
            'duration_text': '15 mins',
            'duration_in_traffic_seconds': 1080,
            'duration_in_traffic_text': '18 mins',
        }
        args, kwargs = http.get.call_args
        assert args[0] == DISTANCE_MATRIX_URL
        assert kwargs['params']['origins'] == '40.0,-75.0'
        assert kwargs['params']['departure_time'] == 'now'
        assert kwargs['timeout'] == 3

    def test_traffic_fields_are_optional(self):
        element = {
            'status': 'OK',
            'distance': {'value': 800, 'text': '0.8 km'},
            'duration': {'value': 600, 'text': '10 mins'},
        }
        client, http = make_client(matrix_response(element))
        result = client.travel_time(0, 0, 0, 0.01, mode='walking')
        assert result['duration_in_traffic_seconds'] is None
        assert 'departure_time' not in http.get.call_args[1]['params']

    def test_missing_api_key(self):
        client, http = make_client(api_key=None)
        with pytest.raises(TravelTimeError) as exc:
            client.travel_time(0, 0, 1, 1)
        assert exc.value.status_code == 500
        http.get.assert_not_called()

    def test_invalid_mode(self):
        client, _ = make_client()
        with pytest.raises(TravelTimeError) as exc:
            client.travel_time(0, 0, 1, 1, mode='teleport')
        assert exc.value.status_code == 400

    def test_network_failure_is_502(self):
        http = Mock()
        http.get.side_effect = requests.ConnectionError('boom')
        client = DistanceMatrixClient('maps-key', session=http)
        with pytest.raises(TravelTimeError) as exc:
            client.travel_time(0, 0, 1, 1)
        assert exc.value.status_code == 502

    def test_api_status_error_is_502(self):
        client, _ = make_client(matrix_response(status='REQUEST_DENIED'))
        with pytest.raises(TravelTimeError) as exc:
            client.travel_time(0, 0, 1, 1)
        assert exc.value.status_code == 502

    def test_unroutable_points_are_400(self):
        client, _ = make_client(matrix_response({'status': 'ZERO_RESULTS'}))
        with pytest.raises(TravelTimeError) as exc:
            client.travel_time(0, 0, 1, 1)
        assert exc.value.status_code == 400
        assert exc.value.message == 'Could not calculate route'

    def test_closes_the_session_it_created(self, monkeypatch):
        http = Mock()
        monkeypatch.setattr(requests, 'Session', Mock(return_value=http))
        with DistanceMatrixClient('maps-key') as client:
            assert client.http is http
        http.close.assert_called_once()

    def test_leaves_a_shared_session_open(self):
        client, http = make_client()
        with client:
            pass
        http.close.assert_not_called()


@pytest.mark.unit
class TestRouteLegs:

    points = [
        {'latitude': 0, 'longitude': 0},
        {'latitude': 0, 'longitude': 1},
        {'latitude': 0, 'longitude': 2},
    ]

    def test_one_leg_per_consecutive_pair(self):
        client, http = make_client(matrix_response(), matrix_response())
        legs = client.route_legs(self.points)
        assert [(leg['from'], leg['to']) for leg in legs] == [(0, 1), (1, 2)]
        assert http.get.call_count == 2

    def test_failed_legs_are_skipped(self):
        client, _ = make_client(matrix_response({'status': 'NOT_FOUND'}), matrix_response())
        legs = client.route_legs(self.points)
        assert [(leg['from'], leg['to']) for leg in legs] == [(1, 2)]

    def test_missing_key_aborts_the_route(self):
        client, _ = make_client(api_key='')
        with pytest.raises(TravelTimeError):
            client.route_legs(self.points)
