"""
Travel Time Service - Google Maps Distance Matrix client.

Thin wrapper: one origin, one destination per request. Route legs are
computed pairwise, skipping legs the API cannot resolve.
"""

import logging
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DISTANCE_MATRIX_URL = 'https://maps.googleapis.com/maps/api/distancematrix/json'
TRAVEL_MODES = ('driving', 'walking', 'bicycling', 'transit')


class TravelTimeError(Exception):
    """Travel time could not be calculated; status_code is the HTTP status to answer with"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DistanceMatrixClient:
    """Calls the Distance Matrix API with a configured key and timeout."""

    def __init__(self, api_key: Optional[str], timeout: int = 10, session: requests.Session = None):
        self.api_key = api_key
        self.timeout = timeout
        self._owns_session = session is None
        self.http = session or requests.Session()

    def close(self):
        if self._owns_session:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def travel_time(self, origin_lat, origin_lng, destination_lat, destination_lng,
                    mode: str = 'driving') -> Dict:
        """
        Travel distance and duration between two points.

        Returns:
            dict with distance_meters, distance_text, duration_seconds,
            duration_text, duration_in_traffic_seconds, duration_in_traffic_text
            (the traffic fields are None when the API omits them)

        Raises:
            TravelTimeError: 500 when no API key is configured, 502 when the
                API call fails, 400 when no route exists between the points
        """
        if not self.api_key:
            raise TravelTimeError('Google Maps API key not configured', 500)

        if mode not in TRAVEL_MODES:
            raise TravelTimeError(f"Invalid mode. Must be one of: {', '.join(TRAVEL_MODES)}", 400)

        params = {
            'origins': f'{origin_lat},{origin_lng}',
            'destinations': f'{destination_lat},{destination_lng}',
            'mode': mode,
            'key': self.api_key,
        }
        if mode == 'driving':
            params['departure_time'] = 'now'

        try:
            response = self.http.get(DISTANCE_MATRIX_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Distance Matrix request failed: {e}")
            raise TravelTimeError('Failed to calculate travel time', 502)

        if data.get('status') != 'OK':
            logger.error(f"Distance Matrix API error: {data.get('status')} {data.get('error_message', '')}")
            raise TravelTimeError('Failed to calculate travel time', 502)

        try:
            element = data['rows'][0]['elements'][0]
        except (KeyError, IndexError, TypeError):
            element = None

        if not element or element.get('status') != 'OK':
            raise TravelTimeError('Could not calculate route', 400)

        traffic = element.get('duration_in_traffic') or {}
        return {
            'distance_meters': element['distance']['value'],
            'distance_text': element['distance']['text'],
            'duration_seconds': element['duration']['value'],
            'duration_text': element['duration']['text'],
            'duration_in_traffic_seconds': traffic.get('value'),
            'duration_in_traffic_text': traffic.get('text'),
        }

    def route_legs(self, locations: List[Dict], mode: str = 'driving') -> List[Dict]:
        """
        Travel time for each consecutive pair of locations.

        Legs that fail are logged and left out, so the result can be shorter
        than len(locations) - 1.
        """
        legs = []
        for index in range(len(locations) - 1):
            origin, destination = locations[index], locations[index + 1]
            try:
                result = self.travel_time(
                    origin['latitude'], origin['longitude'],
                    destination['latitude'], destination['longitude'],
                    mode
                )
            except TravelTimeError as e:
                if e.status_code == 500:
                    raise
                logger.warning(f"Skipping leg {index} -> {index + 1}: {e.message}")
                continue
            legs.append({'from': index, 'to': index + 1, 'result': result})
        return legs
