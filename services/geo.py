"""
Geographic helpers: great-circle distance and a nearest-neighbour route order.
"""

import math
from typing import Dict, List, Optional, Tuple

EARTH_RADIUS_METERS = 6371000

Point = Tuple[float, float]


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in meters between two points given in decimal degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (math.sin(d_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def is_within_radius(center: Point, point: Point, radius_meters: float) -> Tuple[bool, float]:
    """
    Check whether point lies inside the circle around center.

    Returns:
        Tuple of (inside, distance_meters). The boundary counts as inside.
    """
    distance = haversine_distance(center[0], center[1], point[0], point[1])
    return distance <= radius_meters, distance


def nearest_neighbor_order(
    stops: List[Dict],
    origin: Optional[Point] = None
) -> Tuple[List[Dict], float]:
    """
    Order stops greedily, always visiting the closest unvisited stop next.

    Args:
        stops: dicts with 'id', 'latitude' and 'longitude'. Stops whose
            coordinates are None are appended at the end in input order.
        origin: starting point. Defaults to the first located stop.

    Returns:
        Tuple of (ordered stops, total distance in meters along the route)
    """
    located = [s for s in stops if s.get('latitude') is not None and s.get('longitude') is not None]
    unlocated = [s for s in stops if s not in located]

    if not located:
        return list(stops), 0.0

    remaining = list(located)
    ordered = []
    total = 0.0

    if origin is None:
        current = remaining.pop(0)
        ordered.append(current)
        position = (current['latitude'], current['longitude'])
    else:
        position = origin

    while remaining:
        # ties keep input order: min() returns the first minimum
        nearest = min(
            remaining,
            key=lambda s: haversine_distance(position[0], position[1], s['latitude'], s['longitude'])
        )
        total += haversine_distance(position[0], position[1], nearest['latitude'], nearest['longitude'])
        remaining.remove(nearest)
        ordered.append(nearest)
        position = (nearest['latitude'], nearest['longitude'])

    return ordered + unlocated, total
