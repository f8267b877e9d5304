"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math

EARTH_RADIUS_M = 6_371_000.0  # mean Earth radius in meters


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def is_inside_circle(
    lat: float,
    lon: float,
    center_lat: float,
    center_lon: float,
    radius_m: float,
) -> bool:
    """Check whether a point is inside or on the boundary of a circle."""

    return haversine_m(lat, lon, center_lat, center_lon) <= radius_m


def point_to_segment_deg(
    lat: float,
    lon: float,
    start_lat: float,
    start_lon: float,
    end_lat: float,
    end_lon: float,
) -> float:
    """Planar distance from a point to a segment, in raw degree units.

    Latitude and longitude are treated as plain x/y. The projection is clamped to
    the segment; a zero-length segment degrades to point-to-point distance.
    """

    a = lat - start_lat
    b = lon - start_lon
    c = end_lat - start_lat
    d = end_lon - start_lon

    len_sq = c * c + d * d
    param = (a * c + b * d) / len_sq if len_sq != 0 else -1.0

    if param < 0:
        xx, yy = start_lat, start_lon
    elif param > 1:
        xx, yy = end_lat, end_lon
    else:
        xx, yy = start_lat + param * c, start_lon + param * d

    return math.hypot(lat - xx, lon - yy)
