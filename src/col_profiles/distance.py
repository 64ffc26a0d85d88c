"""Great-circle distance helpers.

Haversine is accurate enough for climb profiles (< 0.5% error at the
distances involved) and needs nothing beyond the math module.
"""

from __future__ import annotations
import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from col_profiles.models import ElevationPoint

# Earth's mean radius in kilometers
EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points using Haversine formula.

    Args:
        lat1, lon1: First point coordinates in degrees
        lat2, lon2: Second point coordinates in degrees

    Returns:
        Distance in kilometers
    """
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def point_distance(a: ElevationPoint, b: ElevationPoint) -> float:
    """Straight-line distance in km between two elevation points."""
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def cumulative_distances(points: list[ElevationPoint]) -> list[float]:
    """Cumulative path distance in km at each point, starting at 0."""
    if not points:
        return []
    cum_dist = [0.0]
    for i in range(1, len(points)):
        cum_dist.append(cum_dist[-1] + point_distance(points[i - 1], points[i]))
    return cum_dist
