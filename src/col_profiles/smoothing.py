from bisect import bisect_left, bisect_right

from col_profiles.distance import cumulative_distances
from col_profiles.models import ElevationPoint


def _fit_at(distances: list[float], elevations: list[float], target: float) -> float:
    """Least-squares line through the window, evaluated at ``target``."""
    count = len(distances)
    if count == 1:
        return elevations[0]

    mean_d = sum(distances) / count
    mean_e = sum(elevations) / count
    spread = sum((d - mean_d) ** 2 for d in distances)
    if spread == 0:
        return mean_e

    covariance = sum((d - mean_d) * (e - mean_e) for d, e in zip(distances, elevations))
    return mean_e + covariance / spread * (target - mean_d)


def smooth_elevations(points: list[ElevationPoint], radius_m: float = 50.0) -> list[ElevationPoint]:
    """Smooth provider elevations using local linear regression.

    For each point, fits a line to all samples within ``radius_m`` of path
    distance on either side and keeps the fitted value at the point. Local
    slopes survive while single-sample DEM spikes are flattened, which keeps
    spurious gradient jumps from splitting segments.

    Returns new ElevationPoint instances; lat, lng and distance are preserved.
    """
    if len(points) < 2 or radius_m <= 0:
        return list(points)

    cum_m = [d * 1000 for d in cumulative_distances(points)]
    elevations = [p.elevation for p in points]

    smoothed = []
    for i, pt in enumerate(points):
        d = cum_m[i]
        lo = bisect_left(cum_m, d - radius_m)
        hi = bisect_right(cum_m, d + radius_m)
        elevation = _fit_at(cum_m[lo:hi], elevations[lo:hi], d)
        smoothed.append(ElevationPoint(lat=pt.lat, lng=pt.lng, elevation=elevation, distance=pt.distance))

    return smoothed
