"""Assemble a complete elevation profile from raw provider samples."""

from dataclasses import replace
from datetime import datetime, timezone

from col_profiles.distance import cumulative_distances
from col_profiles.errors import ElevationApiError
from col_profiles.models import ElevationPoint, ElevationProfile, ProviderProfile
from col_profiles.segmentation import detect_segments


def summarize_points(points: list[ElevationPoint]) -> ProviderProfile:
    """Wrap samples with their ascent, descent and elevation bounds."""
    if not points:
        raise ElevationApiError("No valid points in elevation data")
    ascent, descent = calculate_elevation_change(points)
    elevations = [p.elevation for p in points]
    return ProviderProfile(
        points=points,
        total_ascent=ascent,
        total_descent=descent,
        min_elevation=min(elevations),
        max_elevation=max(elevations),
    )


def calculate_elevation_change(points: list[ElevationPoint]) -> tuple[float, float]:
    """Calculate total elevation gain and loss in meters."""
    if len(points) < 2:
        return 0.0, 0.0

    gain = 0.0
    loss = 0.0

    for i in range(1, len(points)):
        delta = points[i].elevation - points[i - 1].elevation
        if delta > 0:
            gain += delta
        else:
            loss += abs(delta)

    return gain, loss


def with_distances(points: list[ElevationPoint]) -> list[ElevationPoint]:
    """Return copies of the points carrying their cumulative distance in km."""
    cum_dist = cumulative_distances(points)
    return [replace(p, distance=d) for p, d in zip(points, cum_dist)]


def average_gradient(total_ascent: float, length_km: float) -> float:
    """Average climbing gradient in percent, 0 without ascent or length."""
    if total_ascent <= 0 or length_km <= 0:
        return 0.0
    return total_ascent / (length_km * 1000) * 100


def build_profile(raw: ProviderProfile, source: str = "") -> ElevationProfile:
    """Segment the provider samples and derive the profile totals.

    Ascent, descent and elevation bounds come from the provider result; the
    length, average gradient and segments are derived from the points.
    """
    points = with_distances(raw.points)
    segments = detect_segments(points)
    length = points[-1].distance if points else 0.0

    return ElevationProfile(
        points=points,
        segments=segments,
        total_ascent=raw.total_ascent,
        total_descent=raw.total_descent,
        min_elevation=raw.min_elevation,
        max_elevation=raw.max_elevation,
        length=length,
        avg_gradient=average_gradient(raw.total_ascent, length),
        generated_at=datetime.now(timezone.utc),
        source=source,
    )
