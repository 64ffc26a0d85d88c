"""Split a climb into segments of roughly uniform gradient.

The walk keeps an open segment starting at ``current_start``. At each interior
point it compares the average gradient of the open segment with the gradient
of the next single step; a jump larger than the threshold closes the segment
there, provided it is already long enough. Whatever remains at the end is
closed as a final segment, or dropped if shorter than the minimum length.
"""

from col_profiles.distance import cumulative_distances, point_distance
from col_profiles.models import DIFFICULTY_CLASSES, ElevationPoint, ElevationSegment

MIN_SEGMENT_LENGTH_KM = 0.5
GRADIENT_CHANGE_THRESHOLD = 2.0  # percentage points

# Inclusive upper bounds (percent) for each difficulty class
CLASSIFICATION_BOUNDS = list(zip((3.0, 6.0, 9.0, 12.0), DIFFICULTY_CLASSES))


def classify_gradient(gradient: float) -> str:
    """Map an average gradient in percent to a difficulty class."""
    for upper, label in CLASSIFICATION_BOUNDS:
        if gradient <= upper:
            return label
    return DIFFICULTY_CLASSES[-1]


def calculate_gradient(start: ElevationPoint, end: ElevationPoint) -> float:
    """Gradient in percent between two points, 0 when they coincide."""
    distance_km = point_distance(start, end)
    if distance_km == 0:
        return 0.0
    return (end.elevation - start.elevation) / (distance_km * 1000) * 100


def _make_segment(
    points: list[ElevationPoint], cum_dist: list[float], start: int, end: int
) -> ElevationSegment:
    gradient = calculate_gradient(points[start], points[end])
    return ElevationSegment(
        start_index=start,
        end_index=end,
        start_distance=cum_dist[start],
        end_distance=cum_dist[end],
        length=point_distance(points[start], points[end]),
        avg_gradient=gradient,
        classification=classify_gradient(gradient),
    )


def detect_segments(
    points: list[ElevationPoint],
    min_segment_length: float = MIN_SEGMENT_LENGTH_KM,
    gradient_change_threshold: float = GRADIENT_CHANGE_THRESHOLD,
) -> list[ElevationSegment]:
    """Detect gradient segments along an ordered list of elevation points.

    Args:
        points: Ordered elevation samples along the climb
        min_segment_length: Segments shorter than this (km) are never closed
        gradient_change_threshold: Gradient jump (percentage points) that
            ends the current segment

    Returns:
        Contiguous, non-overlapping segments. A trailing residual shorter
        than ``min_segment_length`` is dropped rather than merged.
    """
    if len(points) < 2:
        return []

    cum_dist = cumulative_distances(points)
    segments: list[ElevationSegment] = []
    current_start = 0

    for i in range(1, len(points) - 1):
        current_gradient = calculate_gradient(points[current_start], points[i])
        next_gradient = calculate_gradient(points[i], points[i + 1])

        if abs(current_gradient - next_gradient) > gradient_change_threshold:
            if point_distance(points[current_start], points[i]) >= min_segment_length:
                segments.append(_make_segment(points, cum_dist, current_start, i))
                current_start = i

    last = len(points) - 1
    if point_distance(points[current_start], points[last]) >= min_segment_length:
        segments.append(_make_segment(points, cum_dist, current_start, last))

    return segments
