"""Sanity checks applied to a fresh profile before it replaces the stored one."""

import logging

from col_profiles.models import Col, ElevationProfile, ValidationResult

logger = logging.getLogger(__name__)

MIN_POINTS_PER_KM = 10
MAX_ELEVATION_DELTA_M = 50.0

REASON_NOT_ENOUGH_POINTS = "Not enough elevation points"
REASON_NO_SEGMENTS = "No segments detected"
REASON_INCONSISTENT_MAX_ELEVATION = "Inconsistent maximum elevation"


def validate_profile(
    profile: ElevationProfile,
    col: Col,
    min_points_per_km: float = MIN_POINTS_PER_KM,
    max_elevation_delta: float = MAX_ELEVATION_DELTA_M,
) -> ValidationResult:
    """Check a computed profile against the catalogue record.

    All checks run; every failure adds its reason to the result.
    """
    reasons = []

    if len(profile.points) < col.length * min_points_per_km:
        reasons.append(REASON_NOT_ENOUGH_POINTS)

    if not profile.segments:
        reasons.append(REASON_NO_SEGMENTS)

    if abs(profile.max_elevation - col.elevation) > max_elevation_delta:
        reasons.append(REASON_INCONSISTENT_MAX_ELEVATION)

    if reasons:
        logger.warning("Validation failed for %r: %s", col.name, ", ".join(reasons))
        return ValidationResult(passed=False, reasons=reasons)

    return ValidationResult(passed=True)
