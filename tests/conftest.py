import asyncio

import pytest

from col_profiles.distance import EARTH_RADIUS_KM
from col_profiles.models import Col, ElevationPoint
from col_profiles.profile import summarize_points

BASE_LAT, BASE_LNG = 45.0, 6.0
# Degrees of latitude per 100 m along a meridian
LAT_PER_100M = 0.1 / (EARTH_RADIUS_KM * 3.141592653589793 / 180)


def make_points(elevations: list[float], spacing_m: float = 100.0) -> list[ElevationPoint]:
    """Elevation points due north of a fixed start, ``spacing_m`` apart."""
    lat_delta = LAT_PER_100M * spacing_m / 100.0
    return [
        ElevationPoint(lat=BASE_LAT + i * lat_delta, lng=BASE_LNG, elevation=elev)
        for i, elev in enumerate(elevations)
    ]


def uniform_climb(n_points: int = 100, gradient_pct: float = 10.0, start: float = 1000.0) -> list[float]:
    """Elevations for a constant-gradient climb sampled every 100 m."""
    return [start + i * gradient_pct for i in range(n_points)]


class FakeClock:
    """Manually advanced clock with a matching async sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeProvider:
    """Elevation provider returning canned points, optionally failing first."""

    name = "fake"

    def __init__(self, points_by_coords=None, default_points=None, failures=None):
        self.points_by_coords = points_by_coords or {}
        self.default_points = default_points
        self.failures = list(failures or [])
        self.calls: list[list] = []

    async def fetch_profile(self, coordinates):
        self.calls.append(list(coordinates))
        await asyncio.sleep(0)
        if self.failures:
            failure = self.failures.pop(0)
            if failure is not None:
                raise failure
        key = tuple(coordinates[0]) if coordinates else None
        points = self.points_by_coords.get(key, self.default_points)
        return summarize_points(points)


def make_col(col_id: str, name: str, elevation: float = 1990.0, length: float = 9.9,
             avg_gradient: float = 10.0) -> Col:
    # First coordinate doubles as the FakeProvider lookup key
    return Col(
        id=col_id,
        name=name,
        region="Alpes",
        elevation=elevation,
        length=length,
        avg_gradient=avg_gradient,
        coordinates=[(BASE_LAT + int(col_id) * 0.01 if col_id.isdigit() else BASE_LAT, BASE_LNG),
                     (BASE_LAT + 0.1, BASE_LNG)],
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def climb_points():
    """100 points, 100 m apart, climbing a steady 10%: 1000 m to 1990 m."""
    return make_points(uniform_climb())


@pytest.fixture
def three_cols():
    return [
        make_col("1", "Col du Galibier"),
        make_col("2", "Col de la Madeleine"),
        make_col("3", "Col d'Izoard"),
    ]
