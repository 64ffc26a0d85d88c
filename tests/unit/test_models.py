from datetime import datetime, timezone

import pytest

from conftest import make_col
from col_profiles.errors import (
    BackupError,
    ColNotFoundError,
    ElevationApiError,
    PersistenceError,
    ProfileValidationError,
    RateLimitedError,
    classify_error,
)
from col_profiles.models import (
    Col,
    ElevationPoint,
    ElevationSegment,
    ErrorDetail,
    RegenerationMetrics,
    RegenerationOptions,
)


class TestElevationPoint:
    def test_distance_omitted_when_unset(self):
        assert ElevationPoint(45.0, 6.0, 1000.0).to_dict() == {"lat": 45.0, "lng": 6.0, "elevation": 1000.0}

    def test_from_dict(self):
        point = ElevationPoint.from_dict({"lat": 45.0, "lng": 6.0, "elevation": 1000.0, "distance": 1.5})
        assert point.distance == 1.5


class TestElevationSegment:
    def test_from_dict_ignores_extra_keys(self):
        data = ElevationSegment(0, 10, 0.0, 1.0, 1.0, 8.5, "challenging").to_dict()
        data["color"] = "#ff7f33"
        assert ElevationSegment.from_dict(data).classification == "challenging"


class TestCol:
    def test_defaults(self):
        col = Col(id="1", name="Col du Tourmalet")
        assert col.coordinates == []
        assert col.elevation_profile is None

    def test_from_dict_coerces_id_and_coordinates(self):
        col = Col.from_dict({
            "id": 42,
            "name": "Alpe d'Huez",
            "coordinates": [[45.05, 6.03], [45.09, 6.07]],
            "created_at": "2025-03-01T10:00:00+00:00",
        })
        assert col.id == "42"
        assert col.coordinates == [(45.05, 6.03), (45.09, 6.07)]
        assert col.created_at == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)

    def test_to_dict_without_profile(self):
        data = make_col("1", "Col du Galibier").to_dict()
        assert data["elevation_profile"] is None
        assert data["updated_at"] is None


class TestRegenerationOptions:
    def test_defaults(self):
        options = RegenerationOptions()
        assert options.concurrency == 3
        assert options.backup is True
        assert options.validate is True
        assert options.force_refresh is False
        assert options.test_mode is False
        assert options.test_sample_size == 5
        assert options.deadline_seconds is None


class TestRegenerationMetrics:
    def test_finalize_average(self):
        metrics = RegenerationMetrics(cols_processed=4)
        metrics.finalize(10.0)
        assert metrics.total_time == 10.0
        assert metrics.average_time_per_col == 2.5

    def test_finalize_with_nothing_processed(self):
        metrics = RegenerationMetrics(errors=3)
        metrics.finalize(7.0)
        assert metrics.average_time_per_col == 0

    def test_to_dict(self):
        metrics = RegenerationMetrics(errors=1)
        metrics.error_details.append(ErrorDetail("9", "Col de la Bonette", "boom", "provider_error"))
        data = metrics.to_dict()
        assert data["errors"] == 1
        assert data["error_details"] == [
            {"col_id": "9", "col_name": "Col de la Bonette", "error": "boom", "kind": "provider_error"}
        ]


class TestClassifyError:
    @pytest.mark.parametrize("exc,kind", [
        (RateLimitedError(), "rate_limited"),
        (ElevationApiError("down", status_code=503), "provider_error"),
        (ProfileValidationError(["No segments detected"]), "validation"),
        (PersistenceError("refused"), "persistence"),
        (BackupError("disk full"), "unexpected"),
        (KeyError("x"), "unexpected"),
    ])
    def test_kinds(self, exc, kind):
        assert classify_error(exc) == kind

    def test_error_codes(self):
        assert RateLimitedError.code == "RATE_LIMITED"
        assert ElevationApiError.code == "API_ERROR"

    def test_messages(self):
        assert str(ColNotFoundError("7")) == "Col 7 not found"
        assert "No segments detected" in str(ProfileValidationError(["No segments detected"]))
