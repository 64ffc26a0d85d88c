from dataclasses import dataclass, field
from datetime import datetime, timezone

DIFFICULTY_CLASSES = ("easy", "moderate", "challenging", "difficult", "extreme")


def _parse_datetime(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class ElevationPoint:
    lat: float
    lng: float
    elevation: float  # meters
    distance: float | None = None  # cumulative km from the first point

    def to_dict(self) -> dict:
        data = {"lat": self.lat, "lng": self.lng, "elevation": self.elevation}
        if self.distance is not None:
            data["distance"] = self.distance
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ElevationPoint":
        return cls(
            lat=data["lat"],
            lng=data["lng"],
            elevation=data["elevation"],
            distance=data.get("distance"),
        )


@dataclass(frozen=True)
class ElevationSegment:
    start_index: int
    end_index: int
    start_distance: float  # km
    end_distance: float  # km
    length: float  # km
    avg_gradient: float  # percent
    classification: str  # one of DIFFICULTY_CLASSES

    def to_dict(self) -> dict:
        return {
            "start_index": self.start_index,
            "end_index": self.end_index,
            "start_distance": self.start_distance,
            "end_distance": self.end_distance,
            "length": self.length,
            "avg_gradient": self.avg_gradient,
            "classification": self.classification,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ElevationSegment":
        return cls(**{k: data[k] for k in cls.__dataclass_fields__})


@dataclass
class ProviderProfile:
    """Raw samples returned by an elevation provider for one path."""

    points: list[ElevationPoint]
    total_ascent: float  # meters
    total_descent: float  # meters
    min_elevation: float  # meters
    max_elevation: float  # meters
    source: str = ""  # name of the provider that answered, if the wrapper knows it


@dataclass
class ElevationProfile:
    points: list[ElevationPoint]
    segments: list[ElevationSegment]
    total_ascent: float  # meters
    total_descent: float  # meters
    min_elevation: float  # meters
    max_elevation: float  # meters
    length: float  # km
    avg_gradient: float  # percent
    generated_at: datetime
    source: str = ""

    def to_dict(self) -> dict:
        return {
            "points": [p.to_dict() for p in self.points],
            "segments": [s.to_dict() for s in self.segments],
            "total_ascent": self.total_ascent,
            "total_descent": self.total_descent,
            "min_elevation": self.min_elevation,
            "max_elevation": self.max_elevation,
            "length": self.length,
            "avg_gradient": self.avg_gradient,
            "generated_at": _format_datetime(self.generated_at),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ElevationProfile":
        return cls(
            points=[ElevationPoint.from_dict(p) for p in data.get("points", [])],
            segments=[ElevationSegment.from_dict(s) for s in data.get("segments", [])],
            total_ascent=data.get("total_ascent", 0.0),
            total_descent=data.get("total_descent", 0.0),
            min_elevation=data.get("min_elevation", 0.0),
            max_elevation=data.get("max_elevation", 0.0),
            length=data.get("length", 0.0),
            avg_gradient=data.get("avg_gradient", 0.0),
            generated_at=_parse_datetime(data.get("generated_at")) or datetime.now(timezone.utc),
            source=data.get("source", ""),
        )


@dataclass
class Col:
    id: str
    name: str
    region: str = ""
    elevation: float = 0.0  # catalogued summit elevation, meters
    length: float = 0.0  # catalogued climb length, km
    avg_gradient: float = 0.0  # catalogued average gradient, percent
    coordinates: list[tuple[float, float]] = field(default_factory=list)  # (lat, lng) path
    elevation_profile: ElevationProfile | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "region": self.region,
            "elevation": self.elevation,
            "length": self.length,
            "avg_gradient": self.avg_gradient,
            "coordinates": [list(c) for c in self.coordinates],
            "elevation_profile": self.elevation_profile.to_dict() if self.elevation_profile else None,
            "created_at": _format_datetime(self.created_at),
            "updated_at": _format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Col":
        profile = data.get("elevation_profile")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            region=data.get("region", ""),
            elevation=data.get("elevation", 0.0),
            length=data.get("length", 0.0),
            avg_gradient=data.get("avg_gradient", 0.0),
            coordinates=[(c[0], c[1]) for c in data.get("coordinates", [])],
            elevation_profile=ElevationProfile.from_dict(profile) if profile else None,
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass(frozen=True)
class RegenerationOptions:
    concurrency: int = 3
    backup: bool = True
    validate: bool = True
    force_refresh: bool = False
    test_mode: bool = False
    test_sample_size: int = 5
    deadline_seconds: float | None = None  # stop submitting new cols after this
    smoothing_radius_m: float = 0.0  # 0 disables smoothing
    charts_dir: str | None = None


@dataclass
class ErrorDetail:
    col_id: str
    col_name: str
    error: str
    kind: str = "unexpected"


@dataclass
class RegenerationMetrics:
    cols_processed: int = 0
    errors: int = 0
    skipped: int = 0
    cache_hits: int = 0
    api_calls: int = 0
    total_time: float = 0.0  # seconds
    average_time_per_col: float = 0.0  # seconds
    error_details: list[ErrorDetail] = field(default_factory=list)

    def finalize(self, total_time: float) -> None:
        """Record the run duration and derive the per-col average."""
        self.total_time = total_time
        self.average_time_per_col = total_time / self.cols_processed if self.cols_processed > 0 else 0.0

    def to_dict(self) -> dict:
        return {
            "cols_processed": self.cols_processed,
            "errors": self.errors,
            "skipped": self.skipped,
            "cache_hits": self.cache_hits,
            "api_calls": self.api_calls,
            "total_time": self.total_time,
            "average_time_per_col": self.average_time_per_col,
            "error_details": [
                {"col_id": e.col_id, "col_name": e.col_name, "error": e.error, "kind": e.kind}
                for e in self.error_details
            ],
        }


@dataclass
class ValidationResult:
    passed: bool
    reasons: list[str] = field(default_factory=list)
