"""Fetch elevation samples along a col's path from DEM APIs.

Providers are plain classes with a ``fetch_profile`` coroutine. The HTTP
calls use requests and run in a worker thread so the event loop keeps
serving other cols while a request is in flight.
"""

import asyncio
import logging
import math
import os
import time

import requests

from col_profiles.errors import ElevationApiError, RateLimitedError
from col_profiles.models import ElevationPoint, ProviderProfile
from col_profiles.profile import summarize_points

logger = logging.getLogger(__name__)

# API endpoints
OPENROUTESERVICE_URL = "https://api.openrouteservice.org/elevation/line"
OPEN_TOPO_DATA_URL = "https://api.opentopodata.org/v1/{dataset}"

# OpenRouteService rejects longer geometries
OPENROUTESERVICE_MAX_POINTS = 500
OPEN_TOPO_DATA_BATCH_SIZE = 100
REQUEST_TIMEOUT_SECONDS = 30


def downsample(coordinates: list, max_points: int) -> list:
    """Keep every ceil(n / max_points)-th coordinate when over the limit."""
    if len(coordinates) <= max_points:
        return list(coordinates)
    step = math.ceil(len(coordinates) / max_points)
    return [c for i, c in enumerate(coordinates) if i % step == 0]


def _raise_for_response(response: requests.Response, provider: str) -> None:
    """Translate HTTP failures into the provider error taxonomy."""
    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After")
        try:
            retry_after = float(retry_after) if retry_after is not None else None
        except ValueError:
            retry_after = None
        raise RateLimitedError(f"{provider} rate limit exceeded", retry_after=retry_after)
    if response.status_code >= 400:
        raise ElevationApiError(
            f"{provider} API error ({response.status_code}): {response.text[:200]}",
            status_code=response.status_code,
        )


def _extract_coordinates(data: dict) -> list:
    """Find the [lng, lat, elevation] list in a GeoJSON-ish response."""
    geometry = data.get("geometry")
    if isinstance(geometry, dict) and geometry.get("coordinates"):
        return geometry["coordinates"]
    features = data.get("features") or []
    if features and (features[0].get("geometry") or {}).get("coordinates"):
        return features[0]["geometry"]["coordinates"]
    return data.get("coordinates") or []


def parse_geojson_points(data: dict) -> list[ElevationPoint]:
    """Build elevation points from a GeoJSON response, dropping invalid ones."""
    coordinates = _extract_coordinates(data)
    if not coordinates:
        raise ElevationApiError("No coordinates in elevation response")

    points = []
    for index, coord in enumerate(coordinates):
        if not isinstance(coord, (list, tuple)) or len(coord) < 3:
            logger.debug("Skipping invalid point at index %d: %r", index, coord)
            continue
        lng, lat, elevation = coord[0] or 0.0, coord[1] or 0.0, coord[2] or 0.0
        if lat == 0 and lng == 0:
            continue
        points.append(ElevationPoint(lat=lat, lng=lng, elevation=elevation))
    return points


class OpenRouteServiceProvider:
    """OpenRouteService ``/elevation/line`` client."""

    name = "openrouteservice"

    def __init__(self, api_key: str | None = None, url: str = OPENROUTESERVICE_URL,
                 timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.api_key = api_key or os.environ.get("OPENROUTE_API_KEY", "")
        self.url = url
        self.timeout = timeout

    async def fetch_profile(self, coordinates: list[tuple[float, float]]) -> ProviderProfile:
        return await asyncio.to_thread(self._fetch, coordinates)

    def _fetch(self, coordinates: list[tuple[float, float]]) -> ProviderProfile:
        limited = downsample(coordinates, OPENROUTESERVICE_MAX_POINTS)
        payload = {
            "format_in": "polyline",
            "format_out": "geojson",
            "geometry": [[lng, lat] for lat, lng in limited],
        }
        logger.debug("Sending %d points to OpenRouteService", len(limited))

        try:
            response = requests.post(
                self.url,
                json=payload,
                headers={
                    "Authorization": self.api_key,
                    "Accept": "application/json, application/geo+json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ElevationApiError(f"OpenRouteService request failed: {e}") from e

        _raise_for_response(response, "OpenRouteService")
        try:
            data = response.json()
        except ValueError as e:
            raise ElevationApiError(f"Invalid OpenRouteService response: {e}") from e

        return summarize_points(parse_geojson_points(data))


class OpenTopoDataProvider:
    """OpenTopoData lookup client, batched per request."""

    name = "opentopodata"

    def __init__(self, dataset: str = "srtm30m", batch_size: int = OPEN_TOPO_DATA_BATCH_SIZE,
                 request_delay: float = 1.0, timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.url = OPEN_TOPO_DATA_URL.format(dataset=dataset)
        self.batch_size = batch_size
        self.request_delay = request_delay
        self.timeout = timeout

    async def fetch_profile(self, coordinates: list[tuple[float, float]]) -> ProviderProfile:
        return await asyncio.to_thread(self._fetch, coordinates)

    def _fetch(self, coordinates: list[tuple[float, float]]) -> ProviderProfile:
        points = []

        for i in range(0, len(coordinates), self.batch_size):
            batch = coordinates[i : i + self.batch_size]
            locations = "|".join(f"{lat},{lng}" for lat, lng in batch)

            try:
                response = requests.get(self.url, params={"locations": locations}, timeout=self.timeout)
            except requests.RequestException as e:
                raise ElevationApiError(f"OpenTopoData request failed: {e}") from e
            _raise_for_response(response, "OpenTopoData")

            try:
                results = response.json().get("results", [])
            except ValueError as e:
                raise ElevationApiError(f"Invalid OpenTopoData response: {e}") from e

            for (lat, lng), result in zip(batch, results):
                elev = result.get("elevation")
                points.append(ElevationPoint(lat=lat, lng=lng, elevation=elev if elev is not None else 0.0))

            # OpenTopoData asks for 1 req/sec
            if i + self.batch_size < len(coordinates):
                time.sleep(self.request_delay)

        return summarize_points(points)


class FallbackProvider:
    """Ask the primary provider first and the secondary one when it errors.

    Rate-limit signals are not a provider failure and propagate untouched, so
    the caller backs off instead of spending the secondary provider's quota.
    """

    name = "fallback"

    def __init__(self, primary, secondary):
        self.primary = primary
        self.secondary = secondary

    async def fetch_profile(self, coordinates: list[tuple[float, float]]) -> ProviderProfile:
        try:
            raw = await self.primary.fetch_profile(coordinates)
            source = self.primary.name
        except ElevationApiError as e:
            logger.warning("%s failed, falling back to %s: %s", self.primary.name, self.secondary.name, e)
            raw = await self.secondary.fetch_profile(coordinates)
            source = self.secondary.name
        raw.source = raw.source or source
        return raw


PROVIDERS = {
    OpenRouteServiceProvider.name: OpenRouteServiceProvider,
    OpenTopoDataProvider.name: OpenTopoDataProvider,
    FallbackProvider.name: FallbackProvider,
}


def create_provider(name: str, config: dict | None = None):
    """Instantiate a provider by name using settings from the config dict."""
    config = config or {}
    if name == OpenRouteServiceProvider.name:
        return OpenRouteServiceProvider(api_key=config.get("openrouteservice_api_key"))
    elif name == OpenTopoDataProvider.name:
        return OpenTopoDataProvider(dataset=config.get("opentopodata_dataset", "srtm30m"))
    elif name == FallbackProvider.name:
        return FallbackProvider(
            create_provider(OpenRouteServiceProvider.name, config),
            create_provider(OpenTopoDataProvider.name, config),
        )
    else:
        raise ValueError(f"Unknown elevation provider: {name}")
