"""Distance estimation — Haversine fallback + optional Google Distance Matrix."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Protocol

import httpx

from app.config import Settings
from app.errors import DistanceProviderError, InvalidArgumentError
from app.schemas import DistanceResult

logger = logging.getLogger(__name__)

Coordinate = tuple[float, float]

EARTH_RADIUS_MILES = 3959.0
ROAD_DISTANCE_FACTOR = 1.3  # straight line → approximate driving distance
FALLBACK_SPEED_MPH = 30.0
METERS_TO_MILES = 0.000621371


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def validate_coordinates(lat: float, lng: float) -> None:
    if not -90 <= lat <= 90:
        raise InvalidArgumentError(f"Latitude must be between -90 and 90, got {lat}")
    if not -180 <= lng <= 180:
        raise InvalidArgumentError(f"Longitude must be between -180 and 180, got {lng}")


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance scaled by :data:`ROAD_DISTANCE_FACTOR`."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c * ROAD_DISTANCE_FACTOR


def estimate_travel_minutes(distance_miles: float) -> int:
    return math.ceil(distance_miles / FALLBACK_SPEED_MPH * 60)


def _format_coordinate(c: Coordinate) -> str:
    return f"{c[0]},{c[1]}"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class DistanceProvider(Protocol):
    async def get_distance(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> float: ...

    async def get_travel_time(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> int: ...

    async def get_distance_batch(
        self, origins: list[Coordinate], destinations: list[Coordinate]
    ) -> list[list[DistanceResult]]: ...


# ---------------------------------------------------------------------------
# Haversine (offline, deterministic)
# ---------------------------------------------------------------------------


class HaversineDistanceService:
    """Straight-line estimate; used when Google is disabled and as its fallback."""

    async def get_distance(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> float:
        validate_coordinates(origin_lat, origin_lng)
        validate_coordinates(dest_lat, dest_lng)
        return haversine_miles(origin_lat, origin_lng, dest_lat, dest_lng)

    async def get_travel_time(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> int:
        miles = await self.get_distance(origin_lat, origin_lng, dest_lat, dest_lng)
        return estimate_travel_minutes(miles)

    async def get_distance_batch(
        self, origins: list[Coordinate], destinations: list[Coordinate]
    ) -> list[list[DistanceResult]]:
        rows: list[list[DistanceResult]] = []
        for o_lat, o_lng in origins:
            row = []
            for d_lat, d_lng in destinations:
                miles = await self.get_distance(o_lat, o_lng, d_lat, d_lng)
                row.append(DistanceResult(
                    distance_miles=miles,
                    travel_time_minutes=estimate_travel_minutes(miles),
                ))
            rows.append(row)
        return rows


# ---------------------------------------------------------------------------
# Google Distance Matrix (feature-flagged)
# ---------------------------------------------------------------------------

_DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"
_MAX_ATTEMPTS = 3


class GoogleDistanceService:
    """Real driving distance via Google Distance Matrix API.

    Transport errors and non-2xx responses are retried with exponential
    backoff. Single-pair lookups fall back to the Haversine estimate when
    the API cannot produce a value.
    """

    def __init__(
        self,
        api_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
        initial_delay: float = 0.1,
    ) -> None:
        self._api_key = api_key
        self._transport = transport
        self._initial_delay = initial_delay

    async def _request_matrix(self, origins: str, destinations: str) -> dict[str, Any]:
        params = {
            "origins": origins,
            "destinations": destinations,
            "units": "imperial",
            "mode": "driving",
            "key": self._api_key,
        }
        delay = self._initial_delay
        last_exc: Exception | None = None
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            try:
                async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                    resp = await client.get(_DISTANCE_MATRIX_URL, params=params)
                    resp.raise_for_status()
                    return resp.json()
            except httpx.HTTPError as exc:
                last_exc = exc
                logger.warning(
                    "Distance Matrix request failed (attempt %d/%d): %s",
                    attempt, _MAX_ATTEMPTS, exc,
                )
                if attempt < _MAX_ATTEMPTS:
                    await asyncio.sleep(delay)
                    delay *= 2
        raise DistanceProviderError(
            f"Google Distance Matrix unreachable after {_MAX_ATTEMPTS} attempts"
        ) from last_exc

    @staticmethod
    def _parse_matrix(
        data: dict[str, Any], origin_count: int, destination_count: int
    ) -> list[list[DistanceResult]]:
        status = data.get("status", "UNKNOWN_ERROR")
        if status != "OK":
            message = data.get("error_message") or "API request failed"
            logger.error("Google Distance Matrix error: %s (%s)", message, status)
            return [
                [DistanceResult(status=status, error_message=message) for _ in range(destination_count)]
                for _ in range(origin_count)
            ]

        rows = data.get("rows", [])
        if len(rows) != origin_count:
            logger.warning(
                "Distance Matrix returned %d rows for %d origins", len(rows), origin_count
            )

        # Always origin_count x destination_count; missing cells are NOT_FOUND.
        results: list[list[DistanceResult]] = []
        for i in range(origin_count):
            elements = rows[i].get("elements", []) if i < len(rows) else []
            parsed_row = []
            for j in range(destination_count):
                if j >= len(elements):
                    parsed_row.append(DistanceResult(
                        status="NOT_FOUND", error_message="Missing from Distance Matrix response"
                    ))
                    continue
                element = elements[j]
                el_status = element.get("status", "UNKNOWN_ERROR")
                if el_status == "OK" and "distance" in element and "duration" in element:
                    parsed_row.append(DistanceResult(
                        distance_miles=element["distance"]["value"] * METERS_TO_MILES,
                        travel_time_minutes=math.ceil(element["duration"]["value"] / 60),
                    ))
                else:
                    message = element.get("error_message") or f"Status: {el_status}"
                    logger.warning("Distance element failed with status %s: %s", el_status, message)
                    parsed_row.append(DistanceResult(status=el_status, error_message=message))
            results.append(parsed_row)
        return results

    async def get_distance_batch(
        self, origins: list[Coordinate], destinations: list[Coordinate]
    ) -> list[list[DistanceResult]]:
        if not origins:
            raise InvalidArgumentError("Origins cannot be empty")
        if not destinations:
            raise InvalidArgumentError("Destinations cannot be empty")
        for lat, lng in [*origins, *destinations]:
            validate_coordinates(lat, lng)

        data = await self._request_matrix(
            "|".join(_format_coordinate(c) for c in origins),
            "|".join(_format_coordinate(c) for c in destinations),
        )
        return self._parse_matrix(data, len(origins), len(destinations))

    async def _single(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> DistanceResult:
        validate_coordinates(origin_lat, origin_lng)
        validate_coordinates(dest_lat, dest_lng)
        fallback = haversine_miles(origin_lat, origin_lng, dest_lat, dest_lng)
        try:
            matrix = await self.get_distance_batch(
                [(origin_lat, origin_lng)], [(dest_lat, dest_lng)]
            )
            result = matrix[0][0]
        except Exception:
            logger.exception(
                "Google Distance Matrix failed for (%s,%s)->(%s,%s); using Haversine",
                origin_lat, origin_lng, dest_lat, dest_lng,
            )
            return DistanceResult(
                distance_miles=fallback,
                travel_time_minutes=estimate_travel_minutes(fallback),
                status="FALLBACK_USED",
            )

        if result.distance_miles is None:
            return DistanceResult(
                distance_miles=fallback,
                travel_time_minutes=estimate_travel_minutes(fallback),
                status="FALLBACK_USED",
                error_message=result.error_message,
            )
        return result

    async def get_distance(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> float:
        result = await self._single(origin_lat, origin_lng, dest_lat, dest_lng)
        return result.distance_miles  # type: ignore[return-value]

    async def get_travel_time(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> int:
        result = await self._single(origin_lat, origin_lng, dest_lat, dest_lng)
        if result.travel_time_minutes is None:
            return estimate_travel_minutes(result.distance_miles or 0.0)
        return result.travel_time_minutes


# ---------------------------------------------------------------------------
# Caching decorator
# ---------------------------------------------------------------------------


def _cache_key(origin: Coordinate, dest: Coordinate, kind: str) -> str:
    return (
        f"distance:{origin[0]:.5f},{origin[1]:.5f}:"
        f"{dest[0]:.5f},{dest[1]:.5f}:{kind}"
    )


class CachedDistanceService:
    """Wraps another provider with a per-pair TTL cache (24 h by default)."""

    def __init__(self, inner: DistanceProvider, ttl_seconds: float = 24 * 3600) -> None:
        self._inner = inner
        self._ttl = ttl_seconds
        self._cache: dict[str, tuple[float, Any]] = {}

    def _get(self, key: str) -> Any | None:
        cached = self._cache.get(key)
        if cached is None:
            return None
        if (time.time() - cached[0]) >= self._ttl:
            del self._cache[key]
            return None
        logger.debug("Distance cache hit: %s", key)
        return cached[1]

    def _put(self, key: str, value: Any) -> None:
        self._cache[key] = (time.time(), value)

    def clear(self) -> None:
        self._cache.clear()

    async def get_distance(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> float:
        key = _cache_key((origin_lat, origin_lng), (dest_lat, dest_lng), "distance")
        cached = self._get(key)
        if cached is not None:
            return cached
        miles = await self._inner.get_distance(origin_lat, origin_lng, dest_lat, dest_lng)
        self._put(key, miles)
        return miles

    async def get_travel_time(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> int:
        key = _cache_key((origin_lat, origin_lng), (dest_lat, dest_lng), "traveltime")
        cached = self._get(key)
        if cached is not None:
            return cached
        minutes = await self._inner.get_travel_time(origin_lat, origin_lng, dest_lat, dest_lng)
        self._put(key, minutes)
        return minutes

    async def get_distance_batch(
        self, origins: list[Coordinate], destinations: list[Coordinate]
    ) -> list[list[DistanceResult]]:
        """Serve cached cells and ask the inner provider only for the misses."""
        results: list[list[DistanceResult | None]] = []
        pending_origins: list[int] = []
        pending_dests: list[int] = []

        for i, origin in enumerate(origins):
            row: list[DistanceResult | None] = []
            for j, dest in enumerate(destinations):
                cached = self._get(_cache_key(origin, dest, "batch"))
                row.append(cached)
                if cached is None:
                    if i not in pending_origins:
                        pending_origins.append(i)
                    if j not in pending_dests:
                        pending_dests.append(j)
            results.append(row)

        if pending_origins:
            fresh = await self._inner.get_distance_batch(
                [origins[i] for i in pending_origins],
                [destinations[j] for j in pending_dests],
            )
            for fi, i in enumerate(pending_origins):
                for fj, j in enumerate(pending_dests):
                    result = fresh[fi][fj]
                    results[i][j] = result
                    self._put(_cache_key(origins[i], destinations[j], "batch"), result)

        return results  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def get_distance_provider(settings: Settings | None = None) -> DistanceProvider:
    """Return a cached Google or Haversine provider based on config."""
    inner: DistanceProvider
    if settings and settings.use_google_distance and settings.google_maps_api_key:
        logger.info("Using Google Distance Matrix")
        inner = GoogleDistanceService(settings.google_maps_api_key)
    else:
        inner = HaversineDistanceService()
    ttl = settings.distance_cache_ttl_seconds if settings else 24 * 3600
    return CachedDistanceService(inner, ttl_seconds=ttl)
