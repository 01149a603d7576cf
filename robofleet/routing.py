from __future__ import annotations

"""
File: robofleet/routing.py
Purpose: Route provider contract, OSRM HTTP client and straight-line fallback.
Key responsibilities:
- Call an OSRM-compatible /route endpoint for an ordered list of waypoints.
- Normalize the response into a Route (lng/lat geometry, meters, seconds).
- Build deterministic straight-line routes when the provider is unavailable.
"""

import logging
from math import isfinite
from typing import Any, Protocol, Sequence

import httpx

from robofleet.sim.entities import Location, Route
from robofleet.sim.geography import planar_distance_m

logger = logging.getLogger("robofleet.routing")


class RouteProviderError(Exception):
    """Raised when the route provider cannot produce usable geometry."""


class RouteProvider(Protocol):
    async def compute_route(self, waypoints: Sequence[Location]) -> Route: ...


def straight_line_route(waypoints: Sequence[Location], seconds_per_meter: float = 0.3) -> Route:
    """Route through the waypoints as straight lines with planar distances."""
    if len(waypoints) < 2:
        raise ValueError("a route needs at least 2 waypoints")
    coordinates = [(p.lng, p.lat) for p in waypoints]
    distance = 0.0
    for (a_lng, a_lat), (b_lng, b_lat) in zip(coordinates, coordinates[1:]):
        distance += planar_distance_m(a_lng, a_lat, b_lng, b_lat)
    return Route(coordinates=coordinates, distance_m=distance, duration_s=distance * seconds_per_meter)


class StraightLineRouteProvider:
    """Offline provider that always answers with straight-line geometry."""
    def __init__(self, seconds_per_meter: float = 0.3) -> None:
        self.seconds_per_meter = seconds_per_meter

    async def compute_route(self, waypoints: Sequence[Location]) -> Route:
        return straight_line_route(waypoints, self.seconds_per_meter)


class OsrmRouteClient:
    """HTTP client for an OSRM routing service."""
    def __init__(
        self,
        base_url: str,
        profile: str = "driving",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout_s = timeout_s
        self.transport = transport

    async def compute_route(self, waypoints: Sequence[Location]) -> Route:
        """Call /route and return normalized geometry, or raise RouteProviderError."""
        if len(waypoints) < 2:
            raise RouteProviderError("at least 2 waypoints are required")
        coords = ";".join(f"{p.lng},{p.lat}" for p in waypoints)
        url = f"{self.base_url}/route/v1/{self.profile}/{coords}"
        params = {"overview": "full", "geometries": "geojson"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                resp = await client.get(url, params=params, headers={"Accept": "application/json"})
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RouteProviderError(f"route request failed: {exc}") from exc
        route = _parse_osrm_route(data)
        logger.debug(
            "route computed waypoints=%s points=%s distance_m=%.1f",
            len(waypoints),
            len(route.coordinates),
            route.distance_m,
        )
        return route


def _parse_osrm_route(data: Any) -> Route:
    """Extract the first route of an OSRM response."""
    if not isinstance(data, dict) or data.get("code") != "Ok":
        message = data.get("message") if isinstance(data, dict) else None
        raise RouteProviderError(f"route provider returned an error: {message}")
    routes = data.get("routes") or []
    if not routes:
        raise RouteProviderError("route provider returned no routes")
    best = routes[0]
    geometry = best.get("geometry")
    if not isinstance(geometry, dict):
        raise RouteProviderError("route geometry missing")
    coordinates: list[tuple[float, float]] = []
    for point in geometry.get("coordinates") or []:
        try:
            lng, lat = float(point[0]), float(point[1])
        except (TypeError, ValueError, IndexError):
            continue
        if isfinite(lng) and isfinite(lat):
            coordinates.append((lng, lat))
    if len(coordinates) < 2:
        raise RouteProviderError("route geometry has fewer than 2 points")
    try:
        distance = float(best.get("distance", 0.0))
        duration = float(best.get("duration", 0.0))
    except (TypeError, ValueError) as exc:
        raise RouteProviderError("route distance/duration malformed") from exc
    return Route(coordinates=coordinates, distance_m=distance, duration_s=duration)
