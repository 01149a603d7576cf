from __future__ import annotations

"""
File: robofleet/sim/journey.py
Purpose: Assemble delivery journeys (origin -> stops -> nearest charger).
Key responsibilities:
- Request one route per leg from the route provider.
- Substitute straight-line legs when the provider fails.
- Build provider-free journeys for direct delivery assignment.
"""

import logging
from typing import Sequence

from robofleet.routing import RouteProvider, RouteProviderError, straight_line_route
from robofleet.sim.entities import Journey, Location, Segment, SegmentKind
from robofleet.sim.geography import CHARGING_STATIONS, find_nearest_charging_station

logger = logging.getLogger("robofleet.journey")


class JourneyAssemblyError(Exception):
    """Raised when no leg of a journey could be routed by the provider."""


def journey_legs(
    origin: Location,
    stops: Sequence[Location],
    stations: Sequence[Location] = CHARGING_STATIONS,
) -> list[tuple[Location, Location, SegmentKind]]:
    """Return (from, to, kind) for every leg, ending at the charger nearest the last stop."""
    if not stops:
        return []
    legs: list[tuple[Location, Location, SegmentKind]] = []
    previous = origin
    for stop in stops:
        legs.append((previous.copy(), stop.copy(), "delivery"))
        previous = stop
    station = find_nearest_charging_station(stops[-1], stations)
    if station is not None:
        legs.append((stops[-1].copy(), station, "charging"))
    return legs


def direct_journey(
    origin: Location,
    stops: Sequence[Location],
    stations: Sequence[Location] = CHARGING_STATIONS,
    seconds_per_meter: float = 0.3,
) -> Journey:
    """Straight-line journey built locally, without the route provider."""
    return [
        Segment(origin=a, destination=b, route=straight_line_route([a, b], seconds_per_meter), kind=kind)
        for a, b, kind in journey_legs(origin, stops, stations)
    ]


class JourneyPlanner:
    """Builds journeys leg by leg from a route provider."""
    def __init__(
        self,
        provider: RouteProvider,
        stations: Sequence[Location] = CHARGING_STATIONS,
        seconds_per_meter: float = 0.3,
    ) -> None:
        self.provider = provider
        self.stations = list(stations)
        self.seconds_per_meter = seconds_per_meter

    async def plan(self, origin: Location, stops: Sequence[Location]) -> Journey:
        """Route every leg; raise JourneyAssemblyError if the provider failed on all of them."""
        legs = journey_legs(origin, stops, self.stations)
        if not legs:
            raise JourneyAssemblyError("journey needs at least one stop")

        journey: Journey = []
        failures = 0
        for a, b, kind in legs:
            try:
                route = await self.provider.compute_route([a, b])
            except RouteProviderError as exc:
                failures += 1
                logger.warning("route leg fallback from=%s to=%s err=%s", a.address, b.address, exc)
                route = straight_line_route([a, b], self.seconds_per_meter)
            journey.append(Segment(origin=a, destination=b, route=route, kind=kind))

        if failures == len(legs):
            raise JourneyAssemblyError(f"route provider failed for all {failures} legs")
        return journey
