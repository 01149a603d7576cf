from __future__ import annotations

"""
File: robofleet/sim/world.py
Purpose: Fleet seeding and the robot registry.
Key responsibilities:
- Seed robots with stable IDs at distinct catalog locations.
- Compute a fleet hash for comparability across seeds.
- Own the robot set (initialize, reset, lookup, restore).
"""

import hashlib
import json
import random
from typing import Sequence

from robofleet.sim.entities import Location, Robot
from robofleet.sim.geography import SAMPLE_LOCATIONS

DEFAULT_ROBOT_COLORS = (
    "#22c55e",
    "#f59e0b",
    "#8b5cf6",
    "#0891b2",
    "#f472b6",
    "#10b981",
    "#d946ef",
    "#0ea5e9",
)


def robot_id_for(index: int) -> str:
    """Stable robot ID for a 1-based fleet index."""
    return f"robot-{index:03d}"


def generate_fleet(
    rng: random.Random,
    robot_count: int,
    names: Sequence[str] | None = None,
    colors: Sequence[str] | None = None,
    locations: Sequence[Location] = SAMPLE_LOCATIONS,
) -> tuple[list[Robot], str]:
    """Seed idle, fully charged robots at distinct locations and return a fleet hash."""
    if robot_count <= 0:
        raise ValueError("robot_count must be > 0")
    if robot_count > len(locations):
        raise ValueError(f"robot_count {robot_count} exceeds {len(locations)} catalog locations")
    if names is not None and len(names) < robot_count:
        raise ValueError("not enough robot names for robot_count")

    palette = list(colors) if colors else list(DEFAULT_ROBOT_COLORS)
    picks = rng.sample(range(len(locations)), robot_count)

    robots: list[Robot] = []
    for idx, loc_idx in enumerate(picks, start=1):
        robots.append(
            Robot(
                id=robot_id_for(idx),
                name=names[idx - 1] if names is not None else f"BOT-{idx:03d}",
                color=palette[(idx - 1) % len(palette)],
                location=locations[loc_idx].copy(),
                battery=100.0,
            )
        )

    payload = [
        {
            "id": r.id,
            "name": r.name,
            "color": r.color,
            "lat": r.location.lat,
            "lng": r.location.lng,
            "address": r.location.address,
        }
        for r in robots
    ]
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    fleet_hash = hashlib.sha256(encoded).hexdigest()
    return robots, fleet_hash


class FleetRegistry:
    """Owns the robot set; robots are only replaced by initialize/reset/restore."""
    def __init__(
        self,
        robot_count: int = 8,
        names: Sequence[str] | None = None,
        colors: Sequence[str] | None = None,
        rng: random.Random | None = None,
        locations: Sequence[Location] = SAMPLE_LOCATIONS,
    ) -> None:
        self.robot_count = robot_count
        self.names = list(names) if names is not None else None
        self.colors = list(colors) if colors is not None else None
        self.rng = rng or random.Random()
        self.locations = list(locations)
        self.fleet_hash = ""
        self._robots: dict[str, Robot] = {}
        self.initialize()

    def initialize(
        self,
        robot_count: int | None = None,
        names: Sequence[str] | None = None,
        colors: Sequence[str] | None = None,
    ) -> list[Robot]:
        """Seed a fresh fleet, remembering the parameters for later resets."""
        if robot_count is not None:
            self.robot_count = robot_count
        if names is not None:
            self.names = list(names)
        if colors is not None:
            self.colors = list(colors)
        robots, self.fleet_hash = generate_fleet(
            self.rng,
            self.robot_count,
            names=self.names,
            colors=self.colors,
            locations=self.locations,
        )
        self._robots = {robot.id: robot for robot in robots}
        return self.list_robots()

    def reset(self) -> list[Robot]:
        """Drop all robot state and re-seed with the original parameters."""
        self._robots.clear()
        return self.initialize()

    def replace(self, robots: Sequence[Robot]) -> None:
        """Adopt robots restored from persistence."""
        self._robots = {robot.id: robot for robot in robots}

    def list_robots(self) -> list[Robot]:
        return sorted(self._robots.values(), key=lambda r: r.id)

    def get_robot(self, robot_id: str) -> Robot | None:
        return self._robots.get(robot_id)

    def __len__(self) -> int:
        return len(self._robots)
