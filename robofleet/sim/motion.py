from __future__ import annotations

"""
File: robofleet/sim/motion.py
Purpose: Path following for moving robots.
Key responsibilities:
- Filter corrupt route geometry.
- Convert speed and segment distance into per-tick progress.
- Interpolate positions along multi-point segment geometry.
- Run servicing pauses between segments.
"""

from dataclasses import dataclass
from math import ceil, floor, isfinite
from typing import Any, Iterable, Literal

from robofleet.sim.entities import PathProgress

# Points this close to (0, 0) are treated as corrupt geometry.
COORD_EPSILON = 0.1

MoveOutcome = Literal["servicing", "invalid", "stalled", "moved", "arrived"]


@dataclass
class MoveResult:
    """Result of one tick of path following; position is (lng, lat)."""
    outcome: MoveOutcome
    position: tuple[float, float] | None = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and isfinite(value)


def valid_points(coordinates: Iterable[Any] | None) -> list[tuple[float, float]]:
    """Drop missing, non-numeric and near-origin points."""
    points: list[tuple[float, float]] = []
    for point in coordinates or []:
        if point is None:
            continue
        try:
            lng, lat = point[0], point[1]
        except (TypeError, IndexError, KeyError):
            continue
        if not (_is_number(lng) and _is_number(lat)):
            continue
        if abs(lng) <= COORD_EPSILON and abs(lat) <= COORD_EPSILON:
            continue
        points.append((float(lng), float(lat)))
    return points


def ticks_to_traverse(distance_m: float, speed_kmh: float, tick_interval_ms: float) -> float:
    """Number of ticks needed to cover distance_m at speed_kmh."""
    speed_mps = speed_kmh / 3.6
    return distance_m / speed_mps / (tick_interval_ms / 1000.0)


def interpolate(points: list[tuple[float, float]], progress: float) -> tuple[float, float]:
    """Linear blend between the two points bracketing progress * (n - 1)."""
    last = len(points) - 1
    scaled = max(0.0, min(1.0, progress)) * last
    idx = min(int(floor(scaled)), last)
    nxt = min(idx + 1, last)
    frac = scaled - idx
    a, b = points[idx], points[nxt]
    return a[0] + (b[0] - a[0]) * frac, a[1] + (b[1] - a[1]) * frac


def advance_path(path: PathProgress, speed_kmh: float, tick_interval_ms: float) -> MoveResult:
    """Advance a path by one tick."""
    if path.servicing:
        path.service_remaining_ms -= tick_interval_ms
        if path.service_remaining_ms <= 0:
            path.servicing = False
            path.service_remaining_ms = 0.0
        return MoveResult("servicing")

    segment = path.current_segment
    if segment is None:
        return MoveResult("stalled")

    points = valid_points(segment.route.coordinates)
    if len(points) < 2:
        return MoveResult("invalid")
    if speed_kmh <= 0:
        return MoveResult("stalled")

    # Arrival is decided on whole ticks; progress only drives interpolation.
    path.segment_ticks += 1
    distance = segment.route.distance_m
    if distance <= 0:
        path.progress = 1.0
        return MoveResult("arrived", points[-1])

    needed = ticks_to_traverse(distance, speed_kmh, tick_interval_ms)
    path.progress = min(1.0, path.progress + 1.0 / needed)
    if path.segment_ticks >= ceil(needed):
        path.progress = 1.0
        return MoveResult("arrived", points[-1])
    return MoveResult("moved", interpolate(points, path.progress))


def complete_segment(path: PathProgress, service_ms: float | None = None) -> None:
    """Move to the next segment, optionally starting a servicing pause."""
    path.segment_index += 1
    path.progress = 0.0
    path.segment_ticks = 0
    if service_ms is not None:
        path.servicing = True
        path.service_remaining_ms = float(service_ms)
