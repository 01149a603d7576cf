from __future__ import annotations

"""
File: robofleet/sim/entities.py
Purpose: Core dataclasses and type aliases for fleet simulation state.
Key responsibilities:
- Locations, route geometry, journey segments and deliveries.
- Robot entity with a tagged motion state (Idle | Delivering | Charging).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Union


RobotStatus = Literal["idle", "delivering", "charging", "maintenance", "offline"]
DeliveryStatus = Literal["pending", "in_progress", "completed", "failed"]
DeliveryPurpose = Literal["customer", "charging"]
SegmentKind = Literal["delivery", "charging"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Location:
    """A named point on the map."""
    lat: float
    lng: float
    address: str = ""

    def copy(self) -> Location:
        return Location(lat=self.lat, lng=self.lng, address=self.address)


@dataclass
class Route:
    """Precomputed path geometry for one leg; coordinates are (lng, lat) pairs."""
    coordinates: list[tuple[float, float]]
    distance_m: float
    duration_s: float


@dataclass
class Segment:
    """One leg of a journey."""
    origin: Location
    destination: Location
    route: Route
    kind: SegmentKind = "delivery"


Journey = list[Segment]


@dataclass
class Delivery:
    """A multi-stop trip owned by one robot while active."""
    id: str
    stops: list[Location]
    robot_id: str
    status: DeliveryStatus = "in_progress"
    created_at: datetime = field(default_factory=utc_now)
    estimated_completion: datetime | None = None
    purpose: DeliveryPurpose = "customer"


@dataclass
class PathProgress:
    """Position of a robot along an ordered list of segments."""
    journey: Journey
    segment_index: int = 0
    progress: float = 0.0
    segment_ticks: int = 0
    servicing: bool = False
    service_remaining_ms: float = 0.0

    @property
    def current_segment(self) -> Segment | None:
        if 0 <= self.segment_index < len(self.journey):
            return self.journey[self.segment_index]
        return None

    @property
    def finished(self) -> bool:
        return self.segment_index >= len(self.journey)


@dataclass
class Idle:
    kind: Literal["idle"] = "idle"


@dataclass
class Delivering:
    delivery: Delivery
    path: PathProgress
    kind: Literal["delivering"] = "delivering"


@dataclass
class Charging:
    """Charging trip; path is None once the robot is parked at the station."""
    station: Location
    trip: Delivery
    path: PathProgress | None = None
    kind: Literal["charging"] = "charging"


MotionState = Union[Idle, Delivering, Charging]


@dataclass
class Robot:
    """Robot state tracked by the simulation engine."""
    id: str
    name: str
    color: str
    location: Location
    battery: float = 100.0
    speed: float = 0.0
    last_update: datetime = field(default_factory=utc_now)
    distance_traveled_m: float = 0.0
    delivery_history: list[Delivery] = field(default_factory=list)
    motion: MotionState = field(default_factory=Idle)

    @property
    def status(self) -> RobotStatus:
        if isinstance(self.motion, Delivering):
            return "delivering"
        if isinstance(self.motion, Charging):
            return "charging"
        return "idle"

    @property
    def current_delivery(self) -> Delivery | None:
        if isinstance(self.motion, Delivering):
            return self.motion.delivery
        if isinstance(self.motion, Charging):
            return self.motion.trip
        return None

    @property
    def path(self) -> PathProgress | None:
        if isinstance(self.motion, (Delivering, Charging)):
            return self.motion.path
        return None

    @property
    def active_journey(self) -> Journey | None:
        path = self.path
        return path.journey if path is not None else None

    @property
    def current_segment_index(self) -> int | None:
        path = self.path
        return path.segment_index if path is not None else None

    @property
    def segment_progress(self) -> float | None:
        path = self.path
        return path.progress if path is not None else None

    @property
    def is_servicing_stop(self) -> bool:
        path = self.path
        return bool(path and path.servicing)

    @property
    def remaining_service_time_ms(self) -> float:
        path = self.path
        return path.service_remaining_ms if path is not None else 0.0
