from __future__ import annotations

"""
File: robofleet/sim/engine.py
Purpose: Per-tick fleet state machine (battery, charging dispatch, motion, lifecycle).
Key responsibilities:
- Admit deliveries for idle, charged robots and attach their journeys.
- Advance every robot each tick: battery, charging redirection, path following.
- Finalize deliveries when the last journey segment is reached.
- Emit delivery events for persistence without doing any I/O itself.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import random
from typing import Callable, Literal, Sequence
import uuid

from robofleet.routing import straight_line_route
from robofleet.sim.battery import BatteryModel
from robofleet.sim.entities import (
    Charging,
    Delivering,
    Delivery,
    Idle,
    Journey,
    Location,
    PathProgress,
    Robot,
    Segment,
    utc_now,
)
from robofleet.sim.geography import CHARGING_STATIONS, find_nearest_charging_station, planar_distance_m
from robofleet.sim.journey import direct_journey
from robofleet.sim.motion import advance_path, complete_segment
from robofleet.sim.serialize import robot_to_dict
from robofleet.sim.world import FleetRegistry

logger = logging.getLogger("robofleet.engine")

DeliveryEventType = Literal["delivery.created", "delivery.updated"]


@dataclass
class DeliveryEvent:
    """Delivery lifecycle change to be persisted by the owner of the engine."""
    event_type: DeliveryEventType
    delivery: Delivery


class SimulationEngine:
    """Simulation engine that advances robot and delivery state per tick."""
    def __init__(
        self,
        registry: FleetRegistry,
        tick_interval_ms: int = 200,
        battery: BatteryModel | None = None,
        delivery_speed_kmh: float = 12.0,
        charging_speed_kmh: float = 5.0,
        min_delivery_battery: float = 90.0,
        max_stops: int = 4,
        service_time_ms: tuple[float, float] = (3000.0, 5000.0),
        seconds_per_meter: float = 0.3,
        stations: Sequence[Location] = CHARGING_STATIONS,
        delivery_sink: Callable[[DeliveryEvent], None] | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the engine with simulation parameters."""
        self.registry = registry
        self.tick_interval_ms = tick_interval_ms
        self.battery = battery or BatteryModel()
        self.delivery_speed_kmh = delivery_speed_kmh
        self.charging_speed_kmh = charging_speed_kmh
        self.min_delivery_battery = min_delivery_battery
        self.max_stops = max_stops
        self.service_time_ms = service_time_ms
        self.seconds_per_meter = seconds_per_meter
        self.stations = list(stations)
        self.delivery_sink = delivery_sink
        self.rng = rng or random.Random()
        self.clock = clock
        self.tick = 0

    def current_sim_time_s(self) -> float:
        """Return simulated seconds since the engine started ticking."""
        return self.tick * self.tick_interval_ms / 1000.0

    def find_nearest_charging_station(self, location: Location) -> Location | None:
        return find_nearest_charging_station(location, self.stations)

    def rejection_reason(self, robot_id: str, stops: Sequence[Location]) -> str | None:
        """Return why a delivery cannot be created right now, or None if it can."""
        robot = self.registry.get_robot(robot_id)
        if robot is None:
            return "unknown_robot"
        if not 1 <= len(stops) <= self.max_stops:
            return "invalid_stop_count"
        if robot.status != "idle":
            return "robot_not_idle"
        if robot.battery < self.min_delivery_battery:
            return "insufficient_battery"
        return None

    def create_delivery(self, robot_id: str, stops: Sequence[Location]) -> Delivery | None:
        """Direct assignment: straight-line legs built locally, no route provider."""
        reason = self.rejection_reason(robot_id, stops)
        if reason is not None:
            logger.info("delivery rejected robot_id=%s reason=%s", robot_id, reason)
            return None
        robot = self.registry.get_robot(robot_id)
        journey = direct_journey(robot.location, stops, self.stations, self.seconds_per_meter)
        return self._assign(robot, stops, journey)

    def create_delivery_with_journey(
        self,
        robot_id: str,
        stops: Sequence[Location],
        journey: Journey,
    ) -> Delivery | None:
        """Assign a delivery that follows a ready-made journey."""
        reason = self.rejection_reason(robot_id, stops)
        if reason is None and not journey:
            reason = "empty_journey"
        if reason is not None:
            logger.info("delivery rejected robot_id=%s reason=%s", robot_id, reason)
            return None
        robot = self.registry.get_robot(robot_id)
        return self._assign(robot, stops, list(journey))

    def step(self) -> None:
        """Advance the simulation by one tick; one robot's failure never stalls the rest."""
        now = self.clock()
        for robot in self.registry.list_robots():
            try:
                self._advance_robot(robot, now)
            except Exception as exc:  # noqa: BLE001
                logger.exception("robot update failed robot_id=%s err=%s", robot.id, exc)
        self.tick += 1

    def snapshot(self) -> dict:
        """Return a serializable snapshot of current fleet state."""
        return {
            "tick": self.tick,
            "sim_time_s": self.current_sim_time_s(),
            "robots": [robot_to_dict(r) for r in self.registry.list_robots()],
        }

    def _new_id(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))

    def _assign(self, robot: Robot, stops: Sequence[Location], journey: Journey) -> Delivery:
        now = self.clock()
        duration_s = sum(segment.route.duration_s for segment in journey)
        delivery = Delivery(
            id=self._new_id(),
            stops=[stop.copy() for stop in stops],
            robot_id=robot.id,
            status="in_progress",
            created_at=now,
            estimated_completion=now + timedelta(seconds=duration_s),
        )
        robot.motion = Delivering(delivery=delivery, path=PathProgress(journey=journey))
        robot.delivery_history.append(delivery)
        self._emit("delivery.created", delivery)
        logger.info(
            "delivery created robot_id=%s delivery_id=%s stops=%s segments=%s",
            robot.id,
            delivery.id,
            len(delivery.stops),
            len(journey),
        )
        return delivery

    def _advance_robot(self, robot: Robot, now: datetime) -> None:
        """Advance a single robot for the current tick."""
        self.battery.apply(robot)

        decision = self.battery.decide(robot)
        if decision == "send_to_charger":
            self._send_to_charger(robot, now)
        elif decision == "resume_idle":
            self._resume_idle(robot)

        robot.speed = self._derive_speed(robot)
        motion = robot.motion
        if isinstance(motion, Delivering):
            self._move_delivering(robot, motion)
        elif isinstance(motion, Charging) and motion.path is not None:
            self._move_charging(robot, motion)

        robot.speed = self._derive_speed(robot)
        robot.last_update = now

    def _derive_speed(self, robot: Robot) -> float:
        motion = robot.motion
        if isinstance(motion, Delivering):
            return 0.0 if motion.path.servicing else self.delivery_speed_kmh
        if isinstance(motion, Charging):
            return self.charging_speed_kmh if motion.path is not None else 0.0
        return 0.0

    def _send_to_charger(self, robot: Robot, now: datetime) -> None:
        """Replace the robot's motion with a trip to the nearest charging station."""
        station = self.find_nearest_charging_station(robot.location)
        if station is None:
            logger.warning("no charging station available robot_id=%s", robot.id)
            return

        motion = robot.motion
        if isinstance(motion, Delivering):
            preempted = motion.delivery
            preempted.status = "failed"
            self._emit("delivery.updated", preempted)
            logger.warning(
                "delivery failed on low battery robot_id=%s delivery_id=%s battery=%.2f",
                robot.id,
                preempted.id,
                robot.battery,
            )

        path: PathProgress | None = None
        duration_s = 0.0
        if (robot.location.lat, robot.location.lng) != (station.lat, station.lng):
            route = straight_line_route([robot.location, station], self.seconds_per_meter)
            segment = Segment(origin=robot.location.copy(), destination=station.copy(), route=route, kind="charging")
            path = PathProgress(journey=[segment])
            duration_s = route.duration_s

        trip = Delivery(
            id=self._new_id(),
            stops=[station.copy()],
            robot_id=robot.id,
            status="in_progress",
            created_at=now,
            estimated_completion=now + timedelta(seconds=duration_s),
            purpose="charging",
        )
        robot.motion = Charging(station=station, trip=trip, path=path)
        robot.delivery_history.append(trip)
        logger.info(
            "robot sent to charge robot_id=%s station=%s battery=%.2f",
            robot.id,
            station.address,
            robot.battery,
        )

    def _resume_idle(self, robot: Robot) -> None:
        motion = robot.motion
        if isinstance(motion, Charging):
            motion.trip.status = "completed"
        robot.motion = Idle()
        logger.info("charging finished robot_id=%s battery=%.2f", robot.id, robot.battery)

    def _move_delivering(self, robot: Robot, motion: Delivering) -> None:
        path = motion.path
        delivery = motion.delivery
        if path.finished:
            self._finalize_delivery(robot, delivery)
            return

        result = advance_path(path, robot.speed, self.tick_interval_ms)
        if result.outcome == "invalid":
            logger.warning(
                "invalid route geometry robot_id=%s segment=%s",
                robot.id,
                path.segment_index,
            )
            return
        if result.outcome == "moved":
            self._move_to(robot, *result.position)
            return
        if result.outcome != "arrived":
            return

        segment = path.current_segment
        self._arrive(robot, segment.destination)
        if segment.kind == "delivery" and delivery.stops:
            delivery.stops.pop(0)
        service_ms = self.rng.uniform(*self.service_time_ms)
        complete_segment(path, service_ms)
        logger.info(
            "segment completed robot_id=%s segment=%s/%s destination=%s service_ms=%.0f",
            robot.id,
            path.segment_index,
            len(path.journey),
            segment.destination.address,
            service_ms,
        )
        if path.finished:
            self._finalize_delivery(robot, delivery)

    def _move_charging(self, robot: Robot, motion: Charging) -> None:
        result = advance_path(motion.path, robot.speed, self.tick_interval_ms)
        if result.outcome == "moved":
            self._move_to(robot, *result.position)
        elif result.outcome == "arrived":
            self._arrive(robot, motion.station)
            motion.path = None
            logger.info("robot parked at charger robot_id=%s station=%s", robot.id, motion.station.address)
        elif result.outcome == "invalid":
            logger.warning("invalid charging geometry robot_id=%s", robot.id)

    def _finalize_delivery(self, robot: Robot, delivery: Delivery) -> None:
        delivery.status = "completed"
        robot.motion = Idle()
        self._emit("delivery.updated", delivery)
        logger.info(
            "delivery completed robot_id=%s delivery_id=%s battery=%.2f",
            robot.id,
            delivery.id,
            robot.battery,
        )

    def _move_to(self, robot: Robot, lng: float, lat: float) -> None:
        loc = robot.location
        robot.distance_traveled_m += planar_distance_m(loc.lng, loc.lat, lng, lat)
        robot.location = Location(lat=lat, lng=lng, address=loc.address)

    def _arrive(self, robot: Robot, destination: Location) -> None:
        loc = robot.location
        robot.distance_traveled_m += planar_distance_m(loc.lng, loc.lat, destination.lng, destination.lat)
        robot.location = destination.copy()

    def _emit(self, event_type: DeliveryEventType, delivery: Delivery) -> None:
        if self.delivery_sink is None or delivery.purpose != "customer":
            return
        self.delivery_sink(DeliveryEvent(event_type=event_type, delivery=delivery))
