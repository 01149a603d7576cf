from datetime import datetime, timedelta, timezone
from math import ceil
import random

from robofleet.routing import straight_line_route
from robofleet.sim.engine import SimulationEngine
from robofleet.sim.entities import Idle, Location, Segment
from robofleet.sim.geography import SAMPLE_LOCATIONS
from robofleet.sim.world import FleetRegistry

FIXED_NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def _engine(seed=42, **kwargs):
    registry = FleetRegistry(robot_count=8, rng=random.Random(seed))
    events = []
    engine = SimulationEngine(
        registry,
        delivery_sink=events.append,
        rng=random.Random(seed),
        clock=lambda: FIXED_NOW,
        **kwargs,
    )
    return engine, events


def _offset(loc, dlat=0.0, dlng=0.0, address="stop"):
    return Location(lat=loc.lat + dlat, lng=loc.lng + dlng, address=address)


def _leg(a, b, kind="delivery"):
    return Segment(origin=a.copy(), destination=b.copy(), route=straight_line_route([a, b]), kind=kind)


def _run_until_idle(engine, robot, limit=50_000):
    for ticks in range(1, limit + 1):
        engine.step()
        if robot.status == "idle":
            return ticks
    raise AssertionError("robot never returned to idle")


def test_create_delivery_scenario_runs_to_completion():
    engine, events = _engine()
    robot = engine.registry.get_robot("robot-001")
    stop_a = next(loc for loc in SAMPLE_LOCATIONS if (loc.lat, loc.lng) != (robot.location.lat, robot.location.lng))

    delivery = engine.create_delivery("robot-001", [stop_a])

    assert delivery is not None
    assert delivery.status == "in_progress"
    assert delivery.stops == [stop_a]
    assert delivery.robot_id == "robot-001"
    assert robot.status == "delivering"
    assert robot.current_delivery is delivery
    assert robot.delivery_history == [delivery]
    assert [e.event_type for e in events] == ["delivery.created"]

    _run_until_idle(engine, robot)

    assert delivery.status == "completed"
    assert delivery.stops == []
    assert robot.current_delivery is None
    assert robot.speed == 0.0
    assert robot.distance_traveled_m > 0
    assert events[-1].event_type == "delivery.updated"
    assert events[-1].delivery.status == "completed"


def test_create_delivery_preconditions_leave_state_unchanged():
    engine, events = _engine()
    robot = engine.registry.get_robot("robot-002")
    stop = _offset(robot.location, dlat=0.001)
    location_before = robot.location.copy()

    assert engine.create_delivery("robot-999", [stop]) is None
    assert engine.create_delivery("robot-002", []) is None
    assert engine.create_delivery("robot-002", [stop] * 5) is None

    robot.battery = 89.9
    assert engine.create_delivery("robot-002", [stop]) is None
    assert engine.rejection_reason("robot-002", [stop]) == "insufficient_battery"

    assert robot.status == "idle"
    assert isinstance(robot.motion, Idle)
    assert robot.delivery_history == []
    assert robot.location == location_before
    assert events == []


def test_busy_robot_rejects_second_delivery():
    engine, _ = _engine()
    robot = engine.registry.get_robot("robot-003")
    first = engine.create_delivery("robot-003", [_offset(robot.location, dlat=0.001)])
    assert first is not None

    assert engine.rejection_reason("robot-003", [robot.location]) == "robot_not_idle"
    assert engine.create_delivery("robot-003", [_offset(robot.location, dlng=0.001)]) is None
    assert robot.current_delivery is first
    assert len(robot.delivery_history) == 1


def test_empty_journey_is_rejected():
    engine, _ = _engine()
    robot = engine.registry.get_robot("robot-001")
    assert engine.create_delivery_with_journey("robot-001", [_offset(robot.location, dlat=0.001)], []) is None
    assert robot.status == "idle"


def test_segment_tick_count_matches_speed():
    engine, _ = _engine()
    robot = engine.registry.get_robot("robot-004")
    stop = _offset(robot.location, dlat=0.002, dlng=0.001)
    journey = [_leg(robot.location, stop)]
    expected = ceil(journey[0].route.distance_m / (12 / 3.6) / 0.2)

    delivery = engine.create_delivery_with_journey("robot-004", [stop], journey)
    assert delivery is not None
    assert delivery.estimated_completion == FIXED_NOW + timedelta(seconds=journey[0].route.duration_s)

    assert _run_until_idle(engine, robot) == expected
    assert (robot.location.lat, robot.location.lng) == (stop.lat, stop.lng)
    assert delivery.status == "completed"
    assert delivery.stops == []
    assert robot.current_delivery is None


def test_location_is_fixed_while_servicing_a_stop():
    engine, _ = _engine()
    robot = engine.registry.get_robot("robot-005")
    stop_a = _offset(robot.location, dlat=0.001, address="A")
    stop_b = _offset(stop_a, dlng=0.001, address="B")
    journey = [_leg(robot.location, stop_a), _leg(stop_a, stop_b)]
    delivery = engine.create_delivery_with_journey("robot-005", [stop_a, stop_b], journey)

    for _ in range(10_000):
        engine.step()
        if robot.is_servicing_stop:
            break
    assert robot.is_servicing_stop
    assert robot.current_segment_index == 1
    assert delivery.stops == [stop_b]

    parked = robot.location.copy()
    assert (parked.lat, parked.lng) == (stop_a.lat, stop_a.lng)
    assert 3000 <= robot.remaining_service_time_ms <= 5000
    while robot.is_servicing_stop:
        engine.step()
        assert robot.location == parked
    assert robot.status == "delivering"


def test_multi_stop_delivery_pops_stops_in_order():
    engine, events = _engine()
    robot = engine.registry.get_robot("robot-006")
    stops = [_offset(robot.location, dlat=0.001 * i, address=f"S{i}") for i in range(1, 4)]
    journey = [_leg(robot.location, stops[0]), _leg(stops[0], stops[1]), _leg(stops[1], stops[2])]
    delivery = engine.create_delivery_with_journey("robot-006", stops, journey)

    seen = []
    for _ in range(20_000):
        engine.step()
        remaining = [s.address for s in delivery.stops]
        if not seen or seen[-1] != remaining:
            seen.append(remaining)
        if robot.status == "idle":
            break

    assert seen == [["S1", "S2", "S3"], ["S2", "S3"], ["S3"], []]
    assert delivery.status == "completed"
    assert [e.event_type for e in events] == ["delivery.created", "delivery.updated"]


def test_direct_delivery_ends_at_nearest_charging_station():
    engine, _ = _engine()
    robot = engine.registry.get_robot("robot-007")
    stop = _offset(robot.location, dlat=0.001)
    engine.create_delivery("robot-007", [stop])

    journey = robot.active_journey
    station = engine.find_nearest_charging_station(stop)
    assert [s.kind for s in journey] == ["delivery", "charging"]
    assert journey[-1].destination == station

    _run_until_idle(engine, robot)
    assert (robot.location.lat, robot.location.lng) == (station.lat, station.lng)


def test_step_isolates_failing_robot():
    engine, _ = _engine()
    robot = engine.registry.get_robot("robot-001")
    other = engine.registry.get_robot("robot-002")
    engine.create_delivery("robot-001", [_offset(robot.location, dlat=0.001)])
    engine.create_delivery("robot-002", [_offset(other.location, dlat=0.001)])
    robot.motion.path.journey = None

    engine.step()

    assert engine.tick == 1
    assert robot.status == "delivering"
    assert other.segment_progress > 0


def test_snapshot_lists_all_robots():
    engine, _ = _engine()
    engine.step()
    snap = engine.snapshot()
    assert snap["tick"] == 1
    assert snap["sim_time_s"] == 0.2
    assert [r["id"] for r in snap["robots"]] == [f"robot-{i:03d}" for i in range(1, 9)]
