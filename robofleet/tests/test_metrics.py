from robofleet.routing import straight_line_route
from robofleet.sim.entities import Charging, Delivering, Delivery, Location, PathProgress, Robot, Segment
from robofleet.sim.metrics import compute_fleet_metrics


def _robot(rid, battery=100.0, distance=0.0):
    return Robot(
        id=rid,
        name=rid.upper(),
        color="#22c55e",
        location=Location(lat=30.27, lng=-97.74),
        battery=battery,
        distance_traveled_m=distance,
    )


def test_metrics_counts_statuses_and_outcomes():
    a, b, c = _robot("robot-001", 80.0, 100.0), _robot("robot-002", 30.0, 50.5), _robot("robot-003")
    stop = Location(lat=30.28, lng=-97.74)

    active = Delivery(id="d-active", stops=[stop], robot_id=a.id)
    done = Delivery(id="d-done", stops=[], robot_id=a.id, status="completed")
    a.delivery_history = [done, active]
    segment = Segment(origin=a.location, destination=stop, route=straight_line_route([a.location, stop]))
    a.motion = Delivering(delivery=active, path=PathProgress(journey=[segment]))

    failed = Delivery(id="d-failed", stops=[stop], robot_id=b.id, status="failed")
    trip = Delivery(id="t-1", stops=[stop], robot_id=b.id, purpose="charging")
    b.delivery_history = [failed, trip]
    b.motion = Charging(station=stop, trip=trip)

    data = compute_fleet_metrics([a, b, c])

    assert data["robots"] == 3
    assert data["status_breakdown"] == {"idle": 1, "delivering": 1, "charging": 1, "maintenance": 0, "offline": 0}
    assert data["avg_battery"] == 70.0
    assert data["min_battery"] == 30.0
    assert data["total_distance_m"] == 150.5
    assert data["completed_deliveries"] == 1
    assert data["failed_deliveries"] == 1
    assert data["active_deliveries"] == 1
    assert data["charging_trips"] == 1


def test_metrics_for_empty_fleet():
    data = compute_fleet_metrics([])
    assert data["robots"] == 0
    assert data["avg_battery"] == 0.0
    assert data["completed_deliveries"] == 0
