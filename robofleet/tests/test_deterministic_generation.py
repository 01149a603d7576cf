import random

import pytest

from robofleet.sim.world import FleetRegistry, generate_fleet


def test_fleet_generation_deterministic():
    robots_a, hash_a = generate_fleet(random.Random(42), 8)
    robots_b, hash_b = generate_fleet(random.Random(42), 8)

    assert hash_a == hash_b
    assert [(r.id, r.name, r.color, r.location) for r in robots_a] == [
        (r.id, r.name, r.color, r.location) for r in robots_b
    ]


def test_fleet_generation_changes_with_seed():
    _, hash_a = generate_fleet(random.Random(42), 8)
    _, hash_b = generate_fleet(random.Random(43), 8)
    assert hash_a != hash_b


def test_fleet_seed_state():
    robots, _ = generate_fleet(random.Random(7), 8)

    assert [r.id for r in robots] == [f"robot-{i:03d}" for i in range(1, 9)]
    assert all(r.status == "idle" for r in robots)
    assert all(r.battery == 100.0 for r in robots)
    assert all(r.delivery_history == [] for r in robots)
    assert len({(r.location.lat, r.location.lng) for r in robots}) == 8


def test_fleet_generation_rejects_bad_counts():
    with pytest.raises(ValueError):
        generate_fleet(random.Random(1), 0)
    with pytest.raises(ValueError):
        generate_fleet(random.Random(1), 21)
    with pytest.raises(ValueError):
        generate_fleet(random.Random(1), 3, names=["only-one"])


def test_registry_reset_reseeds_fleet():
    registry = FleetRegistry(robot_count=8, rng=random.Random(3))
    robot = registry.get_robot("robot-001")
    robot.battery = 12.0
    robot.delivery_history.append(object())

    robots = registry.reset()

    assert len(robots) == 8
    assert all(r.battery == 100.0 and r.status == "idle" and r.delivery_history == [] for r in robots)
    assert len({(r.location.lat, r.location.lng) for r in robots}) == 8
    assert registry.get_robot("robot-001") is not robot
    assert registry.get_robot("robot-999") is None
