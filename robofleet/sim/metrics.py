from __future__ import annotations

"""
File: robofleet/sim/metrics.py
Purpose: Compute aggregate fleet metrics from robot state.
Key responsibilities:
- Status breakdown, battery levels, distance, delivery outcome counts.
"""

from typing import Sequence

from robofleet.sim.entities import Robot


def compute_fleet_metrics(robots: Sequence[Robot]) -> dict[str, object]:
    """Compute fleet-level metrics used by the API and periodic logs."""
    breakdown = {"idle": 0, "delivering": 0, "charging": 0, "maintenance": 0, "offline": 0}
    for robot in robots:
        breakdown[robot.status] += 1

    batteries = [r.battery for r in robots]
    avg_battery = sum(batteries) / len(batteries) if batteries else 0.0
    min_battery = min(batteries) if batteries else 0.0

    customer = [d for r in robots for d in r.delivery_history if d.purpose == "customer"]
    completed = sum(1 for d in customer if d.status == "completed")
    failed = sum(1 for d in customer if d.status == "failed")
    active = sum(1 for d in customer if d.status in {"pending", "in_progress"})
    charging_trips = sum(1 for r in robots for d in r.delivery_history if d.purpose == "charging")

    total_distance = sum(r.distance_traveled_m for r in robots)

    return {
        "robots": len(robots),
        "status_breakdown": breakdown,
        "avg_battery": round(avg_battery, 6),
        "min_battery": round(min_battery, 6),
        "total_distance_m": round(total_distance, 3),
        "completed_deliveries": completed,
        "failed_deliveries": failed,
        "active_deliveries": active,
        "charging_trips": charging_trips,
    }
