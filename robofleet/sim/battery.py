from __future__ import annotations

"""
File: robofleet/sim/battery.py
Purpose: Per-tick battery drain/charge and charging dispatch thresholds.
"""

from dataclasses import dataclass
from typing import Literal

from robofleet.settings import Settings
from robofleet.sim.entities import Robot

ChargeDecision = Literal["none", "send_to_charger", "resume_idle"]


def clamp_battery(value: float) -> float:
    return max(0.0, min(100.0, value))


@dataclass(frozen=True)
class BatteryModel:
    """Battery rates per tick and the thresholds that trigger state changes."""
    delivering_drain: float = 0.000001
    idle_drain: float = 0.00000001
    charge_rate: float = 10.0
    delivering_threshold: float = 15.0
    idle_threshold: float = 20.0
    resume_threshold: float = 95.0

    @classmethod
    def from_settings(cls, cfg: Settings) -> BatteryModel:
        return cls(
            delivering_drain=cfg.delivering_drain_per_tick,
            idle_drain=cfg.idle_drain_per_tick,
            charge_rate=cfg.charge_per_tick,
            delivering_threshold=cfg.delivering_charge_threshold,
            idle_threshold=cfg.idle_charge_threshold,
            resume_threshold=cfg.charge_resume_threshold,
        )

    def apply(self, robot: Robot) -> None:
        """Drain or charge the battery for one tick based on robot status."""
        status = robot.status
        if status == "charging":
            robot.battery = clamp_battery(robot.battery + self.charge_rate)
        elif status == "delivering":
            robot.battery = clamp_battery(robot.battery - self.delivering_drain)
        else:
            robot.battery = clamp_battery(robot.battery - self.idle_drain)

    def decide(self, robot: Robot) -> ChargeDecision:
        """Return the charging transition the current battery level calls for."""
        status = robot.status
        if status == "delivering" and robot.battery < self.delivering_threshold:
            return "send_to_charger"
        if status == "idle" and robot.battery < self.idle_threshold:
            return "send_to_charger"
        if status == "charging" and robot.battery >= self.resume_threshold:
            return "resume_idle"
        return "none"
