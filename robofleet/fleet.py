from __future__ import annotations

"""
File: robofleet/fleet.py
Purpose: Owned handle over one running fleet simulation.
Key responsibilities:
- Wire registry, engine, journey planner, persistence and the tick scheduler.
- Serialize ticks and delivery creation on a single fleet lock.
- Forward delivery events and periodic robot snapshots to persistence.
- Restore persisted robots on first start and clear them on reset.
Key entrypoints:
- FleetContext.from_settings()
- FleetContext.start() / stop() / reset()
- FleetContext.request_delivery() / submit_delivery()
"""

import asyncio
import logging
import random
from typing import Any, Sequence

from robofleet.persistence import MemoryBackend, MySQLBackend, PersistenceGateway, PersistenceWriter, SnapshotBackend
from robofleet.routing import OsrmRouteClient, RouteProvider, StraightLineRouteProvider
from robofleet.scheduler import TickScheduler
from robofleet.settings import Settings, mysql_params, settings
from robofleet.sim.battery import BatteryModel
from robofleet.sim.engine import DeliveryEvent, SimulationEngine
from robofleet.sim.entities import Delivery, Journey, Location, Robot
from robofleet.sim.geography import charging_stations, sample_locations
from robofleet.sim.journey import JourneyAssemblyError, JourneyPlanner
from robofleet.sim.metrics import compute_fleet_metrics
from robofleet.sim.serialize import delivery_to_dict, robot_from_dict, robot_to_dict
from robofleet.sim.world import FleetRegistry

logger = logging.getLogger("robofleet.fleet")


def build_route_provider(cfg: Settings) -> RouteProvider:
    """OSRM when a provider URL is configured, otherwise offline straight lines."""
    if cfg.route_provider_url:
        return OsrmRouteClient(cfg.route_provider_url, profile=cfg.route_profile, timeout_s=cfg.route_timeout_s)
    return StraightLineRouteProvider(cfg.fallback_seconds_per_meter)


def build_backend(cfg: Settings) -> SnapshotBackend:
    if cfg.persistence_enabled:
        return MySQLBackend(mysql_params(cfg))
    logger.info("MYSQL_HOST not set, using in-memory persistence")
    return MemoryBackend()


class FleetContext:
    """One fleet simulation and everything it talks to."""
    def __init__(
        self,
        registry: FleetRegistry,
        engine: SimulationEngine,
        planner: JourneyPlanner,
        gateway: PersistenceGateway,
        writer: PersistenceWriter | None = None,
        snapshot_every_ticks: int = 5,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.planner = planner
        self.gateway = gateway
        self.writer = writer or PersistenceWriter()
        self.snapshot_every_ticks = snapshot_every_ticks
        self.engine.delivery_sink = self._on_delivery_event
        self.scheduler = TickScheduler(self.tick_once, engine.tick_interval_ms / 1000.0)
        self._lock = asyncio.Lock()
        self._admission: dict[str, asyncio.Lock] = {}
        self._restored = False
        self._generation = 0

    @classmethod
    def from_settings(
        cls,
        cfg: Settings = settings,
        backend: SnapshotBackend | None = None,
        provider: RouteProvider | None = None,
        rng: random.Random | None = None,
    ) -> "FleetContext":
        """Build a context from configuration; backend/provider/rng override the defaults."""
        rng = rng or random.Random(cfg.fleet_seed)
        registry = FleetRegistry(robot_count=cfg.fleet_size, rng=rng)
        stations = charging_stations()
        engine = SimulationEngine(
            registry,
            tick_interval_ms=cfg.tick_interval_ms,
            battery=BatteryModel.from_settings(cfg),
            delivery_speed_kmh=cfg.delivery_speed_kmh,
            charging_speed_kmh=cfg.charging_speed_kmh,
            min_delivery_battery=cfg.min_delivery_battery,
            max_stops=cfg.max_stops,
            service_time_ms=(cfg.service_time_min_ms, cfg.service_time_max_ms),
            seconds_per_meter=cfg.fallback_seconds_per_meter,
            stations=stations,
            rng=rng,
        )
        planner = JourneyPlanner(
            provider or build_route_provider(cfg),
            stations=stations,
            seconds_per_meter=cfg.fallback_seconds_per_meter,
        )
        gateway = PersistenceGateway(backend or build_backend(cfg), history_cap=cfg.history_cap)
        logger.info(
            "fleet context created robots=%s seed=%s fleet_hash=%s",
            len(registry),
            cfg.fleet_seed,
            registry.fleet_hash,
        )
        return cls(registry, engine, planner, gateway, snapshot_every_ticks=cfg.snapshot_every_ticks)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    async def start(self) -> bool:
        """Restore persisted robots once, then start ticking. False if already running."""
        if self.scheduler.running:
            return False
        if not self._restored:
            await self._restore()
            self._restored = True
        self.scheduler.start()
        self.writer.submit(self.gateway.save_simulation_state, self._simulation_state())
        logger.info("simulation started robots=%s tick=%s", len(self.registry), self.engine.tick)
        return True

    async def stop(self) -> bool:
        """Stop ticking; no tick runs after this returns."""
        stopped = await self.scheduler.stop()
        if stopped:
            self.writer.submit(self.gateway.save_robots, self._robot_payload())
            self.writer.submit(self.gateway.save_simulation_state, self._simulation_state())
            logger.info("simulation stopped tick=%s", self.engine.tick)
        return stopped

    async def reset(self) -> None:
        """Stop, re-seed the fleet and clear persisted data. Does not restart."""
        await self.scheduler.stop()
        async with self._lock:
            self.registry.reset()
            self.engine.tick = 0
            self._admission.clear()
            self._generation += 1
        await self.writer.flush()
        await asyncio.to_thread(self.gateway.clear_all)
        self._restored = True
        logger.info("simulation reset robots=%s fleet_hash=%s", len(self.registry), self.registry.fleet_hash)

    async def aclose(self) -> None:
        """Stop ticking and drain pending writes."""
        await self.stop()
        await self.writer.close()

    async def tick_once(self) -> bool:
        """Run one engine step; skipped (False) while another tick or mutation holds the lock."""
        if self._lock.locked():
            logger.debug("tick skipped, fleet busy tick=%s", self.engine.tick)
            return False
        async with self._lock:
            self.engine.step()
            tick = self.engine.tick
        if self.snapshot_every_ticks > 0 and tick % self.snapshot_every_ticks == 0:
            self.writer.submit(self.gateway.save_robots, self._robot_payload())
        return True

    async def request_delivery(self, robot_id: str, stops: Sequence[Location]) -> Delivery | None:
        """Route a delivery through the provider, falling back to a direct assignment."""
        delivery, _ = await self.submit_delivery(robot_id, stops)
        return delivery

    async def submit_delivery(
        self,
        robot_id: str,
        stops: Sequence[Location],
    ) -> tuple[Delivery | None, str | None]:
        """Like request_delivery, but also returns the rejection reason.

        Planning happens outside the fleet lock. A journey planned before a reset,
        or from a location the robot has since left, is discarded.
        """
        admission = self._admission.setdefault(robot_id, asyncio.Lock())
        async with admission:
            reason = self.engine.rejection_reason(robot_id, stops)
            if reason is not None:
                logger.info("delivery request rejected robot_id=%s reason=%s", robot_id, reason)
                return None, reason
            generation = self._generation
            origin = self.registry.get_robot(robot_id).location.copy()
            journey: Journey | None
            try:
                journey = await self.planner.plan(origin, stops)
            except JourneyAssemblyError as exc:
                logger.warning("journey assembly failed robot_id=%s err=%s, assigning directly", robot_id, exc)
                journey = None
            async with self._lock:
                reason = self._stale_reason(robot_id, generation, origin)
                if reason is None:
                    reason = self.engine.rejection_reason(robot_id, stops)
                if reason is not None:
                    logger.info("delivery request rejected robot_id=%s reason=%s", robot_id, reason)
                    return None, reason
                if journey is None:
                    delivery = self.engine.create_delivery(robot_id, stops)
                else:
                    delivery = self.engine.create_delivery_with_journey(robot_id, stops, journey)
            if delivery is None:
                return None, "rejected"
            return delivery, None

    def _stale_reason(self, robot_id: str, generation: int, origin: Location) -> str | None:
        if generation != self._generation:
            return "fleet_reset"
        robot = self.registry.get_robot(robot_id)
        if robot is None:
            return "unknown_robot"
        if (robot.location.lat, robot.location.lng) != (origin.lat, origin.lng):
            return "robot_moved"
        return None

    async def create_delivery(self, robot_id: str, stops: Sequence[Location]) -> Delivery | None:
        async with self._lock:
            return self.engine.create_delivery(robot_id, stops)

    async def create_delivery_with_journey(
        self,
        robot_id: str,
        stops: Sequence[Location],
        journey: Journey,
    ) -> Delivery | None:
        async with self._lock:
            return self.engine.create_delivery_with_journey(robot_id, stops, journey)

    def list_robots(self) -> list[Robot]:
        return self.registry.list_robots()

    def get_robot(self, robot_id: str) -> Robot | None:
        return self.registry.get_robot(robot_id)

    def find_nearest_charging_station(self, location: Location) -> Location | None:
        return self.engine.find_nearest_charging_station(location)

    def sample_locations(self) -> list[Location]:
        return sample_locations()

    def charging_stations(self) -> list[Location]:
        return [station.copy() for station in self.engine.stations]

    async def delivery_history(self) -> list[dict[str, Any]]:
        """Persisted customer deliveries, after pending writes have landed."""
        await self.writer.flush()
        return await asyncio.to_thread(self.gateway.load_delivery_history)

    def metrics(self) -> dict[str, object]:
        data = compute_fleet_metrics(self.registry.list_robots())
        data["tick"] = self.engine.tick
        data["running"] = self.running
        return data

    async def _restore(self) -> None:
        payload = await asyncio.to_thread(self.gateway.load_robots)
        if not payload:
            logger.info("no persisted robots, keeping seeded fleet robots=%s", len(self.registry))
            return
        try:
            robots = [robot_from_dict(item) for item in payload]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.exception("persisted robots unreadable, keeping seeded fleet err=%s", exc)
            return
        state = await asyncio.to_thread(self.gateway.load_simulation_state)
        async with self._lock:
            self.registry.replace(robots)
            self._generation += 1
            if state is not None:
                self.engine.tick = int(state.get("tick", 0))
        logger.info("restored robots from persistence count=%s tick=%s", len(robots), self.engine.tick)

    def _robot_payload(self) -> list[dict[str, Any]]:
        return [robot_to_dict(robot) for robot in self.registry.list_robots()]

    def _simulation_state(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "tick": self.engine.tick,
            "tick_interval_ms": self.engine.tick_interval_ms,
            "fleet_hash": self.registry.fleet_hash,
        }

    def _on_delivery_event(self, event: DeliveryEvent) -> None:
        # Encode now so a later tick cannot change what gets written.
        payload = delivery_to_dict(event.delivery)
        if event.event_type == "delivery.created":
            self.writer.submit(self.gateway.add_delivery, payload)
        else:
            self.writer.submit(self.gateway.update_delivery, payload["id"], payload["status"])
