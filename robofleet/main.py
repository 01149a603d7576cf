from __future__ import annotations

"""
File: robofleet/main.py
Purpose: FastAPI entrypoint for the delivery robot fleet simulation.
Key responsibilities:
- Expose robot, delivery, catalog, routing and simulation control endpoints.
- Start the simulation on startup (when autostart is on) and drain writes on shutdown.
Key entrypoints:
- create_app()
- run()
Config/env vars:
- API_HOST, API_PORT, SIM_AUTOSTART
- see robofleet/settings.py for simulation, routing and MySQL settings
"""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Query
import uvicorn

from robofleet.fleet import FleetContext
from robofleet.routing import RouteProviderError, straight_line_route
from robofleet.schemas import DeliveryRequest, RouteRequest
from robofleet.settings import settings
from robofleet.sim.entities import Location
from robofleet.sim.serialize import delivery_to_dict, location_to_dict, robot_to_dict, route_to_dict

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s robofleet %(message)s")
logger = logging.getLogger("robofleet.api")


def create_app(context: FleetContext | None = None, autostart: bool | None = None) -> FastAPI:
    """Build the API around a fleet context (a new one from settings when omitted)."""
    fleet = context or FleetContext.from_settings(settings)
    start_on_boot = settings.autostart if autostart is None else autostart

    app = FastAPI(title="robofleet", version="1.0.0")
    app.state.fleet = fleet

    @app.on_event("startup")
    async def startup_event() -> None:
        """Start ticking when autostart is enabled."""
        if start_on_boot:
            await fleet.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """Stop ticking and flush pending persistence writes."""
        await fleet.aclose()

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "running": fleet.running, "tick": fleet.engine.tick}

    @app.get("/robots")
    async def list_robots() -> list[dict[str, Any]]:
        return [robot_to_dict(robot) for robot in fleet.list_robots()]

    @app.get("/robots/{robot_id}")
    async def get_robot(robot_id: str) -> dict[str, Any]:
        robot = fleet.get_robot(robot_id)
        if robot is None:
            raise HTTPException(status_code=404, detail=f"robot {robot_id} not found")
        return robot_to_dict(robot)

    @app.post("/deliveries", status_code=201)
    async def create_delivery(req: DeliveryRequest) -> dict[str, Any]:
        """Assign a delivery to an idle, charged robot."""
        if fleet.get_robot(req.robot_id) is None:
            raise HTTPException(status_code=404, detail=f"robot {req.robot_id} not found")
        stops = [stop.to_location() for stop in req.stops]
        delivery, reason = await fleet.submit_delivery(req.robot_id, stops)
        if delivery is None:
            raise HTTPException(status_code=400, detail=reason or "rejected")
        return delivery_to_dict(delivery)

    @app.get("/deliveries/history")
    async def delivery_history() -> list[dict[str, Any]]:
        return await fleet.delivery_history()

    @app.get("/locations")
    async def locations() -> list[dict[str, Any]]:
        return [location_to_dict(loc) for loc in fleet.sample_locations()]

    @app.get("/charging-stations")
    async def stations() -> list[dict[str, Any]]:
        return [location_to_dict(loc) for loc in fleet.charging_stations()]

    @app.get("/charging-stations/nearest")
    async def nearest_station(
        lat: float = Query(ge=-90, le=90),
        lng: float = Query(ge=-180, le=180),
    ) -> dict[str, Any]:
        station = fleet.find_nearest_charging_station(Location(lat=lat, lng=lng))
        if station is None:
            raise HTTPException(status_code=404, detail="no charging stations configured")
        return location_to_dict(station)

    @app.post("/routes")
    async def compute_route(req: RouteRequest) -> dict[str, Any]:
        """Route through the waypoints; straight lines when the provider fails."""
        if len(req.waypoints) < 2:
            raise HTTPException(status_code=400, detail="at least 2 waypoints are required")
        waypoints = [point.to_location() for point in req.waypoints]
        fallback = False
        try:
            route = await fleet.planner.provider.compute_route(waypoints)
        except RouteProviderError as exc:
            logger.warning("route fallback waypoints=%s err=%s", len(waypoints), exc)
            route = straight_line_route(waypoints, fleet.planner.seconds_per_meter)
            fallback = True
        return {"route": route_to_dict(route), "fallback": fallback}

    @app.post("/simulation/start")
    async def start_simulation() -> dict[str, Any]:
        started = await fleet.start()
        return {"running": fleet.running, "changed": started}

    @app.post("/simulation/stop")
    async def stop_simulation() -> dict[str, Any]:
        stopped = await fleet.stop()
        return {"running": fleet.running, "changed": stopped}

    @app.post("/simulation/reset")
    async def reset_simulation() -> dict[str, Any]:
        await fleet.reset()
        return {"running": fleet.running, "robots": len(fleet.list_robots())}

    @app.get("/fleet/metrics")
    async def fleet_metrics() -> dict[str, Any]:
        return fleet.metrics()

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
