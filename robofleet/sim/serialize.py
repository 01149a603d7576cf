from __future__ import annotations

"""
File: robofleet/sim/serialize.py
Purpose: JSON-friendly encoding of fleet entities for persistence and the API.
Key responsibilities:
- Encode robots (including motion state and journeys) and deliveries.
- Decode persisted snapshots back into entities, keeping delivery identity
  between a robot's history and its active motion.
"""

from datetime import datetime
from typing import Any

from robofleet.sim.entities import (
    Charging,
    Delivering,
    Delivery,
    Idle,
    Location,
    MotionState,
    PathProgress,
    Robot,
    Route,
    Segment,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value))


def location_to_dict(loc: Location) -> dict[str, Any]:
    return {"lat": loc.lat, "lng": loc.lng, "address": loc.address}


def location_from_dict(data: dict[str, Any]) -> Location:
    return Location(lat=float(data["lat"]), lng=float(data["lng"]), address=str(data.get("address", "")))


def route_to_dict(route: Route) -> dict[str, Any]:
    return {
        "coordinates": [[lng, lat] for lng, lat in route.coordinates],
        "distance_m": route.distance_m,
        "duration_s": route.duration_s,
    }


def route_from_dict(data: dict[str, Any]) -> Route:
    return Route(
        coordinates=[(float(p[0]), float(p[1])) for p in data.get("coordinates", [])],
        distance_m=float(data.get("distance_m", 0.0)),
        duration_s=float(data.get("duration_s", 0.0)),
    )


def segment_to_dict(segment: Segment) -> dict[str, Any]:
    return {
        "from": location_to_dict(segment.origin),
        "to": location_to_dict(segment.destination),
        "route": route_to_dict(segment.route),
        "kind": segment.kind,
    }


def segment_from_dict(data: dict[str, Any]) -> Segment:
    return Segment(
        origin=location_from_dict(data["from"]),
        destination=location_from_dict(data["to"]),
        route=route_from_dict(data["route"]),
        kind=data.get("kind", "delivery"),
    )


def delivery_to_dict(delivery: Delivery) -> dict[str, Any]:
    return {
        "id": delivery.id,
        "stops": [location_to_dict(s) for s in delivery.stops],
        "status": delivery.status,
        "created_at": _iso(delivery.created_at),
        "estimated_completion": _iso(delivery.estimated_completion),
        "robot_id": delivery.robot_id,
        "purpose": delivery.purpose,
    }


def delivery_from_dict(data: dict[str, Any]) -> Delivery:
    return Delivery(
        id=str(data["id"]),
        stops=[location_from_dict(s) for s in data.get("stops", [])],
        robot_id=str(data.get("robot_id", "")),
        status=data.get("status", "in_progress"),
        created_at=_parse_dt(data.get("created_at")) or datetime.fromtimestamp(0).astimezone(),
        estimated_completion=_parse_dt(data.get("estimated_completion")),
        purpose=data.get("purpose", "customer"),
    )


def _path_to_dict(path: PathProgress | None) -> dict[str, Any] | None:
    if path is None:
        return None
    return {
        "journey": [segment_to_dict(s) for s in path.journey],
        "segment_index": path.segment_index,
        "progress": path.progress,
        "segment_ticks": path.segment_ticks,
        "servicing": path.servicing,
        "service_remaining_ms": path.service_remaining_ms,
    }


def _path_from_dict(data: dict[str, Any] | None) -> PathProgress | None:
    if not data:
        return None
    return PathProgress(
        journey=[segment_from_dict(s) for s in data.get("journey", [])],
        segment_index=int(data.get("segment_index", 0)),
        progress=float(data.get("progress", 0.0)),
        segment_ticks=int(data.get("segment_ticks", 0)),
        servicing=bool(data.get("servicing", False)),
        service_remaining_ms=float(data.get("service_remaining_ms", 0.0)),
    )


def motion_to_dict(motion: MotionState) -> dict[str, Any]:
    if isinstance(motion, Delivering):
        return {"kind": "delivering", "delivery_id": motion.delivery.id, "path": _path_to_dict(motion.path)}
    if isinstance(motion, Charging):
        return {
            "kind": "charging",
            "station": location_to_dict(motion.station),
            "trip_id": motion.trip.id,
            "path": _path_to_dict(motion.path),
        }
    return {"kind": "idle"}


def robot_to_dict(robot: Robot) -> dict[str, Any]:
    """Full robot payload; the flat path fields mirror the motion state for clients."""
    current = robot.current_delivery
    return {
        "id": robot.id,
        "name": robot.name,
        "color": robot.color,
        "status": robot.status,
        "battery": round(robot.battery, 6),
        "location": location_to_dict(robot.location),
        "speed": robot.speed,
        "last_update": _iso(robot.last_update),
        "distance_traveled_m": round(robot.distance_traveled_m, 3),
        "current_delivery": delivery_to_dict(current) if current is not None else None,
        "current_segment_index": robot.current_segment_index,
        "segment_progress": robot.segment_progress,
        "is_servicing_stop": robot.is_servicing_stop,
        "remaining_service_time_ms": robot.remaining_service_time_ms,
        "delivery_history": [delivery_to_dict(d) for d in robot.delivery_history],
        "motion": motion_to_dict(robot.motion),
    }


def robot_from_dict(data: dict[str, Any]) -> Robot:
    """Rebuild a robot; active deliveries are resolved against its history by id.

    Raises ValueError (or KeyError/TypeError/AttributeError) on malformed payloads.
    """
    if not isinstance(data, dict):
        raise ValueError(f"robot payload must be an object, got {type(data).__name__}")
    history = [delivery_from_dict(d) for d in data.get("delivery_history", [])]
    by_id = {d.id: d for d in history}

    def resolve(delivery_id: Any) -> Delivery:
        found = by_id.get(str(delivery_id))
        if found is not None:
            return found
        current = data.get("current_delivery")
        if current is None:
            raise ValueError(f"robot {data.get('id')} references unknown delivery {delivery_id}")
        return delivery_from_dict(current)

    raw_motion = data.get("motion") or {"kind": "idle"}
    if not isinstance(raw_motion, dict):
        raise ValueError(f"robot {data.get('id')} has malformed motion state")
    kind = raw_motion.get("kind", "idle")
    motion: MotionState
    if kind == "delivering":
        path = _path_from_dict(raw_motion.get("path"))
        if path is None:
            raise ValueError(f"robot {data.get('id')} is delivering without a path")
        motion = Delivering(delivery=resolve(raw_motion.get("delivery_id")), path=path)
    elif kind == "charging":
        motion = Charging(
            station=location_from_dict(raw_motion["station"]),
            trip=resolve(raw_motion.get("trip_id")),
            path=_path_from_dict(raw_motion.get("path")),
        )
    else:
        motion = Idle()

    return Robot(
        id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        color=str(data.get("color", "#22c55e")),
        location=location_from_dict(data["location"]),
        battery=max(0.0, min(100.0, float(data.get("battery", 100.0)))),
        speed=float(data.get("speed", 0.0)),
        last_update=_parse_dt(data.get("last_update")) or datetime.fromtimestamp(0).astimezone(),
        distance_traveled_m=float(data.get("distance_traveled_m", 0.0)),
        delivery_history=history,
        motion=motion,
    )
