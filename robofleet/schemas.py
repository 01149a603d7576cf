from __future__ import annotations

"""
File: robofleet/schemas.py
Purpose: Pydantic models for the fleet API request contracts.
Key responsibilities:
- Validate delivery and route request payloads.
- Convert incoming locations to simulation entities.
Key entrypoints:
- DeliveryRequest, RouteRequest
"""

from pydantic import BaseModel, Field

from robofleet.sim.entities import Location


class LocationIn(BaseModel):
    """Geographic point supplied by a client."""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: str = ""

    def to_location(self) -> Location:
        return Location(lat=self.lat, lng=self.lng, address=self.address)


class DeliveryRequest(BaseModel):
    """Request body for POST /deliveries. Stop count is checked by the fleet, not here."""
    robot_id: str
    stops: list[LocationIn]


class RouteRequest(BaseModel):
    """Request body for POST /routes."""
    waypoints: list[LocationIn]
