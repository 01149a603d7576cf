from __future__ import annotations

"""
File: robofleet/sim/geography.py
Purpose: Fixed catalog of delivery targets and charging hubs (central Austin).
Key responsibilities:
- Expose sample delivery locations and charging stations.
- Nearest-station lookup by straight-line degree distance.
"""

from math import hypot
from typing import Sequence

from robofleet.sim.entities import Location

# Rough meters per degree, used for planar distance approximations.
METERS_PER_DEGREE = 111_000.0


SAMPLE_LOCATIONS: tuple[Location, ...] = (
    Location(lat=30.274665, lng=-97.740350, address="Texas Capitol"),
    Location(lat=30.286106, lng=-97.739387, address="UT Tower"),
    Location(lat=30.283307, lng=-97.732549, address="DKR Stadium"),
    Location(lat=30.280302, lng=-97.737112, address="Blanton Museum"),
    Location(lat=30.280410, lng=-97.739300, address="Bullock Museum"),
    Location(lat=30.266940, lng=-97.752529, address="Central Library"),
    Location(lat=30.265003, lng=-97.747349, address="City Hall"),
    Location(lat=30.263436, lng=-97.739321, address="Convention Center"),
    Location(lat=30.266590, lng=-97.772540, address="Zilker Park"),
    Location(lat=30.263987, lng=-97.771255, address="Barton Springs"),
    Location(lat=30.260641, lng=-97.751428, address="Long Center"),
    Location(lat=30.262567, lng=-97.744090, address="Congress Ave Bridge"),
    Location(lat=30.270714, lng=-97.733223, address="Moody Amphitheater"),
    Location(lat=30.271740, lng=-97.753414, address="Whole Foods (Lamar)"),
    Location(lat=30.270098, lng=-97.731070, address="Franklin BBQ"),
    Location(lat=30.268451, lng=-97.754940, address="Seaholm Power Plant"),
    Location(lat=30.265950, lng=-97.747996, address="ACL Live"),
    Location(lat=30.267980, lng=-97.746160, address="Republic Square"),
    Location(lat=30.261780, lng=-97.720910, address="Plaza Saltillo"),
    Location(lat=30.276870, lng=-97.731470, address="Dell Seton Medical Center"),
)

CHARGING_STATIONS: tuple[Location, ...] = (
    Location(lat=30.263900, lng=-97.739900, address="Convention Ctr Garage"),
    Location(lat=30.265080, lng=-97.747460, address="City Hall Garage"),
    Location(lat=30.266870, lng=-97.752300, address="Central Library Garage"),
    Location(lat=30.274540, lng=-97.739560, address="Capitol Visitors Garage"),
    Location(lat=30.280725, lng=-97.739479, address="Bullock Garage"),
    Location(lat=30.287811, lng=-97.734918, address="UT San Jac Garage"),
    Location(lat=30.281520, lng=-97.737330, address="UT Brazos Garage"),
    Location(lat=30.267920, lng=-97.754620, address="Seaholm Garage"),
    Location(lat=30.251870, lng=-97.749790, address="Music Lane Garage"),
    Location(lat=30.261620, lng=-97.722330, address="Plaza Saltillo Garage"),
)


def sample_locations() -> list[Location]:
    """Return copies of the delivery target catalog."""
    return [loc.copy() for loc in SAMPLE_LOCATIONS]


def charging_stations() -> list[Location]:
    """Return copies of the charging hub catalog."""
    return [loc.copy() for loc in CHARGING_STATIONS]


def degree_distance(a: Location, b: Location) -> float:
    """Euclidean distance in raw degrees."""
    return hypot(a.lat - b.lat, a.lng - b.lng)


def planar_distance_m(a_lng: float, a_lat: float, b_lng: float, b_lat: float) -> float:
    """Planar approximation of the distance in meters between two (lng, lat) points."""
    return hypot(b_lng - a_lng, b_lat - a_lat) * METERS_PER_DEGREE


def find_nearest_charging_station(
    location: Location,
    stations: Sequence[Location] = CHARGING_STATIONS,
) -> Location | None:
    """Return the station closest to location; the first one wins on exact ties.

    This is straight-line degree distance, not route distance, so the chosen
    hub can occasionally be a longer drive than another one.
    """
    nearest: Location | None = None
    min_distance = float("inf")
    for station in stations:
        d = degree_distance(station, location)
        if d < min_distance:
            min_distance = d
            nearest = station
    return nearest.copy() if nearest is not None else None
