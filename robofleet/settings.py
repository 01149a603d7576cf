"""
File: robofleet/settings.py
Purpose: Environment-backed configuration for the fleet simulator.
Key responsibilities:
- Parse tick cadence, fleet size and robot motion parameters.
- Parse battery drain/charge rates and dispatch thresholds.
- Parse route provider, MySQL and API settings.
"""

from dataclasses import dataclass
import os


def _int_env(name: str, default: int = 0) -> int:
    """Parse an integer env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return int(raw)


def _float_env(name: str, default: float = 0.0) -> float:
    """Parse a float env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return float(raw)


def _optional_int_env(name: str) -> int | None:
    """Parse an optional integer env var; empty means unset."""
    raw = os.getenv(name, "")
    if raw == "":
        return None
    return int(raw)


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Simulation configuration parsed from environment."""
    tick_interval_ms: int = _int_env("SIM_TICK_INTERVAL_MS", 200)
    fleet_size: int = _int_env("FLEET_ROBOTS", 8)
    fleet_seed: int | None = _optional_int_env("FLEET_SEED")
    autostart: bool = _bool_env("SIM_AUTOSTART", True)
    delivery_speed_kmh: float = _float_env("DELIVERY_SPEED_KMH", 12.0)
    charging_speed_kmh: float = _float_env("CHARGING_SPEED_KMH", 5.0)
    min_delivery_battery: float = _float_env("MIN_DELIVERY_BATTERY", 90.0)
    max_stops: int = _int_env("MAX_STOPS", 4)
    delivering_drain_per_tick: float = _float_env("DELIVERING_DRAIN_PER_TICK", 0.000001)
    idle_drain_per_tick: float = _float_env("IDLE_DRAIN_PER_TICK", 0.00000001)
    charge_per_tick: float = _float_env("CHARGE_PER_TICK", 10.0)
    delivering_charge_threshold: float = _float_env("DELIVERING_CHARGE_THRESHOLD", 15.0)
    idle_charge_threshold: float = _float_env("IDLE_CHARGE_THRESHOLD", 20.0)
    charge_resume_threshold: float = _float_env("CHARGE_RESUME_THRESHOLD", 95.0)
    service_time_min_ms: int = _int_env("SERVICE_TIME_MIN_MS", 3000)
    service_time_max_ms: int = _int_env("SERVICE_TIME_MAX_MS", 5000)
    route_provider_url: str = os.getenv("ROUTE_PROVIDER_URL", "https://router.project-osrm.org")
    route_profile: str = os.getenv("ROUTE_PROFILE", "driving")
    route_timeout_s: float = _float_env("ROUTE_TIMEOUT_S", 10.0)
    fallback_seconds_per_meter: float = _float_env("FALLBACK_SECONDS_PER_METER", 0.3)
    history_cap: int = _int_env("HISTORY_CAP", 100)
    snapshot_every_ticks: int = _int_env("SNAPSHOT_EVERY_TICKS", 5)
    mysql_host: str = os.getenv("MYSQL_HOST", "")
    mysql_port: int = _int_env("MYSQL_PORT", 3306)
    mysql_user: str = os.getenv("MYSQL_USER", "robofleet")
    mysql_password: str = os.getenv("MYSQL_PASSWORD", "robofleet")
    mysql_db: str = os.getenv("MYSQL_DB", "robofleet")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = _int_env("API_PORT", 8000)

    @property
    def persistence_enabled(self) -> bool:
        return self.mysql_host != ""


settings = Settings()


def mysql_params(cfg: Settings = settings) -> dict[str, object]:
    return {
        "host": cfg.mysql_host,
        "port": cfg.mysql_port,
        "user": cfg.mysql_user,
        "password": cfg.mysql_password,
        "database": cfg.mysql_db,
    }
