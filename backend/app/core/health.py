"""
Health check aggregation — one report across all subsystems.

Checks:
    • Delivery provider configuration (Twilio vs simulation)
    • Contact store backend (memory / Redis ping)
    • Station catalogue availability

Returns a structured health report suitable for liveness and readiness endpoints.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from backend.app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = default_settings.APP_VERSION
    environment: str = default_settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


async def check_provider(config: Settings) -> ComponentHealth:
    """Is a real delivery provider configured?"""
    comp = ComponentHealth(name="delivery_provider")
    start = time.monotonic()
    provider = config.ALERT_PROVIDER.lower()

    if provider == "relay":
        comp.message = "Alerts relayed to the HTTP service"
        comp.details = {"provider": "relay", "url": config.ALERT_SERVICE_URL}
    elif config.has_twilio_credentials and provider in ("auto", "twilio"):
        comp.message = "Twilio configured"
        comp.details = {"provider": "twilio", "from": config.TWILIO_PHONE[-4:]}
    elif provider == "twilio":
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "ALERT_PROVIDER=twilio but credentials are missing"
    else:
        # Simulation never reaches a real contact
        comp.status = HealthStatus.DEGRADED if config.is_production else HealthStatus.HEALTHY
        comp.message = "Simulated delivery (no messages leave the process)"
        comp.details = {"provider": "simulation"}

    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_contact_store(config: Settings, redis_client: Optional[Any] = None) -> ComponentHealth:
    """Check the contact store backend; pings Redis when configured."""
    comp = ComponentHealth(name="contact_store")
    start = time.monotonic()
    backend = config.CONTACT_STORE_BACKEND.lower()
    comp.details = {"backend": backend}

    if backend == "redis":
        # A client built here is closed here; an injected one belongs to the caller
        owned = redis_client is None
        try:
            if owned:
                import redis.asyncio as aioredis
                redis_client = aioredis.from_url(config.REDIS_URL)
            await redis_client.ping()
            comp.message = "Redis reachable"
        except Exception as e:
            comp.status = HealthStatus.UNHEALTHY
            comp.message = f"Redis unreachable: {e}"
        finally:
            if owned and redis_client is not None:
                await redis_client.aclose()
        comp.details["url"] = config.REDIS_URL.split("@")[-1]
    else:
        comp.message = "In-memory store"

    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_stations(config: Settings) -> ComponentHealth:
    """Station catalogue loads and is non-empty."""
    from backend.app.spatial.stations import load_stations

    comp = ComponentHealth(name="stations")
    start = time.monotonic()
    try:
        stations = load_stations(config.STATIONS_FILE)
        comp.details = {"count": len(stations)}
        if stations:
            comp.message = f"{len(stations)} stations loaded"
        else:
            comp.status = HealthStatus.DEGRADED
            comp.message = "Station catalogue is empty"
    except (OSError, ValueError) as e:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def run_health_check(config: Optional[Settings] = None) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    config = config or default_settings
    report = HealthReport(
        version=config.APP_VERSION,
        environment=config.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    for coro in (
        check_provider(config),
        check_contact_store(config),
        check_stations(config),
    ):
        report.components.append(await coro)

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
