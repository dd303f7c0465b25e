"""Liveness of the stores the workflow depends on."""
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from redis import Redis
from sqlalchemy import text
from sqlalchemy.orm import Session

from config import get_settings
from logging_config import get_logger

logger = get_logger(__name__)
settings = get_settings()

BROKER_PING_TIMEOUT_SECONDS = 2


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"status": self.status.value}
        if self.message:
            body["message"] = self.message
        if self.latency_ms is not None:
            body["latency_ms"] = round(self.latency_ms, 2)
        return body


def _probe(name: str, ping: Callable[[], bool], failure_status: HealthStatus) -> ComponentHealth:
    """Time ``ping``; a falsy answer or an exception maps to ``failure_status``."""
    started = time.perf_counter()
    try:
        answered = ping()
    except Exception as e:
        logger.warning("Health probe failed", component=name, error=str(e))
        return ComponentHealth(status=failure_status, message=f"{name} error: {e}")

    latency_ms = (time.perf_counter() - started) * 1000
    if not answered:
        return ComponentHealth(status=failure_status, message=f"{name} did not answer")
    return ComponentHealth(status=HealthStatus.HEALTHY, latency_ms=latency_ms)


class HealthCheckService:
    """
    Checks behind ``GET /health``.

    Every workflow operation needs the database, so a database failure makes
    the service unhealthy. Redis only carries owner notifications and damage
    removal finalisation (the periodic sweep catches up once it is back), so a
    broker outage is reported as degraded.
    """

    def __init__(self, db: Optional[Session] = None, redis_url: Optional[str] = None):
        self.db = db
        self.redis_url = redis_url or settings.redis_url

    def check_database(self) -> ComponentHealth:
        if self.db is None:
            return ComponentHealth(status=HealthStatus.UNHEALTHY, message="No database session")
        return _probe(
            "Database",
            lambda: self.db.execute(text("SELECT 1")).scalar() == 1,
            HealthStatus.UNHEALTHY,
        )

    def check_redis(self) -> ComponentHealth:
        def ping() -> bool:
            client = Redis.from_url(
                self.redis_url,
                socket_connect_timeout=BROKER_PING_TIMEOUT_SECONDS,
                socket_timeout=BROKER_PING_TIMEOUT_SECONDS,
            )
            try:
                return bool(client.ping())
            finally:
                client.close()

        return _probe("Redis", ping, HealthStatus.DEGRADED)

    def check_all(self) -> Dict[str, Any]:
        checks = {
            "database": self.check_database(),
            "redis": self.check_redis(),
        }

        # Worst component wins
        statuses = {check.status for check in checks.values()}
        if HealthStatus.UNHEALTHY in statuses:
            overall = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        logger.info("Health checks completed", overall_status=overall.value)
        return {
            "status": overall.value,
            "timestamp": datetime.utcnow().isoformat(),
            "environment": settings.app_env,
            "checks": {name: check.to_dict() for name, check in checks.items()},
        }
