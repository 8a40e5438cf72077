"""Health checks for the workflow's backing services.

The database is required: without it no thesis can be read or changed.
Object storage only backs document upload and download, so losing it
degrades the service instead of taking it down.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.documents.ports.object_storage_port import ObjectStoragePort
from ..domain.thesis.errors import StorageError
from .logging_config import get_logger

logger = get_logger(__name__)

# Never written; a HEAD on it proves the bucket answers
STORAGE_PROBE_KEY = "health/probe"

REQUIRED_COMPONENTS = frozenset({"database"})


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def check_database_health(db: Session) -> ComponentHealth:
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return ComponentHealth(HealthStatus.UNHEALTHY, f"Database error: {e}")
    return ComponentHealth(HealthStatus.HEALTHY, "Database connection OK", _elapsed_ms(started))


async def check_storage_health(storage: Optional[ObjectStoragePort]) -> ComponentHealth:
    """Probe document storage with a HEAD request on a fixed key."""
    if storage is None:
        return ComponentHealth(HealthStatus.UNHEALTHY, "Document storage is not configured")

    started = time.perf_counter()
    try:
        await storage.file_exists(STORAGE_PROBE_KEY)
    except StorageError as e:
        logger.warning(f"Document storage health check failed: {e.message}")
        return ComponentHealth(HealthStatus.UNHEALTHY, e.message)
    return ComponentHealth(HealthStatus.HEALTHY, "Document storage reachable", _elapsed_ms(started))


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """UNHEALTHY if a required component is down, DEGRADED if any other is."""
    down = {name for name, c in components.items() if c.status != HealthStatus.HEALTHY}
    if down & REQUIRED_COMPONENTS:
        return HealthStatus.UNHEALTHY
    if down:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
