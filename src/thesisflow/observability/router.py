"""Observability endpoints: Prometheus scrape target and health probe."""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_storage
from ..domain.documents.ports.object_storage_port import ObjectStoragePort
from ..domain.thesis.errors import StorageError
from .health import (
    ComponentHealth,
    HealthStatus,
    check_database_health,
    check_storage_health,
    get_overall_health,
)

router = APIRouter(tags=["Observability"])


def optional_storage() -> Optional[ObjectStoragePort]:
    """Storage adapter, or None when it cannot be configured.

    The health probe reports a misconfigured store instead of failing.
    """
    try:
        return get_storage()
    except StorageError:
        return None


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def _component_body(component: ComponentHealth) -> dict:
    return {
        "status": component.status.value,
        "message": component.message,
        "latency_ms": component.latency_ms,
    }


@router.get("/health", summary="Health check endpoint")
async def health_check(
    db: Session = Depends(get_db),
    storage: Optional[ObjectStoragePort] = Depends(optional_storage),
) -> JSONResponse:
    """200 while the database answers (even with storage down), 503 otherwise."""
    components = {
        "database": check_database_health(db),
        "object_storage": await check_storage_health(storage),
    }
    overall = get_overall_health(components)

    return JSONResponse(
        status_code=503 if overall == HealthStatus.UNHEALTHY else 200,
        content={
            "status": overall.value,
            "components": {name: _component_body(c) for name, c in components.items()},
        },
    )
