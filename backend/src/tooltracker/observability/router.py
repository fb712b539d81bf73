"""Health endpoint."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..tracker.dependencies import get_db
from .health import HealthStatus, check_database_health

router = APIRouter(tags=["Observability"])


@router.get("/health", summary="Health check endpoint")
def health_check(db: Session = Depends(get_db)):
    """Check database connectivity.

    Returns 200 when the store answers, 503 otherwise.
    """
    database = check_database_health(db)
    status_code = (
        status.HTTP_200_OK
        if database.status == HealthStatus.HEALTHY
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "status": database.status.value,
            "components": {
                "database": {
                    "status": database.status.value,
                    "message": database.message,
                    "latency_ms": database.latency_ms,
                },
            },
        },
    )
