"""
Health check utilities for monitoring service dependencies.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import func, select, text

from ..database import get_db_session
from ..models.base import utcnow
from ..models.booking import Booking, BookingStatus

logger = logging.getLogger(__name__)


class HealthCheckResult:
    """Result of a health check."""

    def __init__(self, service: str, healthy: bool, response_time: float, details: Optional[Dict[str, Any]] = None):
        self.service = service
        self.healthy = healthy
        self.response_time = response_time
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "healthy" if self.healthy else "unhealthy",
            "response_time_ms": round(self.response_time * 1000, 2),
            **self.details,
        }


async def check_database_health() -> HealthCheckResult:
    """Check database connectivity and the backlog of overdue holds."""
    start_time = time.time()

    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
            # Pending bookings past their deadline mean the expiry workers are behind
            overdue = await session.scalar(
                select(func.count(Booking.id)).where(
                    Booking.status == BookingStatus.PENDING,
                    Booking.expires_at < utcnow(),
                )
            )
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return HealthCheckResult(
            service="database",
            healthy=False,
            response_time=time.time() - start_time,
            details={"error": str(e), "error_type": type(e).__name__},
        )

    return HealthCheckResult(
        service="database",
        healthy=True,
        response_time=time.time() - start_time,
        details={"overdue_holds": overdue or 0},
    )


async def check_celery_health() -> HealthCheckResult:
    """Check Celery worker connectivity."""
    start_time = time.time()

    try:
        from ..tasks.celery_app import celery_app

        # inspect() blocks on the broker round trip
        stats = await asyncio.to_thread(lambda: celery_app.control.inspect(timeout=1.0).stats())
    except Exception as e:
        logger.error(f"Celery health check failed: {e}")
        return HealthCheckResult(
            service="celery",
            healthy=False,
            response_time=time.time() - start_time,
            details={"error": str(e), "error_type": type(e).__name__},
        )

    if not stats:
        return HealthCheckResult(
            service="celery",
            healthy=False,
            response_time=time.time() - start_time,
            details={"error": "No active Celery workers found"},
        )

    return HealthCheckResult(
        service="celery",
        healthy=True,
        response_time=time.time() - start_time,
        details={"active_workers": len(stats)},
    )


async def get_health_status() -> Dict[str, Any]:
    """Aggregate dependency checks into one report."""
    results = await asyncio.gather(check_database_health(), check_celery_health())
    healthy = all(result.healthy for result in results)

    return {
        "status": "healthy" if healthy else "degraded",
        "service": "movietime-booking",
        "version": "1.0.0",
        "timestamp": utcnow().isoformat(),
        "dependencies": {result.service: result.to_dict() for result in results},
    }
