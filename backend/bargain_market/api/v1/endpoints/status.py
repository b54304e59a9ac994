"""
Status and health check endpoints.

WHAT: Health monitoring for the database and notification delivery
WHY: Quick diagnostics for ops and load balancers
HOW: FastAPI endpoints calling the DB ping
"""

from fastapi import APIRouter

from ....core.database import ping_database
from ....core.config import settings
from ....models.api_schemas import HealthResponse
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Overall application health check.

    Returns:
        JSON with overall health status
    """
    db_status = ping_database()
    db_available = db_status["available"]
    if not db_available:
        logger.warning(f"Health check: database unavailable ({db_status['error']})")

    return {
        "status": "healthy" if db_available else "degraded",
        "version": settings.APP_VERSION,
        "app_name": settings.APP_NAME,
        "components": {
            "database": {
                "available": db_available
            },
            "notifications": {
                "webhook_enabled": bool(settings.NOTIFICATION_WEBHOOK_URL)
            }
        }
    }
