"""
Health check endpoint with database and import queue status
"""

from datetime import datetime
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_container, get_db
from schemas.api import HealthCheckResponse
from services.container import ServiceContainer

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Number of import queue items waiting to be processed
    """
    db_connected = False
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    pending_imports = None
    if db_connected:
        pending_result = await container.import_queue.count_pending()
        if pending_result.success:
            pending_imports = pending_result.value
        else:
            logger.error(f"Failed to count pending imports: {pending_result.error}")

    if not db_connected:
        status = "unhealthy"
    elif pending_imports is None:
        status = "degraded"
    else:
        status = "healthy"

    return HealthCheckResponse(
        status=status,
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        pending_imports=pending_imports,
        feed_provider=container.push_provider.name,
    )
