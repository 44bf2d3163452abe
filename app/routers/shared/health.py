from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.session import get_sync_session
from app.utils.logging import get_logger
from app.utils.responses import ResponseBuilder

health_router = APIRouter()
logger = get_logger()


@health_router.get("/")
async def health_check(request: Request, db: Session = Depends(get_sync_session)):
    """
    Liveness and database check.

    Answers 503 when the database cannot be reached.
    """
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {str(e)}")
        database = "unavailable"

    healthy = database == "ok"
    return ResponseBuilder.success(
        request=request,
        data={
            "status": "healthy" if healthy else "degraded",
            "service": settings.NAME,
            "version": settings.VERSION,
            "database": database,
        },
        message="Service is running" if healthy else "Database is unavailable",
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
