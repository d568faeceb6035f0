"""
Health check endpoint.
"""

from fastapi import APIRouter
from sqlalchemy import text

from db.postgres_db import get_db_session
from utils.logger import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health")
async def health_check():
    """Health check endpoint (includes a database round trip)."""
    try:
        with get_db_session() as session:
            session.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        database = "unavailable"
    return {"status": "healthy" if database == "ok" else "degraded", "service": "peekify-api", "database": database}
