"""
Listening history endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from services.history_service import HistoryService
from utils.errors import AppError
from utils.logger import get_logger
from ..dependencies import get_current_user, get_history_service

router = APIRouter(prefix="/history", tags=["history"])
logger = get_logger(__name__)


@router.get("/today")
async def get_todays_replay(
    user_id: str = Depends(get_current_user),
    history_service: HistoryService = Depends(get_history_service),
):
    """Most played track of today (user's timezone); replay is null when nothing was played."""
    try:
        return {"success": True, "replay": history_service.get_todays_replay(user_id)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting today's replay for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get today's replay")


@router.get("/stats")
async def get_stats(
    days: int = Query(30),
    user_id: str = Depends(get_current_user),
    history_service: HistoryService = Depends(get_history_service),
):
    try:
        return {"success": True, "stats": history_service.get_stats(user_id, days=days)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting stats for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get stats")


@router.post("/sync")
async def sync_history(
    user_id: str = Depends(get_current_user),
    history_service: HistoryService = Depends(get_history_service),
):
    try:
        result = await history_service.sync_history(user_id)
        return {"success": True, **result}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error syncing history for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to sync history")


@router.get("")
async def get_history(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: int = Query(50),
    offset: int = Query(0),
    user_id: str = Depends(get_current_user),
    history_service: HistoryService = Depends(get_history_service),
):
    try:
        result = history_service.get_history(
            user_id, start_date=start_date, end_date=end_date, limit=limit, offset=offset
        )
        return {"success": True, **result}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting history for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get history")
