"""
Web Push subscription endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from utils.logger import get_logger
from ..dependencies import get_current_user
from ..schemas import PushSubscribeRequest, PushUnsubscribeRequest

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = get_logger(__name__)


@router.get("/vapid-public-key")
async def get_vapid_public_key(request: Request):
    """Public key the browser needs for PushManager.subscribe()."""
    return {"success": True, "publicKey": request.app.state.config.vapid_public_key}


@router.post("/subscribe", status_code=201)
async def subscribe(
    request: Request,
    body: PushSubscribeRequest,
    user_id: str = Depends(get_current_user),
):
    try:
        request.app.state.push_subscriptions_repo.upsert_subscription(
            user_id, body.endpoint, body.keys.p256dh, body.keys.auth
        )
        logger.info(f"Push subscription saved for user {user_id}")
        return {"success": True, "message": "Subscribed to notifications"}
    except Exception as e:
        logger.exception(f"Error saving push subscription for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to subscribe")


@router.post("/unsubscribe")
async def unsubscribe(
    request: Request,
    body: Optional[PushUnsubscribeRequest] = Body(None),
    user_id: str = Depends(get_current_user),
):
    """Remove one endpoint, or every subscription of the user when no endpoint is given."""
    try:
        endpoint = body.endpoint if body else None
        removed = request.app.state.push_subscriptions_repo.delete_subscription(user_id, endpoint)
        logger.info(f"Removed {removed} push subscription(s) for user {user_id}")
        return {"success": True, "removed": removed}
    except Exception as e:
        logger.exception(f"Error removing push subscription for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to unsubscribe")
