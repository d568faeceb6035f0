"""
Spotify playback proxy. The frontend never sees the user's Spotify token.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from clients.spotify_client import SpotifyClient
from utils.errors import AppError, BadRequestError
from utils.logger import get_logger
from ..dependencies import get_spotify_access_token
from ..schemas import PlayTrackRequest, QueueTrackRequest

router = APIRouter(prefix="/spotify", tags=["spotify"])
logger = get_logger(__name__)

SEARCH_TYPES = {"track", "artist", "album", "playlist"}


def _client(request: Request) -> SpotifyClient:
    return request.app.state.spotify_client


@router.post("/queue")
async def add_to_queue(
    request: Request,
    body: QueueTrackRequest,
    access_token: str = Depends(get_spotify_access_token),
):
    try:
        await _client(request).add_to_queue(access_token, body.uri)
        return {"success": True}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error adding {body.uri} to queue: {e}")
        raise HTTPException(status_code=500, detail="Failed to add track to queue")


@router.post("/play")
async def play(
    request: Request,
    body: PlayTrackRequest,
    access_token: str = Depends(get_spotify_access_token),
):
    try:
        await _client(request).play(access_token, body.uri, device_id=body.device_id)
        return {"success": True}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error playing {body.uri}: {e}")
        raise HTTPException(status_code=500, detail="Failed to play track")


@router.get("/devices")
async def get_devices(request: Request, access_token: str = Depends(get_spotify_access_token)):
    try:
        return {"success": True, "devices": await _client(request).get_devices(access_token)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting devices: {e}")
        raise HTTPException(status_code=500, detail="Failed to get devices")


@router.get("/currently-playing")
async def get_currently_playing(request: Request, access_token: str = Depends(get_spotify_access_token)):
    try:
        data = await _client(request).get_currently_playing(access_token)
        if not data:
            return {"success": True, "isPlaying": False, "item": None}
        return {
            "success": True,
            "isPlaying": bool(data.get("is_playing")),
            "progressMs": data.get("progress_ms"),
            "item": data.get("item"),
        }
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting currently playing track: {e}")
        raise HTTPException(status_code=500, detail="Failed to get currently playing track")


@router.get("/search")
async def search(
    request: Request,
    q: str = Query(""),
    search_type: str = Query("track", alias="type"),
    limit: int = Query(20),
    access_token: str = Depends(get_spotify_access_token),
):
    try:
        if not q.strip():
            raise BadRequestError("Search query is required")
        if search_type not in SEARCH_TYPES:
            raise BadRequestError(f"type must be one of: {', '.join(sorted(SEARCH_TYPES))}")
        limit = max(1, min(limit, 50))
        results = await _client(request).search(access_token, q.strip(), search_type=search_type, limit=limit)
        return {"success": True, "results": results}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error searching Spotify: {e}")
        raise HTTPException(status_code=500, detail="Failed to search Spotify")
