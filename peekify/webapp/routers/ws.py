"""
Realtime WebSocket endpoint.

Connect with /ws?token=<session_token>. After connecting, clients may send
{"action": "subscribe" | "unsubscribe", "room": "feed:<feed_item_id>"}.
"""

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from utils.logger import get_logger

router = APIRouter(tags=["realtime"])
logger = get_logger(__name__)

# Rooms a client may join or leave on its own; "user:<id>" rooms are assigned at connect time
CLIENT_ROOM_PREFIXES = ("feed:",)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = Query("")):
    session = websocket.app.state.auth_session_repo.get_session(token) if token else None
    if not session:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.connection_manager
    await manager.connect(websocket, session.user_id)
    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action") if isinstance(message, dict) else None
            room = message.get("room") if isinstance(message, dict) else None
            if not isinstance(room, str) or not room.startswith(CLIENT_ROOM_PREFIXES):
                await websocket.send_json({"event": "error", "data": {"message": "Unknown room"}})
                continue
            if action == "subscribe":
                manager.join(websocket, room)
                await websocket.send_json({"event": "subscribed", "data": {"room": room}})
            elif action == "unsubscribe":
                manager.leave(websocket, room)
                await websocket.send_json({"event": "unsubscribed", "data": {"room": room}})
            else:
                await websocket.send_json({"event": "error", "data": {"message": "Unknown action"}})
    except WebSocketDisconnect:
        pass
    except ValueError as e:
        # receive_json got something that is not JSON
        logger.warning(f"Closing WebSocket for user {session.user_id} after invalid message: {e}")
    finally:
        manager.disconnect(websocket)
