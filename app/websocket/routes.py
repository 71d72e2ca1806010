# =============================================================================
# app/websocket/routes.py - WebSocket Routes
# =============================================================================
# WebSocket endpoint for real-time updates of the signed-in user.
#
# Connect: ws://host/ws/updates?token={jwt}
#
# Events:
#   - {"type": "job_status_changed", "job_id": "...", "status": "published"}
#   - {"type": "notification_created", "notification": {...}}
#   - {"type": "research_job_updated", "job_id": "...", "status": "completed"}
# =============================================================================

import logging
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, Query

from app.auth.dependencies import decode_access_token
from app.websocket.manager import websocket_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/updates")
async def updates_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="JWT token for authentication")
):
    """
    WebSocket endpoint for the user's real-time events.

    Authentication is required via the `token` query parameter; the
    connection only ever receives events for the token's user.

    Connection URL:
        ws://localhost:8000/ws/updates?token={jwt}

    Example event:
        {
            "type": "job_status_changed",
            "job_id": "550e8400-...",
            "status": "failed",
            "error": "Instagram not connected. Connect your account in Integrations."
        }
    """
    # 1. Verify JWT token
    try:
        user = decode_access_token(token)
    except HTTPException as e:
        logger.warning(f"WebSocket auth failed: {e.detail}")
        await websocket.close(code=4001, reason="Invalid token")
        return

    user_id = str(user.id)

    # 2. Accept connection and add to manager
    await websocket_manager.connect(user_id, websocket)

    try:
        await websocket.send_json({
            "type": "connected",
            "user_id": user_id,
            "message": "Connected to live updates"
        })

        # Keep connection alive and handle incoming messages
        while True:
            try:
                data = await websocket.receive_text()

                # Handle ping/pong for keepalive
                if data == "ping":
                    await websocket.send_text("pong")
                else:
                    logger.debug(f"WebSocket received: {data[:100]}")

            except WebSocketDisconnect:
                raise
            except Exception as e:
                logger.warning(f"WebSocket receive error: {e}")
                break

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected for user {user_id}")
    finally:
        websocket_manager.disconnect(user_id, websocket)


@router.get("/ws/status")
async def websocket_status():
    """
    Get WebSocket connection statistics.

    Returns:
        dict: Connection counts and connected users
    """
    active_users = websocket_manager.get_active_users()
    return {
        "total_connections": websocket_manager.get_connection_count(),
        "active_users": len(active_users),
    }
