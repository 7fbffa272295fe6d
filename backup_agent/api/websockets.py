import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from backup_agent.dependencies import get_status_broadcaster
from backup_agent.observers.status_broadcaster import StatusBroadcaster

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    broadcaster: StatusBroadcaster = Depends(get_status_broadcaster),
):
    await broadcaster.connect(websocket)
    try:
        while True:
            # Clients only listen; incoming text keeps the connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logging.warning(f"WebSocket error: {e}")
    finally:
        broadcaster.disconnect(websocket)
