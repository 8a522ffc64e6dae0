from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from evote.interfaces.managers.connection_manager import live_update_manager

router = APIRouter(tags=["Live updates"])


@router.websocket("/ws/updates")
async def live_updates_ws(websocket: WebSocket):
    """
    Pushes a ``data_update`` event whenever a collection is written.
    Missed events are not replayed; clients refresh on reconnect.
    """
    await live_update_manager.connect(websocket)
    try:
        while True:
            # Incoming messages are ignored; receiving keeps the disconnect visible.
            await websocket.receive_text()
    except WebSocketDisconnect:
        live_update_manager.disconnect(websocket)
