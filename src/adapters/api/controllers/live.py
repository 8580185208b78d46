from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from src.adapters.api.dependencies import get_broadcaster
from src.app.services.broadcaster import Broadcaster
from src.domain.exceptions import InvalidInput, TrackingError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


def _handle_frame(
    broadcaster: Broadcaster, connection_id: str, frame: Any
) -> dict[str, Any]:
    if not isinstance(frame, dict):
        raise InvalidInput("Frame must be a JSON object")

    action = frame.get("action")
    if action == "subscribe":
        topic = broadcaster.subscribe(connection_id, str(frame.get("topic") or ""))
        return {"type": "subscribed", "topic": str(topic)}
    if action == "unsubscribe":
        topic = broadcaster.unsubscribe(connection_id, str(frame.get("topic") or ""))
        return {"type": "unsubscribed", "topic": str(topic)}
    if action == "location":
        report = {k: v for k, v in frame.items() if k != "action"}
        event = broadcaster.on_location_update(report)
        return {
            "type": "location_accepted",
            "vehicle_id": event.vehicle_id,
            "timestamp": event.timestamp.isoformat(),
        }
    raise InvalidInput(f"Unknown action: {action!r}")


@router.websocket("/live")
async def live(
    websocket: WebSocket,
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> None:
    """Live channel: subscribe to topics, and (for drivers) push locations.

    Frames in: {"action": "subscribe"|"unsubscribe", "topic": "route:12"}
               {"action": "location", "vehicle_id": ..., "latitude": ..., ...}
    """

    await websocket.accept()
    connection_id = uuid4().hex
    conn = broadcaster.connect(connection_id)
    writer = asyncio.create_task(conn.run_writer(websocket.send_json))

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                conn.offer(
                    {
                        "type": "error",
                        "error": InvalidInput.kind,
                        "detail": "Invalid JSON",
                    }
                )
                continue
            try:
                conn.offer(_handle_frame(broadcaster, connection_id, frame))
            except TrackingError as exc:
                conn.offer({"type": "error", "error": exc.kind, "detail": str(exc)})
    except WebSocketDisconnect:
        logger.info("Live connection %s disconnected", connection_id)
    finally:
        broadcaster.disconnect(connection_id)
        writer.cancel()
        await asyncio.gather(writer, return_exceptions=True)
