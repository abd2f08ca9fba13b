import structlog
from fastapi import APIRouter
from fastapi import Depends
from fastapi import WebSocket
from fastapi import WebSocketDisconnect
from pydantic import ValidationError

from opscockpit.notification import events
from opscockpit.notification.channel import WebSocketNotificationChannel
from opscockpit.web.app_context import AppContext
from opscockpit.web.app_context import get_app_context
from opscockpit.web.json_models import JsonClientMessage

logger = structlog.stdlib.get_logger(__name__)

router = APIRouter()

_INVALID_MESSAGE = (
    'Invalid message, expected {"event": "execute-command", "data": "<command key>"}'
)


@router.websocket("/api/ws")
async def command_socket(
    websocket: WebSocket,
    context: AppContext = Depends(get_app_context),
) -> None:
    await websocket.accept()
    channel = WebSocketNotificationChannel(websocket)
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "?"
    bound_logger = logger.bind(client=client)
    bound_logger.info("client connected")

    try:
        while True:
            received = await websocket.receive()
            if received["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(received.get("code", 1000))
            raw = received.get("text")
            if raw is None:
                bound_logger.warning("binary message from client, ignoring it")
                await channel.emit(*events.error(_INVALID_MESSAGE))
                continue
            try:
                message = JsonClientMessage.model_validate_json(raw)
            except ValidationError:
                bound_logger.warning(f"invalid message from client: {raw!r}")
                await channel.emit(*events.error(_INVALID_MESSAGE))
                continue
            context.start_job_task(
                context.lifecycle.execute_command(message.data, channel)
            )
    except WebSocketDisconnect:
        bound_logger.info("client disconnected, running jobs continue")
    finally:
        channel.mark_disconnected()
