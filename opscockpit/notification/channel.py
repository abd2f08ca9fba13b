from abc import ABC
from abc import abstractmethod

import structlog
from fastapi import WebSocket
from pydantic import BaseModel
from starlette.websockets import WebSocketDisconnect
from starlette.websockets import WebSocketState

from opscockpit.notification.events import Envelope
from opscockpit.notification.events import EventName

logger = structlog.stdlib.get_logger(__name__)


class NotificationChannel(ABC):
    """
    Best-effort delivery of job events to the client that started the job.

    emit() never raises: if the client is gone, the event is dropped. The database is
    the record, this is just the live view.
    """

    @abstractmethod
    async def emit(self, event: EventName, payload: BaseModel) -> None: ...


class WebSocketNotificationChannel(NotificationChannel):
    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._disconnected = False
        self.dropped = 0

    @property
    def connected(self) -> bool:
        return (
            not self._disconnected
            and self._websocket.application_state == WebSocketState.CONNECTED
            and self._websocket.client_state == WebSocketState.CONNECTED
        )

    def mark_disconnected(self) -> None:
        self._disconnected = True

    async def emit(self, event: EventName, payload: BaseModel) -> None:
        if not self.connected:
            self.dropped += 1
            logger.debug(f"client gone, dropping {event} event")
            return
        try:
            await self._websocket.send_json(
                Envelope(event=event, data=payload.model_dump()).model_dump()
            )
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            # RuntimeError is what starlette raises when sending after close
            self._disconnected = True
            self.dropped += 1
            logger.info(f"client went away while sending {event} event: {e}")
