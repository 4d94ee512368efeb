"""
WebSocket endpoint streaming a tenant's channel to connected clients.
"""

import asyncio

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from crm.realtime.broadcaster import ConnectionHub, EventBroadcaster, Subscription
from crm.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["realtime"])


def get_event_broadcaster(request: Request) -> EventBroadcaster:
    """Dependency returning the broadcaster owned by the application."""
    return request.app.state.broadcaster


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        message = await subscription.get()
        await websocket.send_json(message.as_frame())


@router.websocket("/ws/companies/{company_id}")
async def company_channel(websocket: WebSocket, company_id: int) -> None:
    """Forward every event of the company channel as a JSON frame.

    Client frames are read and ignored; reading is how a disconnect is noticed.
    """
    hub: ConnectionHub = websocket.app.state.broadcaster
    await websocket.accept()

    async with hub.subscribe(company_id) as subscription:
        forward_task = asyncio.create_task(_forward(websocket, subscription))
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info(
                "Realtime client disconnected",
                extra={"company_id": company_id},
            )
        finally:
            forward_task.cancel()
            try:
                await forward_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                # A send to a closing socket fails before the disconnect is read
                logger.debug(
                    "Realtime send failed",
                    extra={"company_id": company_id, "error": str(e)},
                )
