# servicedesk/api/ws.py
"""
WebSocket endpoints for live queue updates.

Clients only listen; anything they send is ignored. A client that connects
late should re-fetch current state over REST.
"""
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..core.users import user_from_token
from ..core.websockets import Channel, ServiceChannel, TicketChannel
from ..models.service import Service
from ..models.ticket import QueueTicket

logger = logging.getLogger(__name__)

router = APIRouter()


async def _listen(websocket: WebSocket, channel: Channel) -> None:
    manager = websocket.app.state.connections
    await manager.connect(websocket, channel)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket, channel)


@router.websocket("/ws/services/{service_id}")
async def ws_service_queue(websocket: WebSocket, service_id: int, token: Optional[str] = None):
    """Staff dashboard feed for one service. Requires ?token=<JWT>."""
    async with websocket.app.state.database.session() as session:
        user = await user_from_token(session, token)
        service = await session.get(Service, service_id)

    if user is None:
        logger.warning(f"⚠️ [WebSocket] Rejected service:{service_id}: missing or invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if service is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await _listen(websocket, ServiceChannel(service_id))


@router.websocket("/ws/tickets/{ticket_id}")
async def ws_ticket(websocket: WebSocket, ticket_id: int):
    """Anonymous kiosk feed for a single ticket."""
    async with websocket.app.state.database.session() as session:
        ticket = await session.get(QueueTicket, ticket_id)

    if ticket is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await _listen(websocket, TicketChannel(ticket_id))
