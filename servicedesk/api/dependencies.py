# servicedesk/api/dependencies.py
"""Shared dependencies for the service desk API endpoints."""

from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import get_settings
from ..db.engine import get_session
from ..services.queue_service import QueueService
from ..services.ticket_service import SupportTicketService


def get_timeout() -> float:
    return get_settings().db_timeout_seconds


async def get_queue_service(request: Request, session: AsyncSession = Depends(get_session)) -> QueueService:
    """Dependency injector for QueueService, wired to the app's fanout."""
    return QueueService(session, request.app.state.fanout, get_timeout())


def get_support_ticket_service(session: AsyncSession = Depends(get_session)) -> SupportTicketService:
    return SupportTicketService(session, get_timeout())
