# servicedesk/api/health.py
from fastapi import APIRouter, Request
from sqlalchemy import text

router = APIRouter()


@router.get("/health", tags=["System"])
async def get_system_health(request: Request):
    """
    Returns the system health status:
    - database reachability
    - fanout backend in use
    """
    database = request.app.state.database
    async with database.engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    return {
        "status": "ok",
        "database": "ok",
        "fanout": type(request.app.state.fanout.backend).__name__,
    }
