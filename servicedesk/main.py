# servicedesk/main.py
from dotenv import load_dotenv

# Load environment variables from .env BEFORE anything else
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.audit import configure_audit_log
from .core.bootstrap import bootstrap_system
from .core.config import get_settings
from .core.errors import ServiceDeskError
from .core.limiter import limiter
from .core.users import auth_backend_jwt, fastapi_users
from .core.websockets import ConnectionManager, Fanout, LocalBackend, RedisBackend
from .db.engine import Database

# API routers
from .api import health, ws
from .api.admission import main as admission_api
from .api.customers import main as customers_api
from .api.dashboard import main as dashboard_api
from .api.kiosk import main as kiosk_api
from .api.queue import main as queue_api
from .api.services import main as services_api
from .api.settings import main as settings_api
from .api.support_tickets import main as support_tickets_api
from .api.tickets import main as tickets_api
from .api.users import main as users_api

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(levelname)s - [%(name)s] - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_audit_log(settings.audit_log_file)

    database = Database(settings.resolved_database_url, timeout=settings.db_timeout_seconds)
    await bootstrap_system(database, settings)

    connections = ConnectionManager()
    if settings.redis_url:
        backend = RedisBackend(settings.redis_url, connections)
    else:
        backend = LocalBackend(connections)
    await backend.start()

    app.state.database = database
    app.state.connections = connections
    app.state.fanout = Fanout(backend)
    logger.info(f"✅ Service desk ready (fanout: {type(backend).__name__})")
    try:
        yield
    finally:
        await backend.stop()
        await database.dispose()


# ============================================================================
# --- EXCEPTION HANDLERS ---
# ============================================================================
async def service_desk_error_handler(request: Request, exc: ServiceDeskError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Malformed input is a 400 across the API, same as domain validation errors
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": errors, "error": "ValidationError"},
    )


async def store_error_handler(request: Request, exc: OperationalError):
    logger.error(f"❌ Store error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Database unavailable, please retry", "error": "StoreUnavailable"},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(content={"error": f"Rate limit exceeded: {exc.detail}"}, status_code=429)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Service Desk", version="0.3.0", lifespan=lifespan)

    # --- Rate limiting (SlowAPI) ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

    app.add_exception_handler(ServiceDeskError, service_desk_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(OperationalError, store_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # ========================================================================
    # --- SECURITY: CORS / TRUSTED HOSTS / HEADERS ---
    # ========================================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.hosts)

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    # ========================================================================
    # --- ROUTERS ---
    # ========================================================================
    app.include_router(
        fastapi_users.get_auth_router(auth_backend_jwt),
        prefix="/auth/jwt",
        tags=["Auth"],
    )
    app.include_router(health.router, prefix="/api")
    app.include_router(tickets_api.router, prefix="/api", tags=["Queue Tickets"])
    app.include_router(queue_api.router, prefix="/api", tags=["Queue"])
    app.include_router(kiosk_api.router, prefix="/api", tags=["Kiosk"])
    app.include_router(support_tickets_api.router, prefix="/api", tags=["Support Tickets"])
    app.include_router(customers_api.router, prefix="/api", tags=["Customers"])
    app.include_router(services_api.router, prefix="/api", tags=["Services"])
    app.include_router(settings_api.router, prefix="/api/admin", tags=["Settings"])
    app.include_router(users_api.router, prefix="/api", tags=["Users"])
    app.include_router(dashboard_api.router, prefix="/api", tags=["Dashboard"])
    app.include_router(admission_api.router, prefix="/api", tags=["Admission"])
    app.include_router(ws.router)
    return app


app = create_app()
