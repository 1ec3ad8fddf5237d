# servicedesk/core/bootstrap.py
import logging

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..db.engine import Database
from ..models.user import User
from .config import Settings
from .constants import UserRole
from .users import password_helper

logger = logging.getLogger(__name__)


async def bootstrap_system(database: Database, settings: Settings) -> None:
    """
    Idempotent bootstrapping:
    1. Creates the tables.
    2. Creates the first Supervisor from ADMIN_* variables when no user exists.
    """
    try:
        logger.info("🛠️ [Bootstrap] Initializing database schema...")
        await database.create_all()

        async with database.session() as session:
            existing_user = (await session.exec(select(User))).first()
            if existing_user:
                logger.info("✅ [Bootstrap] System already initialized (users found). Skipping supervisor creation.")
                return

            logger.info("🌱 [Bootstrap] No users found. Checking environment variables for auto-create...")
            if settings.admin_email and settings.admin_password:
                await start_auto_creation(
                    session, settings.admin_email, settings.admin_username, settings.admin_password
                )
            else:
                logger.warning("⚠️ [Bootstrap] ADMIN_EMAIL or ADMIN_PASSWORD not set. Waiting for manual setup.")
    except Exception as e:
        logger.critical(f"❌ [Bootstrap] Fatal error during initialization: {e}")
        raise


async def start_auto_creation(session: AsyncSession, email: str, username: str, password: str) -> User:
    """Creates the first Supervisor silently."""
    new_user = User(
        email=email,
        username=username,
        hashed_password=password_helper.hash(password),
        role=UserRole.SUPERVISOR.value,
        is_active=True,
        is_superuser=True,
        is_verified=True,
    )
    session.add(new_user)
    try:
        await session.commit()
    except Exception as e:
        logger.error(f"❌ [Bootstrap] Failed to create supervisor: {e}")
        await session.rollback()
        raise
    logger.info(f"🚀 [Bootstrap] Successfully created first Supervisor: {username}")
    return new_user
