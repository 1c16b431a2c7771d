from typing import AsyncGenerator
import logging
from models import Base
from config.settings import settings
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
import pymysql
pymysql.install_as_MySQLdb()

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _engine_options(url: str) -> dict:
    """Connection pool options. SQLite manages its own pool and rejects these."""
    if _is_sqlite(url):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


# =============================================================================
# Sync Engine (startup table creation)
# =============================================================================

engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# =============================================================================
# Async Engine
# =============================================================================

# Note: Can't use simple replace() because 'aiomysql://' contains 'mysql://' as substring
def _convert_to_async_url(url: str) -> str:
    """Convert a sync URL to its async driver: pymysql -> aiomysql, sqlite -> aiosqlite."""
    if url.startswith('mysql+pymysql://'):
        return 'mysql+aiomysql://' + url[len('mysql+pymysql://'):]
    elif url.startswith('mysql://'):
        return 'mysql+aiomysql://' + url[len('mysql://'):]
    elif url.startswith('sqlite:///') or url == 'sqlite://':
        return 'sqlite+aiosqlite://' + url[len('sqlite://'):]
    else:
        return url


ASYNC_DATABASE_URL = _convert_to_async_url(settings.DATABASE_URL)

async_engine = create_async_engine(
    ASYNC_DATABASE_URL,
    echo=False,
    **_engine_options(ASYNC_DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an ASYNC database session.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_async_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# =============================================================================
# Database Initialization
# =============================================================================

def init_db():
    """Initialize database tables (sync version for startup)."""
    logger.info("Initializing database...")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise e

