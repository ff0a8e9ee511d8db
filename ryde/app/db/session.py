"""
Engine and session plumbing for the account store.

One async engine per process, built from `settings.database_url`
(asyncpg in production). A `sqlite+aiosqlite` URL is accepted for local
runs; SQLite gets no connection-pool sizing.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from ryde.app.core.config import settings


def engine_options(database_url: str) -> dict:
    """Keyword arguments for `create_async_engine` suited to the backend."""
    options = {"echo": settings.db_echo}
    if make_url(database_url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

# Objects stay readable after commit; services return them to the HTTP layer
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """Yield one session per request; closed when the request finishes."""
    async with AsyncSessionLocal() as session:
        yield session
