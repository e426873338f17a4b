import ssl
from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from queue_monitor.config import get_settings
from queue_monitor.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def _fix_asyncpg_url(url: str) -> tuple[str, dict]:
    """
    Fix a PostgreSQL connection URL for asyncpg compatibility.

    libpq style params like sslmode and channel_binding are rejected by
    asyncpg. We strip them and handle SSL via connect_args.

    - sslmode=require (or stricter): SSL with default context
    - anything else, or non-asyncpg drivers: URL unchanged, no SSL
    """
    parsed = urlparse(url)
    if not parsed.scheme.endswith("+asyncpg"):
        return url, {}

    params = parse_qs(parsed.query)
    sslmode = (params.get("sslmode") or [""])[0]

    # Remove unsupported asyncpg params
    unsupported = ["sslmode", "channel_binding", "options"]
    for param in unsupported:
        params.pop(param, None)

    new_query = urlencode(params, doseq=True)
    clean_url = urlunparse(parsed._replace(query=new_query))

    if sslmode in ("require", "verify-ca", "verify-full"):
        return clean_url, {"ssl": ssl.create_default_context()}
    return clean_url, {}


clean_url, connect_args = _fix_asyncpg_url(settings.monitor_url)

_engine_kwargs: dict = {"echo": settings.debug, "connect_args": connect_args}
if not clean_url.startswith("sqlite"):
    _engine_kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10, pool_recycle=280)

engine = create_async_engine(clean_url, **_engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise
