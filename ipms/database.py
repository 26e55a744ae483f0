"""Database connection and session management."""

from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from ipms.config import settings


def get_engine_url_and_connect_args():
    """Strip sslmode from URL (asyncpg doesn't accept it) and pass SSL via connect_args."""
    url = settings.database_url
    connect_args = {}
    if "sslmode=" in url:
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        sslmode = query.pop("sslmode", ["prefer"])[0]
        url = urlunparse(parsed._replace(query=urlencode(query, doseq=True)))
        if sslmode != "disable":
            connect_args["ssl"] = sslmode
    return url, connect_args


_db_url, _connect_args = get_engine_url_and_connect_args()


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# JSONB on PostgreSQL, generic JSON on SQLite (local runs and tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


engine = create_async_engine(
    _db_url,
    echo=settings.log_level == "DEBUG",
    connect_args=_connect_args,
    poolclass=NullPool if _db_url.startswith("sqlite") else None,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
