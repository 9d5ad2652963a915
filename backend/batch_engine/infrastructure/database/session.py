"""SQLAlchemy engine and session factory for the key/value job store."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from batch_engine.config import Settings, get_settings


def _get_async_url(url: str) -> str:
    """Convert a sync SQLAlchemy URL to its async driver equivalent."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return url.replace(prefix, "postgresql+asyncpg://", 1)
    return url


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine; SQL echo follows the sql log category."""
    return create_async_engine(
        _get_async_url(settings.database_url),
        echo=settings.log_level_sql.upper() == "DEBUG",
        future=True,
    )


engine = build_engine(get_settings())

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
