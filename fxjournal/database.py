"""Database engine, session factory and declarative base for the journal tables."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from fxjournal.config import settings

engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)

async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all journal models."""

    pass


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create every mapped table. Production schemas are managed by Alembic."""
    import fxjournal.models  # noqa: F401  registers the mappers on Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
