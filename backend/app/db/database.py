from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import DeclarativeBase

from app.config import Config


# SQLAlchemy Base for ORM models
class Base(DeclarativeBase):
    pass


def get_async_url(url: str, db_type: str) -> str:
    """Convert database URL to async SQLAlchemy format."""
    db_type = db_type.lower()
    if db_type == "postgresql":
        return url.replace("postgresql://", "postgresql+asyncpg://")
    elif db_type == "mysql":
        return url.replace("mysql://", "mysql+aiomysql://")
    elif db_type == "sqlite":
        return url.replace("sqlite://", "sqlite+aiosqlite://")
    return url


class Database:
    """Owns the async engine and session factory for the catalog store."""

    def __init__(self):
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self.db_type = Config.DATABASE_TYPE

    async def connect(self):
        """Create database engine and make sure tables exist."""
        self.engine = create_async_engine(
            get_async_url(Config.DATABASE_URL, self.db_type),
            echo=False
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

        # Register models on Base.metadata before create_all
        import app.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def disconnect(self):
        """Close database engine."""
        if self.engine:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None


db = Database()


async def get_session() -> AsyncIterator[AsyncSession]:
    if not db.session_factory:
        await db.connect()

    async with db.session_factory() as session:
        yield session
