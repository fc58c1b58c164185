from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..core.config import settings
from .models import Base


engine = create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, future=True)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def make_session_factory(url: str, echo: bool = False) -> async_sessionmaker:
    """Session factory bound to a separate engine, e.g. a test database."""
    return async_sessionmaker(create_async_engine(url, echo=echo, future=True), expire_on_commit=False, class_=AsyncSession)


async def init_models(bind: Optional[AsyncEngine] = None) -> None:
    """Create the run tables if they do not exist."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
