from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_size=20,
    pool_pre_ping=True,
    pool_recycle=3600,
    max_overflow=5,
    echo=settings.environment == "development",
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Celery tasks drive the async code through asyncio.run(), one event loop per
# task, so pooled connections must not outlive the loop that opened them.
worker_engine = create_async_engine(settings.database_url, poolclass=NullPool)

worker_session = async_sessionmaker(worker_engine, class_=AsyncSession, expire_on_commit=False)
