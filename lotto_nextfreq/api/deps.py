"""Dependency injection for FastAPI."""

from collections.abc import AsyncGenerator, Iterator
from contextlib import contextmanager

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from lotto_nextfreq.core.filter_engine import BucketCache
from lotto_nextfreq.core.snapshot import SnapshotStore
from lotto_nextfreq.db.engine import async_session_factory
from lotto_nextfreq.errors import InvalidArgument, NotFound


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for request scope."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_store(request: Request) -> SnapshotStore:
    return request.app.state.store


def get_bucket_cache(request: Request) -> BucketCache:
    return request.app.state.bucket_cache


@contextmanager
def http_errors() -> Iterator[None]:
    """Map analysis errors onto HTTP status codes."""
    try:
        yield
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
