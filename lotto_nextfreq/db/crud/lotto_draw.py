"""CRUD operations for lotto draws."""

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert

from lotto_nextfreq.db.models.lotto_draw import LottoDraw


async def get_latest(session: AsyncSession) -> LottoDraw | None:
    result = await session.execute(
        select(LottoDraw).order_by(desc(LottoDraw.round)).limit(1)
    )
    return result.scalar_one_or_none()


async def get_all_sorted_by_round(session: AsyncSession) -> list[LottoDraw]:
    result = await session.execute(
        select(LottoDraw).order_by(LottoDraw.round)
    )
    return list(result.scalars().all())


async def upsert(session: AsyncSession, draw: dict) -> bool:
    """Insert or ignore a draw record. Returns True if inserted."""
    stmt = insert(LottoDraw).values(**draw)
    stmt = stmt.on_conflict_do_nothing(index_elements=["round"])
    result = await session.execute(stmt)
    return result.rowcount > 0


async def bulk_upsert(session: AsyncSession, draws: list[dict]) -> int:
    """Bulk insert draws, skip conflicts. Returns number inserted."""
    if not draws:
        return 0
    inserted = 0
    for draw in draws:
        if await upsert(session, draw):
            inserted += 1
    return inserted
