"""Snapshot service: loads draws from the database into the in-memory store."""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lotto_nextfreq.core.snapshot import Draw, Snapshot, SnapshotStore
from lotto_nextfreq.db.crud import lotto_draw as crud
from lotto_nextfreq.db.models.lotto_draw import LottoDraw
from lotto_nextfreq.errors import InvalidArgument
from lotto_nextfreq.schemas.draw import DrawSchema


def row_to_record(row: LottoDraw) -> dict:
    return {
        "round": row.round,
        "numbers": row.numbers,
        "bonus": row.bonus_num,
        "draw_date": row.draw_date,
    }


def schema_to_row(draw: DrawSchema) -> dict:
    """Validate a draw the way the snapshot would, then flatten it into a row."""
    if draw.bonus is None:
        raise InvalidArgument(f"round {draw.round} has no bonus number", field="bonus")
    Draw(round=draw.round, numbers=tuple(draw.numbers), bonus=draw.bonus)
    nums = list(draw.numbers)
    return {
        "round": draw.round,
        "draw_date": draw.draw_date,
        "num_1": nums[0],
        "num_2": nums[1],
        "num_3": nums[2],
        "num_4": nums[3],
        "num_5": nums[4],
        "num_6": nums[5],
        "bonus_num": draw.bonus,
    }


async def load_draw_records(session: AsyncSession) -> list[dict]:
    """All stored draws as snapshot records, ordered by round."""
    rows = await crud.get_all_sorted_by_round(session)
    return [row_to_record(r) for r in rows]


async def rebuild_snapshot(
    store: SnapshotStore, session_factory: async_sessionmaker
) -> Snapshot:
    """Reload every draw and swap it into the store."""
    async with session_factory() as session:
        records = await load_draw_records(session)
    logger.info("Loaded {} draw records from database", len(records))
    return store.rebuild(records)


async def import_draws(session: AsyncSession, draws: list[DrawSchema]) -> tuple[int, int]:
    """Persist draws, skipping rounds that already exist.

    Returns the number inserted and the latest stored round.
    """
    rows = [schema_to_row(d) for d in draws]
    inserted = await crud.bulk_upsert(session, rows)
    latest = await crud.get_latest(session)
    logger.info("Imported {} of {} draws", inserted, len(rows))
    return inserted, latest.round if latest else 0
