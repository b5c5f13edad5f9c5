"""Draw lookup API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lotto_nextfreq.api.deps import get_db, get_store, http_errors
from lotto_nextfreq.core.snapshot import SnapshotStore
from lotto_nextfreq.schemas.draw import DrawSchema, NumberHistory, SnapshotStats

router = APIRouter()


@router.get("/latest", response_model=DrawSchema)
async def latest_draw(store: SnapshotStore = Depends(get_store)):
    """Most recent draw in the snapshot."""
    draw = store.get_draw(store.latest_round())
    if draw is None:
        raise HTTPException(status_code=404, detail="Snapshot is empty")
    return draw.to_dict()


@router.get("/stats", response_model=SnapshotStats)
async def snapshot_stats(store: SnapshotStore = Depends(get_store)):
    snapshot = store.snapshot
    return SnapshotStats(version=snapshot.version, **snapshot.stats())


@router.get("/numbers/{number}", response_model=NumberHistory)
async def number_history(number: int, store: SnapshotStore = Depends(get_store)):
    """Main/bonus appearance counts of one number."""
    with http_errors():
        return store.snapshot.number_history(number)


@router.get("", response_model=list[DrawSchema])
async def draw_range(
    start: int = Query(..., ge=1),
    end: int = Query(..., ge=1),
    store: SnapshotStore = Depends(get_store),
):
    """Draws in start..end; rounds missing from the snapshot are skipped."""
    if end < start:
        raise HTTPException(status_code=400, detail="end must be >= start")
    return [d.to_dict() for d in store.get_range(start, end)]


@router.get("/{round_no}", response_model=DrawSchema)
async def draw_by_round(round_no: int, store: SnapshotStore = Depends(get_store)):
    draw = store.get_draw(round_no)
    if draw is None:
        raise HTTPException(status_code=404, detail=f"Round {round_no} not found")
    return draw.to_dict()


@router.post("/import")
async def import_draws(
    draws: list[DrawSchema],
    db: AsyncSession = Depends(get_db),
):
    """Store draws in the database. Takes effect after the next rebuild."""
    from lotto_nextfreq.services.snapshot_service import import_draws as do_import

    with http_errors():
        inserted, latest_round = await do_import(db, draws)
    return {"received": len(draws), "inserted": inserted, "latest_stored_round": latest_round}
