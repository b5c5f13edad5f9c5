"""Next-round frequency analysis API endpoints."""

import json

from fastapi import APIRouter, Depends, HTTPException, Query

from lotto_nextfreq.api.deps import get_bucket_cache, get_store, http_errors
from lotto_nextfreq.core.filter_engine import BucketCache
from lotto_nextfreq.core.snapshot import SnapshotStore
from lotto_nextfreq.schemas.analysis import (
    AggregateResponse,
    AnalysisResponse,
    IntervalResponse,
    KMatchResponse,
    NextFreqRequest,
    NextFreqResponse,
    RoundPatternResponse,
)
from lotto_nextfreq.schemas.draw import RebuildResponse
from lotto_nextfreq.services import analysis_service

router = APIRouter()


@router.get("/analysis", response_model=AnalysisResponse)
async def round_analysis(
    round: int = Query(..., ge=1),
    bonus_included: bool = Query(False, alias="bonusIncluded"),
    recent: int | None = Query(None, ge=1, description="recent window size"),
    store: SnapshotStore = Depends(get_store),
):
    """All classification schemes, k-match and per-number stats for one round."""
    with http_errors():
        return analysis_service.get_round_analysis(store, round, bonus_included, recent)


@router.get("/aggregate", response_model=AggregateResponse)
async def scheme_aggregate(
    round: int = Query(..., ge=1),
    scheme: str = Query(...),
    bonus_included: bool = Query(False, alias="bonusIncluded"),
    store: SnapshotStore = Depends(get_store),
):
    """Next-round frequency for one classification scheme."""
    with http_errors():
        return analysis_service.get_aggregate(store, round, scheme, bonus_included)


@router.get("/k-match", response_model=KMatchResponse)
async def k_match(
    round: int = Query(..., ge=1),
    bonus_included: bool = Query(False, alias="bonusIncluded"),
    store: SnapshotStore = Depends(get_store),
):
    """Next-round frequency bucketed by overlap with the target round."""
    with http_errors():
        return analysis_service.get_k_match(store, round, bonus_included)


@router.get("/next-freq", response_model=NextFreqResponse)
async def next_freq_query(
    start_round: int | None = Query(None, alias="startRound"),
    end_round: int | None = Query(None, alias="endRound"),
    include_bonus: bool = Query(False, alias="includeBonus"),
    range_unit: int | None = Query(None, alias="rangeUnit"),
    conditions: str | None = Query(None, description="JSON condition object"),
    include_matched_rounds: bool = Query(False, alias="includeMatchedRounds"),
    include_matched_rounds_detail: bool = Query(False, alias="includeMatchedRoundsDetail"),
    store: SnapshotStore = Depends(get_store),
    bucket_cache: BucketCache = Depends(get_bucket_cache),
):
    """Condition-filtered next-round frequency (query-string form)."""
    parsed = {}
    if conditions:
        try:
            parsed = json.loads(conditions)
        except json.JSONDecodeError as e:
            raise HTTPException(status_code=400, detail=f"conditions is not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise HTTPException(status_code=400, detail="conditions must be a JSON object")

    request = NextFreqRequest(
        start_round=start_round,
        end_round=end_round,
        include_bonus=include_bonus,
        range_unit=range_unit,
        conditions=parsed,
        include_matched_rounds=include_matched_rounds,
        include_matched_rounds_detail=include_matched_rounds_detail,
    )
    with http_errors():
        return analysis_service.get_next_freq(store, bucket_cache, request)


@router.post("/next-freq", response_model=NextFreqResponse)
async def next_freq(
    request: NextFreqRequest,
    store: SnapshotStore = Depends(get_store),
    bucket_cache: BucketCache = Depends(get_bucket_cache),
):
    """Condition-filtered next-round frequency."""
    with http_errors():
        return analysis_service.get_next_freq(store, bucket_cache, request)


@router.get("/round-pattern", response_model=RoundPatternResponse)
async def round_pattern(
    round: int | None = Query(None, ge=1, description="defaults to the latest round"),
    min_similarity: float | None = Query(None, ge=0, le=1, alias="minSimilarity"),
    top_n: int | None = Query(None, ge=1, alias="topN"),
    method: str = Query("hybrid", description="bucket, exact or hybrid"),
    bonus_included: bool = Query(False, alias="bonusIncluded"),
    store: SnapshotStore = Depends(get_store),
):
    """Past rounds with a similar gap pattern, and the rounds that followed them."""
    with http_errors():
        return analysis_service.get_round_pattern(
            store, round, min_similarity, top_n, method, bonus_included
        )


@router.get("/interval", response_model=IntervalResponse)
async def interval(
    start: int | None = Query(None, ge=1),
    end: int | None = Query(None, ge=1),
    pattern_len: int | None = Query(None, ge=1, alias="patternLen"),
    min_sample: int | None = Query(None, ge=1, alias="minSample"),
    bonus_included: bool = Query(False, alias="bonusIncluded"),
    store: SnapshotStore = Depends(get_store),
):
    """Per-number appearance intervals and what followed each interval pattern."""
    with http_errors():
        return analysis_service.get_interval_analysis(
            store, start, end, pattern_len, min_sample, bonus_included
        )


@router.post("/rebuild", response_model=RebuildResponse)
async def rebuild(store: SnapshotStore = Depends(get_store)):
    """Reload every draw from the database and swap the snapshot."""
    from lotto_nextfreq.db.engine import async_session_factory
    from lotto_nextfreq.services.snapshot_service import rebuild_snapshot

    with http_errors():
        snapshot = await rebuild_snapshot(store, async_session_factory)
    return RebuildResponse(
        version=snapshot.version,
        total_rounds=len(snapshot),
        latest_round=snapshot.latest_round,
        message="Snapshot rebuilt",
    )


@router.get("/scheduler")
async def scheduler_status():
    """Snapshot rebuild schedule."""
    from lotto_nextfreq.scheduler import get_scheduler_status

    return {"scheduler_jobs": get_scheduler_status()}
