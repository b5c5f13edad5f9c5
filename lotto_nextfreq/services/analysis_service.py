"""Analysis service: pins one snapshot per request and runs the core."""

from lotto_nextfreq.config import settings
from lotto_nextfreq.core import aggregator, composer
from lotto_nextfreq.core.filter_engine import BucketCache, compile_condition, scan
from lotto_nextfreq.core.snapshot import SnapshotStore
from lotto_nextfreq.errors import NotFound
from lotto_nextfreq.schemas.analysis import (
    AggregateResponse,
    AnalysisResponse,
    KMatchResponse,
    NextFreqRequest,
    IntervalResponse,
    NextFreqResponse,
    RoundPatternResponse,
)


def get_round_analysis(
    store: SnapshotStore,
    round_no: int,
    bonus_included: bool = False,
    recent_count: int | None = None,
) -> AnalysisResponse:
    """Every scheme, k-match and per-number statistic for one round."""
    analysis = aggregator.analyze_round(
        store.snapshot,
        round_no,
        bonus_included=bonus_included,
        recent_count=recent_count or settings.DEFAULT_RECENT_COUNT,
    )
    return AnalysisResponse(**composer.compose_analysis(analysis, top=settings.TOP_N))


def get_aggregate(
    store: SnapshotStore, round_no: int, scheme: str, bonus_included: bool = False
) -> AggregateResponse:
    result = aggregator.aggregate(store.snapshot, round_no, scheme, bonus_included)
    return AggregateResponse(**composer.compose_aggregate(result, round_no, bonus_included))


def get_k_match(
    store: SnapshotStore, round_no: int, bonus_included: bool = False
) -> KMatchResponse:
    result = aggregator.aggregate_k_match(store.snapshot, round_no, bonus_included)
    return KMatchResponse(**composer.compose_k_match(result, round_no, bonus_included))


def get_next_freq(
    store: SnapshotStore, bucket_cache: BucketCache, request: NextFreqRequest
) -> NextFreqResponse:
    """Scan a round range with a user condition and tally the following rounds.

    Defaults: ``end_round`` is the latest round, ``start_round`` is
    ``DEFAULT_SCAN_WINDOW`` rounds before it.
    """
    snapshot = store.snapshot
    condition = compile_condition(request.conditions, bucket_cache, unit_size=request.range_unit)

    end_round = request.end_round if request.end_round is not None else snapshot.latest_round
    start_round = (
        request.start_round
        if request.start_round is not None
        else max(1, end_round - settings.DEFAULT_SCAN_WINDOW)
    )

    result = scan(
        snapshot,
        start_round,
        end_round,
        condition,
        bucket_cache,
        bonus_included=request.include_bonus,
        include_details=request.include_matched_rounds_detail,
    )
    return NextFreqResponse(**composer.compose_scan(
        result,
        include_matched_rounds=request.include_matched_rounds,
        top=settings.TOP_N,
    ))


def get_round_pattern(
    store: SnapshotStore,
    round_no: int | None = None,
    min_similarity: float | None = None,
    top_n: int | None = None,
    method: str = "hybrid",
    bonus_included: bool = False,
) -> RoundPatternResponse:
    """Past rounds shaped like ``round_no`` (default: latest) and what followed them."""
    snapshot = store.snapshot
    if round_no is None:
        if not len(snapshot):
            raise NotFound(0, "Snapshot is empty")
        round_no = snapshot.latest_round
    result = aggregator.similar_dist_rounds(
        snapshot,
        round_no,
        min_similarity=settings.PATTERN_MIN_SIMILARITY if min_similarity is None else min_similarity,
        top_n=top_n or settings.PATTERN_TOP_N,
        method=method,
        bonus_included=bonus_included,
    )
    return RoundPatternResponse(**composer.compose_similar_rounds(result, top=settings.TOP_N))


def get_interval_analysis(
    store: SnapshotStore,
    start_round: int | None = None,
    end_round: int | None = None,
    pattern_len: int | None = None,
    min_sample: int | None = None,
    bonus_included: bool = False,
) -> IntervalResponse:
    analysis = aggregator.interval_analysis(
        store.snapshot,
        start_round,
        end_round,
        pattern_len=pattern_len or settings.INTERVAL_PATTERN_LEN,
        min_sample=min_sample or settings.INTERVAL_MIN_SAMPLE,
        bonus_included=bonus_included,
    )
    return IntervalResponse(**composer.compose_interval(analysis, top=settings.TOP_N))
