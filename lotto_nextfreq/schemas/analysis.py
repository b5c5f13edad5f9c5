"""Pydantic schemas for next-round frequency analysis."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lotto_nextfreq.schemas.draw import DrawSchema


class NumberCount(BaseModel):
    number: int
    count: int


# --- Single-scheme and k-match aggregates ---

class AggregateResponse(BaseModel):
    round: int
    scheme: str
    bonus_included: bool
    pattern_key: str
    match_count: int  # key matches, including ones with no successor round
    next_rounds_used: int
    frequency: dict[int, int]


class KMatchResponse(BaseModel):
    round: int
    bonus_included: bool
    frequency: dict[str, dict[int, int]]
    match_count: dict[str, int]
    next_rounds_used: dict[str, int]


# --- Full round analysis ---

class SchemeSummary(BaseModel):
    pattern_key: str
    match_count: int
    next_rounds_used: int
    frequency: dict[int, int]
    top: list[NumberCount]


class AnalysisMeta(BaseModel):
    total_rounds_analyzed: int
    recent_count: int
    scheme_match_counts: dict[str, int]
    k_match_counts: dict[str, int]


class OddEvenNext(BaseModel):
    odd_count: int
    match_count: int
    odd: int
    even: int
    ratio: float  # odd / (odd + even)


class AnalysisResponse(BaseModel):
    round: int
    bonus_included: bool
    target: DrawSchema
    meta: AnalysisMeta
    schemes: dict[str, SchemeSummary]
    k_match_next_freq: dict[str, dict[int, int]]
    per_number_next_freq: dict[int, dict[int, int]]
    recent_freq: dict[int, int]
    odd_even_next_freq: OddEvenNext
    last_appearance: dict[int, int]
    consecutive_appearances: dict[int, int]
    next_round: DrawSchema | None = None
    generated_at: datetime


# --- Predicate filter (next-freq scan) ---

class NextFreqRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    start_round: int | None = None
    end_round: int | None = None
    include_bonus: bool = False
    range_unit: int | None = None
    conditions: dict[str, Any] = Field(default_factory=dict)
    include_matched_rounds: bool = False
    include_matched_rounds_detail: bool = False


class NextFreqMeta(BaseModel):
    start_round: int
    end_round: int
    include_bonus: bool
    range_unit: int
    matched_rounds: int
    next_rounds_used: int  # matches whose round r+1 exists
    detail_truncated: bool
    detail_limit: int | None = None


class MatchedRound(BaseModel):
    round: int
    numbers: list[int]
    next_numbers: list[int]


class NextFreqResponse(BaseModel):
    meta: NextFreqMeta
    next_number_freq: dict[int, int]
    top: list[NumberCount]
    next_range_dist: dict[str, int]
    matched_round_list: list[int] | None = None
    matched_rounds: list[MatchedRound] | None = None


# --- Gap-distribution similarity ---

class GapSummary(BaseModel):
    min: int
    max: int
    avg: float
    median: int


class DistPatternSchema(BaseModel):
    numbers: list[int]
    gaps: list[int]
    buckets: list[str]
    bucket_dist: dict[str, int]
    pattern_str: str
    gap_summary: GapSummary


class SimilarMatch(BaseModel):
    matched_round: int
    matched_numbers: list[int]
    matched_gaps: list[int]
    matched_pattern: str
    similarity: float
    next_round: int
    next_numbers: list[int]


class RoundPatternResponse(BaseModel):
    round: int
    method: str
    min_similarity: float
    pattern: DistPatternSchema
    match_count: int  # every round over the threshold, not only the listed ones
    similar_matches: list[SimilarMatch]
    next_number_freq: dict[int, int]
    top: list[NumberCount]
    next_round: DrawSchema | None = None


# --- Per-number appearance intervals ---

class NumberIntervalSchema(BaseModel):
    number: int
    appear_count: int
    latest_pattern: str | None = None
    pattern_sample_count: int
    current_gap: int | None = None
    last_gap: int | None = None


class IntervalNextFreq(BaseModel):
    number: int
    pattern: str | None = None
    sample_count: int  # 0 when the pattern completed fewer than min_sample times
    next_rounds_used: int
    top: list[NumberCount]


class IntervalResponse(BaseModel):
    start_round: int
    end_round: int
    pattern_len: int
    min_sample: int
    base_round: int | None = None
    base_numbers: list[int]
    per_number: list[NumberIntervalSchema]
    base_next_freq: list[IntervalNextFreq]
    next_round: DrawSchema | None = None
