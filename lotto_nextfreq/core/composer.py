"""Turn aggregator output into plain, stable records.

No statistics happen here: dense vectors become ``{number: count}`` maps over
the whole domain, rankings are count-descending with ties on ascending number.
"""

from collections.abc import Hashable

import numpy as np

from lotto_nextfreq.core import bitmask
from lotto_nextfreq.core.aggregator import (
    K_BUCKETS,
    AggregateResult,
    DistPatternResult,
    IntervalAnalysis,
    KMatchResult,
    RoundAnalysis,
)
from lotto_nextfreq.core.classify import DistPattern
from lotto_nextfreq.core.filter_engine import ScanResult
from lotto_nextfreq.core.snapshot import Draw


def to_number_map(vector: np.ndarray) -> dict[int, int]:
    return {n: int(vector[n]) for n in range(bitmask.MIN_NUMBER, bitmask.MAX_NUMBER + 1)}


def top_n(vector: np.ndarray, n: int) -> list[dict]:
    ranked = sorted(
        range(bitmask.MIN_NUMBER, bitmask.MAX_NUMBER + 1),
        key=lambda num: (-int(vector[num]), num),
    )
    return [{"number": num, "count": int(vector[num])} for num in ranked[:n]]


def format_key(key: Hashable) -> str:
    if isinstance(key, tuple):
        return "-".join(str(k) for k in key)
    return str(key)


def compose_draw(draw: Draw | None) -> dict | None:
    """Same shape as the draw lookup endpoints: numbers ascending."""
    return draw.to_dict() if draw is not None else None


def compose_aggregate(result: AggregateResult, target_round: int, bonus_included: bool) -> dict:
    return {
        "round": target_round,
        "scheme": result.scheme.value,
        "bonus_included": bonus_included,
        "pattern_key": format_key(result.key),
        "match_count": result.match_count,
        "next_rounds_used": result.next_rounds_used,
        "frequency": to_number_map(result.frequency),
    }


def compose_k_match(result: KMatchResult, target_round: int, bonus_included: bool) -> dict:
    return {
        "round": target_round,
        "bonus_included": bonus_included,
        "frequency": {k: to_number_map(result.frequency[k]) for k in K_BUCKETS},
        "match_count": dict(result.match_count),
        "next_rounds_used": dict(result.next_rounds_used),
    }


def compose_scan(result: ScanResult, include_matched_rounds: bool = False, top: int = 12) -> dict:
    out = {
        "meta": {
            "start_round": result.start_round,
            "end_round": result.end_round,
            "include_bonus": result.bonus_included,
            "range_unit": result.unit_size,
            "matched_rounds": len(result.matched),
            "next_rounds_used": result.next_rounds_used,
            "detail_truncated": result.truncated,
            "detail_limit": result.detail_limit,
        },
        "next_number_freq": to_number_map(result.next_frequency),
        "top": top_n(result.next_frequency, top),
        "next_range_dist": dict(result.next_range_dist),
        "matched_round_list": list(result.matched) if include_matched_rounds else None,
        "matched_rounds": None,
    }
    if result.details is not None:
        out["matched_rounds"] = [
            {"round": d.round, "numbers": d.numbers, "next_numbers": d.next_numbers}
            for d in result.details
        ]
    return out


def compose_analysis(analysis: RoundAnalysis, top: int = 12) -> dict:
    target = analysis.target
    schemes = {}
    for scheme, agg in analysis.schemes.items():
        schemes[scheme.value] = {
            "pattern_key": format_key(agg.key),
            "match_count": agg.match_count,
            "next_rounds_used": agg.next_rounds_used,
            "frequency": to_number_map(agg.frequency),
            "top": top_n(agg.frequency, top),
        }
    oe = analysis.odd_even

    return {
        "round": target.round,
        "bonus_included": analysis.bonus_included,
        "target": compose_draw(target),
        "meta": {
            "total_rounds_analyzed": analysis.total_rounds_analyzed,
            "recent_count": analysis.recent_count,
            "scheme_match_counts": {s: v["match_count"] for s, v in schemes.items()},
            "k_match_counts": dict(analysis.k_match.match_count),
        },
        "schemes": schemes,
        "k_match_next_freq": {k: to_number_map(analysis.k_match.frequency[k]) for k in K_BUCKETS},
        "per_number_next_freq": {n: to_number_map(v) for n, v in analysis.per_number.items()},
        "recent_freq": to_number_map(analysis.recent),
        "odd_even_next_freq": {
            "odd_count": oe.odd_count,
            "match_count": oe.match_count,
            "odd": oe.odd,
            "even": oe.even,
            "ratio": oe.ratio,
        },
        "last_appearance": dict(analysis.last_appearance),
        "consecutive_appearances": dict(analysis.consecutive_appearances),
        "next_round": compose_draw(analysis.next_draw),
        "generated_at": analysis.generated_at,
    }


def compose_dist_pattern(pattern: DistPattern) -> dict:
    return {
        "numbers": list(pattern.numbers),
        "gaps": list(pattern.gaps),
        "buckets": list(pattern.buckets),
        "bucket_dist": pattern.bucket_dist,
        "pattern_str": pattern.pattern_str,
        "gap_summary": pattern.gap_summary,
    }


def compose_similar_rounds(result: DistPatternResult, top: int = 12) -> dict:
    return {
        "round": result.target.round,
        "method": result.method,
        "min_similarity": result.min_similarity,
        "pattern": compose_dist_pattern(result.pattern),
        "match_count": result.match_count,
        "similar_matches": [
            {
                "matched_round": m.round,
                "matched_numbers": m.numbers,
                "matched_gaps": list(m.pattern.gaps),
                "matched_pattern": m.pattern.pattern_str,
                "similarity": round(m.similarity, 4),
                "next_round": m.next_round,
                "next_numbers": m.next_numbers,
            }
            for m in result.matches
        ],
        "next_number_freq": to_number_map(result.frequency),
        "top": top_n(result.frequency, top),
        "next_round": compose_draw(result.next_draw),
    }


def compose_interval(analysis: IntervalAnalysis, top: int = 12) -> dict:
    return {
        "start_round": analysis.start_round,
        "end_round": analysis.end_round,
        "pattern_len": analysis.pattern_len,
        "min_sample": analysis.min_sample,
        "base_round": analysis.base.round if analysis.base else None,
        "base_numbers": analysis.base.sorted_numbers if analysis.base else [],
        "per_number": [
            {
                "number": p.number,
                "appear_count": p.appear_count,
                "latest_pattern": p.latest_pattern,
                "pattern_sample_count": p.pattern_sample_count,
                "current_gap": p.current_gap,
                "last_gap": p.last_gap,
            }
            for p in analysis.per_number
        ],
        "base_next_freq": [
            {
                "number": b.number,
                "pattern": b.pattern,
                "sample_count": b.sample_count,
                "next_rounds_used": b.next_rounds_used,
                "top": top_n(b.frequency, top) if b.sample_count else [],
            }
            for b in analysis.base_next
        ],
        "next_round": compose_draw(analysis.next_draw),
    }
