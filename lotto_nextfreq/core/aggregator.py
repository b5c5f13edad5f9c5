"""Next-round frequency aggregators.

Every aggregator answers the same question for a target round R: among the
historical rounds r < R that look like R (under some classification), which
numbers showed up in round r+1?

All functions take the snapshot explicitly and never touch the store, so a
caller pins one snapshot version for the whole query.
"""

from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np
from loguru import logger

from lotto_nextfreq.core import bitmask
from lotto_nextfreq.core.classify import (
    KEY_FUNCTIONS,
    DistPattern,
    Scheme,
    dist_pattern,
    gap_bucket,
    odd_count,
    parse_scheme,
    parse_similarity_method,
    pattern_similarity,
)
from lotto_nextfreq.core.snapshot import Draw, Snapshot
from lotto_nextfreq.errors import InvalidArgument, NotFound

K_BUCKETS = ("1", "2", "3", "4+")


@dataclass
class AggregateResult:
    """Single-scheme aggregate.

    ``match_count`` counts every key match, including matches whose successor
    round is absent (e.g. the last round in history), so it can exceed
    ``next_rounds_used``, the number of successors actually accumulated.
    """

    scheme: Scheme
    key: Hashable
    frequency: np.ndarray
    match_count: int = 0
    next_rounds_used: int = 0


@dataclass
class KMatchResult:
    frequency: dict[str, np.ndarray] = field(
        default_factory=lambda: {k: bitmask.zeros_vector() for k in K_BUCKETS}
    )
    match_count: dict[str, int] = field(default_factory=lambda: {k: 0 for k in K_BUCKETS})
    next_rounds_used: dict[str, int] = field(default_factory=lambda: {k: 0 for k in K_BUCKETS})


@dataclass
class OddEvenNext:
    odd_count: int
    match_count: int = 0
    odd: int = 0
    even: int = 0

    @property
    def ratio(self) -> float:
        total = self.odd + self.even
        return self.odd / total if total > 0 else 0.0


@dataclass
class RoundAnalysis:
    """Everything computed for one target round."""

    target: Draw
    bonus_included: bool
    recent_count: int
    total_rounds_analyzed: int
    schemes: dict[Scheme, AggregateResult]
    k_match: KMatchResult
    per_number: dict[int, np.ndarray]
    recent: np.ndarray
    odd_even: OddEvenNext
    last_appearance: dict[int, int]
    consecutive_appearances: dict[int, int]
    next_draw: Draw | None
    generated_at: datetime


def positive_int(value, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArgument(f"must be a positive integer, got {value!r}", field=field_name)
    return value


def validate_round(value, field_name: str = "round") -> int:
    return positive_int(value, field_name)


def get_target(snapshot: Snapshot, target_round: int) -> Draw:
    """Target draw, or NotFound: no key can be derived from an absent round."""
    validate_round(target_round, "target_round")
    target = snapshot.get(target_round)
    if target is None:
        raise NotFound(target_round)
    return target


def k_bucket(k: int) -> str | None:
    if k <= 0:
        return None
    return "4+" if k >= 4 else str(k)


def aggregate(
    snapshot: Snapshot,
    target_round: int,
    scheme: Scheme | str,
    bonus_included: bool = False,
) -> AggregateResult:
    """Next-round frequency over history rounds sharing the target's key."""
    scheme = parse_scheme(scheme)
    target = get_target(snapshot, target_round)
    key_of = KEY_FUNCTIONS[scheme]
    target_key = key_of(target.numbers)

    result = AggregateResult(scheme=scheme, key=target_key, frequency=bitmask.zeros_vector())
    for r in snapshot.before(target_round):
        if key_of(r.numbers) != target_key:
            continue
        result.match_count += 1
        nxt = snapshot.get(r.round + 1)
        if nxt is None:
            continue
        result.next_rounds_used += 1
        result.frequency[nxt.indices(bonus_included)] += 1

    logger.debug(
        "aggregate round={} scheme={} key={} matches={} used={}",
        target_round, scheme.value, target_key, result.match_count, result.next_rounds_used,
    )
    return result


def aggregate_k_match(
    snapshot: Snapshot,
    target_round: int,
    bonus_included: bool = False,
) -> KMatchResult:
    """Next-round frequency bucketed by overlap size with the target's numbers."""
    target = get_target(snapshot, target_round)
    result = KMatchResult()

    for r in snapshot.before(target_round):
        key = k_bucket(bitmask.intersect_count(target.mask, r.mask))
        if key is None:
            continue
        result.match_count[key] += 1
        nxt = snapshot.get(r.round + 1)
        if nxt is None:
            continue
        result.next_rounds_used[key] += 1
        result.frequency[key][nxt.indices(bonus_included)] += 1

    return result


def aggregate_per_number(
    snapshot: Snapshot,
    target_round: int,
    bonus_included: bool = False,
) -> dict[int, np.ndarray]:
    """For each number of the target, next-round frequency after rounds containing it.

    With ``bonus_included`` the target's bonus is tracked too, and history
    rounds are tested against their bonus-inclusive mask.
    """
    target = get_target(snapshot, target_round)
    tracked = list(target.numbers)
    if bonus_included and target.bonus not in tracked:
        tracked.append(target.bonus)

    per_number = {n: bitmask.zeros_vector() for n in tracked}
    for r in snapshot.before(target_round):
        nxt = snapshot.get(r.round + 1)
        if nxt is None:
            continue
        r_mask = r.mask_for(bonus_included)
        idx = nxt.indices(bonus_included)
        for n in tracked:
            if bitmask.has(r_mask, n):
                per_number[n][idx] += 1
    return per_number


def recent_frequency(
    snapshot: Snapshot,
    target_round: int,
    recent_count: int,
    bonus_included: bool = False,
) -> np.ndarray:
    """Frequency over the ``recent_count`` rounds ending at the target (inclusive)."""
    get_target(snapshot, target_round)
    positive_int(recent_count, "recent_count")

    freq = bitmask.zeros_vector()
    for r in snapshot.range(max(1, target_round - recent_count + 1), target_round):
        freq[r.indices(bonus_included)] += 1
    return freq


def odd_even_next(snapshot: Snapshot, target_round: int) -> OddEvenNext:
    """Odd/even totals of the successors of rounds with the target's odd count."""
    target = get_target(snapshot, target_round)
    result = OddEvenNext(odd_count=odd_count(target.numbers))

    for r in snapshot.before(target_round):
        if odd_count(r.numbers) != result.odd_count:
            continue
        nxt = snapshot.get(r.round + 1)
        if nxt is None:
            continue
        odd = odd_count(nxt.numbers)
        result.odd += odd
        result.even += len(nxt.numbers) - odd
        result.match_count += 1
    return result


def last_appearance(
    snapshot: Snapshot,
    target_round: int,
    bonus_included: bool = False,
) -> dict[int, int]:
    """Most recent round <= target containing each number (0 if never)."""
    get_target(snapshot, target_round)
    last = {n: 0 for n in range(bitmask.MIN_NUMBER, bitmask.MAX_NUMBER + 1)}
    missing = len(last)

    for round_no in range(target_round, 0, -1):
        r = snapshot.get(round_no)
        if r is None:
            continue
        for n in bitmask.decode(r.mask_for(bonus_included)):
            if last[n] == 0:
                last[n] = round_no
                missing -= 1
        if missing == 0:
            break
    return last


def consecutive_appearances(snapshot: Snapshot, target_round: int) -> dict[int, int]:
    """How many appearance streaks of length >= 2 each number had.

    Walks backwards from the target and stops at the first missing round.
    """
    get_target(snapshot, target_round)
    streak = {n: 0 for n in range(bitmask.MIN_NUMBER, bitmask.MAX_NUMBER + 1)}
    counts = dict(streak)

    round_no = target_round
    while round_no >= 1:
        r = snapshot.get(round_no)
        if r is None:
            break
        for n in streak:
            if bitmask.has(r.mask, n):
                streak[n] += 1
                if streak[n] == 2:
                    counts[n] += 1
            else:
                streak[n] = 0
        round_no -= 1
    return counts


def analyze_round(
    snapshot: Snapshot,
    target_round: int,
    bonus_included: bool = False,
    recent_count: int = 10,
) -> RoundAnalysis:
    """Run every aggregator against one target round."""
    target = get_target(snapshot, target_round)
    schemes = {s: aggregate(snapshot, target_round, s, bonus_included) for s in Scheme}

    return RoundAnalysis(
        target=target,
        bonus_included=bonus_included,
        recent_count=recent_count,
        total_rounds_analyzed=len(snapshot.before(target_round)),
        schemes=schemes,
        k_match=aggregate_k_match(snapshot, target_round, bonus_included),
        per_number=aggregate_per_number(snapshot, target_round, bonus_included),
        recent=recent_frequency(snapshot, target_round, recent_count, bonus_included),
        odd_even=odd_even_next(snapshot, target_round),
        last_appearance=last_appearance(snapshot, target_round, bonus_included),
        consecutive_appearances=consecutive_appearances(snapshot, target_round),
        next_draw=snapshot.get(target_round + 1),
        generated_at=datetime.now(),
    )


# ── gap-distribution similarity ──────────────────────────────────────

@dataclass
class SimilarRound:
    round: int
    numbers: list[int]
    pattern: DistPattern
    similarity: float
    next_round: int
    next_numbers: list[int]


@dataclass
class DistPatternResult:
    """Past rounds whose gap pattern resembles the target's.

    ``match_count`` and ``frequency`` cover every round at or above the
    threshold that has a successor; ``matches`` keeps only the most similar
    ``top_n`` of them.
    """

    target: Draw
    pattern: DistPattern
    method: str
    min_similarity: float
    match_count: int
    matches: list[SimilarRound]
    frequency: np.ndarray
    next_draw: Draw | None


def _fraction(value, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
        raise InvalidArgument(f"must be between 0 and 1, got {value!r}", field=field_name)
    return float(value)


def similar_dist_rounds(
    snapshot: Snapshot,
    target_round: int,
    min_similarity: float = 0.7,
    top_n: int = 10,
    method: str = "hybrid",
    bonus_included: bool = False,
) -> DistPatternResult:
    """Rounds before the target with a similar gap pattern, and what followed them.

    Rounds without a successor are left out. Matches are ordered by
    similarity, ties by ascending round.
    """
    target = get_target(snapshot, target_round)
    min_similarity = _fraction(min_similarity, "min_similarity")
    positive_int(top_n, "top_n")
    method = parse_similarity_method(method)
    source = dist_pattern(target.numbers)

    matches = []
    frequency = bitmask.zeros_vector()
    for r in snapshot.before(target_round):
        pattern = dist_pattern(r.numbers)
        similarity = pattern_similarity(source, pattern, method)
        if similarity < min_similarity:
            continue
        nxt = snapshot.get(r.round + 1)
        if nxt is None:
            continue
        frequency[nxt.indices(bonus_included)] += 1
        matches.append(SimilarRound(
            round=r.round,
            numbers=r.sorted_numbers,
            pattern=pattern,
            similarity=similarity,
            next_round=nxt.round,
            next_numbers=nxt.sorted_numbers,
        ))

    matches.sort(key=lambda m: m.similarity, reverse=True)
    logger.debug(
        "gap pattern round={} pattern={} method={} matches={}",
        target_round, source.pattern_str, method, len(matches),
    )
    return DistPatternResult(
        target=target,
        pattern=source,
        method=method,
        min_similarity=min_similarity,
        match_count=len(matches),
        matches=matches[:top_n],
        frequency=frequency,
        next_draw=snapshot.get(target_round + 1),
    )


# ── per-number appearance intervals ──────────────────────────────────

@dataclass
class NumberInterval:
    number: int
    appear_count: int
    latest_pattern: str | None
    pattern_sample_count: int
    current_gap: int | None
    last_gap: int | None


@dataclass
class IntervalPatternNext:
    """What followed every completion of one interval pattern.

    ``sample_count`` is 0 and ``frequency`` empty when the pattern completed
    fewer than ``min_sample`` times.
    """

    number: int
    pattern: str | None
    sample_count: int
    next_rounds_used: int
    frequency: np.ndarray


@dataclass
class IntervalAnalysis:
    start_round: int
    end_round: int
    pattern_len: int
    min_sample: int
    base: Draw | None
    per_number: list[NumberInterval]
    base_next: list[IntervalPatternNext]
    next_draw: Draw | None


def appearance_rounds(draws: Iterable[Draw]) -> dict[int, list[int]]:
    """Rounds each number appeared in as a main number, ascending."""
    appear = {n: [] for n in range(bitmask.MIN_NUMBER, bitmask.MAX_NUMBER + 1)}
    for d in draws:
        for n in d.numbers:
            appear[n].append(d.round)
    return appear


def interval_patterns(rounds: list[int], pattern_len: int) -> Iterator[tuple[str, int]]:
    """``(pattern, completion round)`` for every run of ``pattern_len`` consecutive intervals.

    Appearances at rounds [3, 10, 12, 30] with pattern_len 3 give one pattern,
    "M-S-L", completed at round 30.
    """
    for i in range(pattern_len, len(rounds)):
        buckets = [gap_bucket(rounds[k] - rounds[k - 1]) for k in range(i - pattern_len + 1, i + 1)]
        yield "-".join(buckets), rounds[i]


def interval_pattern_index(appear: dict[int, list[int]], pattern_len: int) -> dict[str, list[int]]:
    """Completion rounds of each interval pattern, across all numbers."""
    index: dict[str, list[int]] = {}
    for rounds in appear.values():
        for pattern, completed in interval_patterns(rounds, pattern_len):
            index.setdefault(pattern, []).append(completed)
    return index


def latest_interval_pattern(rounds: list[int], pattern_len: int) -> str | None:
    """Pattern ending at the number's most recent appearance, if it has enough of them."""
    if len(rounds) < pattern_len + 1:
        return None
    return "-".join(
        gap_bucket(rounds[k] - rounds[k - 1]) for k in range(len(rounds) - pattern_len, len(rounds))
    )


def interval_pattern_next(
    snapshot: Snapshot,
    index: dict[str, list[int]],
    number: int,
    pattern: str | None,
    end_round: int,
    min_sample: int,
    bonus_included: bool = False,
) -> IntervalPatternNext:
    result = IntervalPatternNext(
        number=number, pattern=pattern, sample_count=0, next_rounds_used=0,
        frequency=bitmask.zeros_vector(),
    )
    completed = index.get(pattern, []) if pattern is not None else []
    if len(completed) < min_sample:
        return result

    result.sample_count = len(completed)
    for r in completed:
        if r + 1 > end_round:
            continue
        nxt = snapshot.get(r + 1)
        if nxt is None:
            continue
        result.next_rounds_used += 1
        result.frequency[nxt.indices(bonus_included)] += 1
    return result


def interval_analysis(
    snapshot: Snapshot,
    start_round: int | None = None,
    end_round: int | None = None,
    pattern_len: int = 3,
    min_sample: int = 3,
    bonus_included: bool = False,
) -> IntervalAnalysis:
    """Per-number appearance intervals over ``start..end``.

    ``end`` is clamped to the latest round. For each number of the last draw in
    the window, the interval pattern it just completed is looked up and the
    rounds following earlier completions of that pattern are tallied.
    """
    positive_int(pattern_len, "pattern_len")
    positive_int(min_sample, "min_sample")
    start = 1 if start_round is None else positive_int(start_round, "start_round")
    end = snapshot.latest_round
    if end_round is not None:
        end = min(positive_int(end_round, "end_round"), end)
    if start > end:
        raise InvalidArgument(f"invalid range {start}..{end}", field="start_round/end_round")

    draws = snapshot.range(start, end)
    if not draws:
        return IntervalAnalysis(
            start_round=start, end_round=end, pattern_len=pattern_len, min_sample=min_sample,
            base=None, per_number=[], base_next=[], next_draw=None,
        )

    base = draws[-1]
    appear = appearance_rounds(draws)
    index = interval_pattern_index(appear, pattern_len)

    per_number = []
    latest_patterns = {}
    for n, rounds in appear.items():
        latest = latest_interval_pattern(rounds, pattern_len)
        latest_patterns[n] = latest
        samples = 0
        if latest is not None:
            samples = sum(1 for p, _ in interval_patterns(rounds, pattern_len) if p == latest)
        per_number.append(NumberInterval(
            number=n,
            appear_count=len(rounds),
            latest_pattern=latest,
            pattern_sample_count=samples,
            current_gap=end - rounds[-1] if rounds else None,
            last_gap=rounds[-1] - rounds[-2] if len(rounds) >= 2 else None,
        ))

    base_next = [
        interval_pattern_next(
            snapshot, index, n, latest_patterns[n], end, min_sample, bonus_included
        )
        for n in base.sorted_numbers
    ]
    return IntervalAnalysis(
        start_round=start,
        end_round=end,
        pattern_len=pattern_len,
        min_sample=min_sample,
        base=base,
        per_number=per_number,
        base_next=base_next,
        next_draw=snapshot.get(base.round + 1),
    )
