"""Classification schemes.

Each scheme maps a draw's six main numbers to a key; two draws are
pattern-equivalent under a scheme iff their keys are equal.
"""

import math
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from enum import Enum

from lotto_nextfreq.core.bitmask import BASE, DOMAIN_SIZE
from lotto_nextfreq.errors import InvalidArgument

PATTERN_UNIT_SIZES = (5, 7, 10, 15)

# Sum cut points for 6-of-45 (mean sum is about 138)
SUM_LOW_BELOW = 120
SUM_HIGH_ABOVE = 165

ZONE_WIDTH = 15

PRIMES = frozenset({2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43})


class Scheme(str, Enum):
    EXACT = "exact-numbers"
    RANGE_5 = "range-5"
    RANGE_7 = "range-7"
    RANGE_10 = "range-10"
    RANGE_15 = "range-15"
    SUM_RANGE = "sum-range"
    ZONE = "zone"
    CONSECUTIVE = "consecutive"
    PRIME = "prime"
    GAP_AVG = "gap-avg"
    GAP_MAX = "gap-max"
    ODD_EVEN = "odd-even"


def parse_scheme(value: str | Scheme) -> Scheme:
    if isinstance(value, Scheme):
        return value
    try:
        return Scheme(value)
    except ValueError:
        valid = ", ".join(s.value for s in Scheme)
        raise InvalidArgument(f"Unknown scheme {value!r}. Valid: {valid}", field="scheme") from None


# ── range buckets ────────────────────────────────────────────────────

def bucket_count(unit_size: int) -> int:
    return math.ceil(DOMAIN_SIZE / unit_size)


def bucket_counts(numbers: Sequence[int], unit_size: int) -> list[int]:
    """Per-bucket counts for consecutive buckets of ``unit_size`` numbers.

    Example (unit 10): [1, 5, 9, 22, 31, 44] -> [3, 0, 1, 1, 1]
    """
    if unit_size not in PATTERN_UNIT_SIZES:
        raise InvalidArgument(
            f"unit size must be one of {PATTERN_UNIT_SIZES}, got {unit_size!r}", field="unit_size"
        )
    counts = [0] * bucket_count(unit_size)
    for n in numbers:
        idx = (n - BASE) // unit_size
        if 0 <= idx < len(counts):
            counts[idx] += 1
    return counts


def range_pattern_key(numbers: Sequence[int], unit_size: int) -> str:
    """Bucket counts joined with '-', e.g. '3-0-1-1-1'."""
    return "-".join(str(c) for c in bucket_counts(numbers, unit_size))


# ── sum / zone / odd ─────────────────────────────────────────────────

def sum_range(numbers: Sequence[int]) -> str:
    total = sum(numbers)
    if total < SUM_LOW_BELOW:
        return "low"
    if total > SUM_HIGH_ABOVE:
        return "high"
    return "mid"


def zone_counts(numbers: Sequence[int]) -> tuple[int, int, int]:
    """How many numbers fall in the low / mid / high thirds of the domain."""
    zones = [0, 0, 0]
    for n in numbers:
        idx = (n - BASE) // ZONE_WIDTH
        if 0 <= idx < 3:
            zones[idx] += 1
    return zones[0], zones[1], zones[2]


def odd_count(numbers: Sequence[int]) -> int:
    return sum(1 for n in numbers if n % 2 == 1)


# ── shape ────────────────────────────────────────────────────────────

def consecutive_count(numbers: Sequence[int]) -> int:
    """Number of adjacent (x, x+1) pairs present."""
    s = sorted(numbers)
    return sum(1 for a, b in zip(s, s[1:]) if b - a == 1)


def prime_count(numbers: Sequence[int]) -> int:
    return sum(1 for n in numbers if n in PRIMES)


def gap_stats(numbers: Sequence[int]) -> tuple[int, int]:
    """(average gap rounded half-up, maximum gap) between sorted neighbours."""
    s = sorted(numbers)
    gaps = [b - a for a, b in zip(s, s[1:])]
    if not gaps:
        return 0, 0
    avg = math.floor(sum(gaps) / len(gaps) + 0.5)
    return avg, max(gaps)


def _exact(numbers: Sequence[int]) -> tuple[int, ...]:
    return tuple(sorted(numbers))


KEY_FUNCTIONS: dict[Scheme, Callable[[Sequence[int]], Hashable]] = {
    Scheme.EXACT: _exact,
    Scheme.RANGE_5: lambda nums: range_pattern_key(nums, 5),
    Scheme.RANGE_7: lambda nums: range_pattern_key(nums, 7),
    Scheme.RANGE_10: lambda nums: range_pattern_key(nums, 10),
    Scheme.RANGE_15: lambda nums: range_pattern_key(nums, 15),
    Scheme.SUM_RANGE: sum_range,
    Scheme.ZONE: zone_counts,
    Scheme.CONSECUTIVE: consecutive_count,
    Scheme.PRIME: prime_count,
    Scheme.GAP_AVG: lambda nums: gap_stats(nums)[0],
    Scheme.GAP_MAX: lambda nums: gap_stats(nums)[1],
    Scheme.ODD_EVEN: odd_count,
}


def classify(numbers: Sequence[int], scheme: Scheme | str) -> Hashable:
    """Classification key of ``numbers`` under ``scheme``."""
    return KEY_FUNCTIONS[parse_scheme(scheme)](numbers)


# ── gap distribution ─────────────────────────────────────────────────

GAP_BUCKETS = ("S", "M", "L", "XL")
SIMILARITY_METHODS = ("bucket", "exact", "hybrid")

# Largest possible bucket-distribution difference for five gaps
_BUCKET_DIFF_SCALE = 10
_EXACT_DIFF_SCALE = 100
_HYBRID_BUCKET_WEIGHT = 0.7
_HYBRID_EXACT_WEIGHT = 0.3


def gap_bucket(gap: int) -> str:
    """S (<=5), M (6..10), L (11..20) or XL (21+)."""
    if gap <= 5:
        return "S"
    if gap <= 10:
        return "M"
    if gap <= 20:
        return "L"
    return "XL"


@dataclass(frozen=True)
class DistPattern:
    """Shape of one draw: the gaps between its sorted numbers.

    [7, 13, 21, 28, 35, 42] -> gaps (6, 8, 7, 7, 7) -> "M-M-M-M-M"
    """

    numbers: tuple[int, ...]
    gaps: tuple[int, ...]
    buckets: tuple[str, ...]

    @property
    def bucket_dist(self) -> dict[str, int]:
        return {b: self.buckets.count(b) for b in GAP_BUCKETS}

    @property
    def pattern_str(self) -> str:
        return "-".join(self.buckets)

    @property
    def gap_summary(self) -> dict:
        ordered = sorted(self.gaps)
        return {
            "min": ordered[0],
            "max": ordered[-1],
            "avg": sum(ordered) / len(ordered),
            "median": ordered[len(ordered) // 2],
        }


def dist_pattern(numbers: Sequence[int]) -> DistPattern:
    s = sorted(numbers)
    gaps = tuple(b - a for a, b in zip(s, s[1:]))
    return DistPattern(numbers=tuple(s), gaps=gaps, buckets=tuple(gap_bucket(g) for g in gaps))


def parse_similarity_method(value: str) -> str:
    if value not in SIMILARITY_METHODS:
        raise InvalidArgument(f"must be one of {SIMILARITY_METHODS}, got {value!r}", field="method")
    return value


def pattern_similarity(a: DistPattern, b: DistPattern, method: str = "hybrid") -> float:
    """Similarity in 0..1 between two gap patterns.

    ``bucket`` compares bucket distributions, ``exact`` compares gaps pairwise,
    ``hybrid`` weighs them 70/30.
    """
    method = parse_similarity_method(method)
    if method == "bucket":
        da, db = a.bucket_dist, b.bucket_dist
        diff = sum(abs(da[k] - db[k]) for k in GAP_BUCKETS)
        return 1 - diff / _BUCKET_DIFF_SCALE
    if method == "exact":
        diff = sum(abs(x - y) for x, y in zip(a.gaps, b.gaps))
        return max(0.0, 1 - diff / _EXACT_DIFF_SCALE)
    return (
        _HYBRID_BUCKET_WEIGHT * pattern_similarity(a, b, "bucket")
        + _HYBRID_EXACT_WEIGHT * pattern_similarity(a, b, "exact")
    )
