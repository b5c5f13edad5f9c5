"""Predicate filter engine.

Compiles a raw, user-supplied condition object into a ``Condition`` and scans a
round range for draws that satisfy it, accumulating what came up in the
following round.

Raw condition shape (every key optional, all present constraints are ANDed)::

    {
        "rangeUnit": 7,
        "ranges": [{"key": "1-7", "op": "gte", "value": 2}],
        "includeNumbers": [7],
        "excludeNumbers": [13, 44],
        "oddCount": {"op": "eq", "value": 3},
        "sum": {"op": "between", "min": 100, "max": 170},
        "consecutive": {"enabled": true},
        "minNumber": {"op": "lte", "value": 5},
        "maxNumber": {"op": "gte", "value": 40},
    }
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import numpy as np
from loguru import logger

from lotto_nextfreq.config import settings
from lotto_nextfreq.core import bitmask
from lotto_nextfreq.core.classify import consecutive_count, odd_count
from lotto_nextfreq.core.snapshot import PICK_COUNT, Draw, Snapshot
from lotto_nextfreq.errors import InvalidArgument, UnknownBucketKey

RANGE_UNITS = (5, 7, 10)
COMPARATORS = ("eq", "gte", "lte")
BETWEEN = "between"

SUM_BOUNDS = (0, 9999)
ODD_BOUNDS = (0, PICK_COUNT)
NUMBER_BOUNDS = (bitmask.MIN_NUMBER, bitmask.MAX_NUMBER)

CONDITION_KEYS = frozenset({
    "rangeUnit", "ranges", "includeNumbers", "excludeNumbers",
    "oddCount", "sum", "consecutive", "minNumber", "maxNumber",
})


# ── range buckets ────────────────────────────────────────────────────

@dataclass(frozen=True)
class RangeBucket:
    key: str
    lo: int
    hi: int
    mask: int


@dataclass(frozen=True)
class BucketPack:
    unit_size: int
    buckets: tuple[RangeBucket, ...]
    masks: Mapping[str, int]

    def empty_dist(self) -> dict[str, int]:
        return {b.key: 0 for b in self.buckets}


def validate_range_unit(value: Any) -> int:
    unit = _to_int(value, "rangeUnit")
    if unit not in RANGE_UNITS:
        raise InvalidArgument(f"must be one of {RANGE_UNITS}, got {value!r}", field="rangeUnit")
    return unit


def make_range_buckets(unit_size: int) -> tuple[RangeBucket, ...]:
    """Consecutive buckets of ``unit_size`` numbers; the last one is truncated."""
    buckets = []
    start = bitmask.MIN_NUMBER
    while start <= bitmask.MAX_NUMBER:
        end = min(bitmask.MAX_NUMBER, start + unit_size - 1)
        buckets.append(RangeBucket(f"{start}-{end}", start, end, bitmask.range_mask(start, end)))
        start = end + 1
    return tuple(buckets)


class BucketCache:
    """Populate-once memo of bucket packs, keyed by unit size.

    Packs are immutable. Two threads racing on a first lookup may both build a
    pack; ``setdefault`` keeps whichever landed first.
    """

    def __init__(self):
        self._packs: dict[int, BucketPack] = {}

    def get(self, unit_size: int) -> BucketPack:
        unit_size = validate_range_unit(unit_size)
        hit = self._packs.get(unit_size)
        if hit is not None:
            return hit
        buckets = make_range_buckets(unit_size)
        pack = BucketPack(
            unit_size=unit_size,
            buckets=buckets,
            masks=MappingProxyType({b.key: b.mask for b in buckets}),
        )
        return self._packs.setdefault(unit_size, pack)

    def invalidate(self) -> None:
        self._packs = {}

    def __contains__(self, unit_size: int) -> bool:
        return unit_size in self._packs

    def __len__(self) -> int:
        return len(self._packs)


# ── compiled condition ───────────────────────────────────────────────

@dataclass(frozen=True)
class CountCondition:
    """``eq``/``gte``/``lte`` against ``value``, or ``between`` lo..hi inclusive."""

    op: str
    value: int = 0
    lo: int = 0
    hi: int = 0

    def matches(self, v: int) -> bool:
        if self.op == BETWEEN:
            return self.lo <= v <= self.hi
        return _compare(v, self.op, self.value)


@dataclass(frozen=True)
class RangeConstraint:
    key: str
    op: str
    value: int


@dataclass(frozen=True)
class Condition:
    unit_size: int = 7
    ranges: tuple[RangeConstraint, ...] = ()
    include: tuple[int, ...] = ()
    exclude: tuple[int, ...] = ()
    odd_count: CountCondition | None = None
    sum: CountCondition | None = None
    consecutive: bool | None = None
    min_number: CountCondition | None = None
    max_number: CountCondition | None = None

    include_mask: int = field(init=False, compare=False)
    exclude_mask: int = field(init=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "include_mask", bitmask.encode(self.include))
        object.__setattr__(self, "exclude_mask", bitmask.encode(self.exclude))

    @property
    def is_empty(self) -> bool:
        return not (
            self.ranges or self.include or self.exclude
            or self.odd_count or self.sum or self.consecutive is not None
            or self.min_number or self.max_number
        )


def _compare(v: int, op: str, target: int) -> bool:
    if op == "eq":
        return v == target
    if op == "gte":
        return v >= target
    if op == "lte":
        return v <= target
    return False


def _to_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise InvalidArgument(f"expected a number, got {value!r}", field=field_name)
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            raise InvalidArgument(f"expected a number, got {value!r}", field=field_name) from None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidArgument(f"expected a finite number, got {value!r}", field=field_name)
    return math.floor(value)


def _clamp(v: int, bounds: tuple[int, int]) -> int:
    return max(bounds[0], min(bounds[1], v))


def _compile_count(raw: Any, bounds: tuple[int, int], field_name: str) -> CountCondition | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise InvalidArgument("expected an object with 'op'", field=field_name)

    op = raw.get("op")
    if op == BETWEEN:
        a = _to_int(raw.get("min"), f"{field_name}.min")
        b = _to_int(raw.get("max"), f"{field_name}.max")
        lo, hi = min(a, b), max(a, b)
        return CountCondition(op=BETWEEN, lo=_clamp(lo, bounds), hi=_clamp(hi, bounds))
    if op in COMPARATORS:
        value = _to_int(raw.get("value"), f"{field_name}.value")
        return CountCondition(op=op, value=_clamp(value, bounds))
    raise InvalidArgument(
        f"op must be one of {COMPARATORS + (BETWEEN,)}, got {op!r}", field=f"{field_name}.op"
    )


def _compile_numbers(raw: Any, field_name: str) -> tuple[int, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, Sequence) or isinstance(raw, str):
        raise InvalidArgument("expected a list of numbers", field=field_name)
    nums = {_clamp(_to_int(v, field_name), NUMBER_BOUNDS) for v in raw}
    return tuple(sorted(nums))


def _compile_ranges(raw: Any, pack: BucketPack, max_ranges: int) -> tuple[RangeConstraint, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, Sequence) or isinstance(raw, str):
        raise InvalidArgument("expected a list of range conditions", field="ranges")
    if len(raw) > max_ranges:
        raise InvalidArgument(f"at most {max_ranges} range conditions allowed, got {len(raw)}", field="ranges")

    out = []
    for i, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise InvalidArgument("expected an object with key/op/value", field=f"ranges[{i}]")
        key = str(item.get("key", ""))
        if key not in pack.masks:
            raise UnknownBucketKey(key, pack.unit_size, field=f"ranges[{i}].key")
        op = item.get("op")
        if op not in COMPARATORS:
            raise InvalidArgument(f"op must be one of {COMPARATORS}, got {op!r}", field=f"ranges[{i}].op")
        value = _clamp(_to_int(item.get("value", 0), f"ranges[{i}].value"), (0, PICK_COUNT))
        out.append(RangeConstraint(key=key, op=op, value=value))
    return tuple(out)


def resolve_range_unit(unit_size: Any = None, raw: Mapping | None = None) -> int:
    """Top-level unit wins over ``conditions.rangeUnit``, which wins over the default."""
    if unit_size is None and raw is not None:
        unit_size = raw.get("rangeUnit")
    if unit_size is None:
        unit_size = settings.DEFAULT_RANGE_UNIT
    return validate_range_unit(unit_size)


def compile_condition(
    raw: Mapping[str, Any] | None,
    bucket_cache: BucketCache,
    unit_size: int | None = None,
    max_ranges: int | None = None,
) -> Condition:
    """Validate a raw condition object. Raises InvalidArgument on any bad field."""
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise InvalidArgument("conditions must be an object", field="conditions")
    unknown = set(raw) - CONDITION_KEYS
    if unknown:
        raise InvalidArgument(f"unknown condition fields: {sorted(unknown)}", field="conditions")

    pack = bucket_cache.get(resolve_range_unit(unit_size, raw))

    include = _compile_numbers(raw.get("includeNumbers"), "includeNumbers")
    exclude = _compile_numbers(raw.get("excludeNumbers"), "excludeNumbers")
    conflicts = sorted(set(include) & set(exclude))
    if conflicts:
        raise InvalidArgument(
            f"numbers both included and excluded: {conflicts}", field="includeNumbers/excludeNumbers"
        )

    consecutive = raw.get("consecutive")
    if consecutive is not None:
        if not isinstance(consecutive, Mapping):
            raise InvalidArgument("expected an object with 'enabled'", field="consecutive")
        consecutive = bool(consecutive.get("enabled"))

    return Condition(
        unit_size=pack.unit_size,
        ranges=_compile_ranges(
            raw.get("ranges"), pack,
            max_ranges if max_ranges is not None else settings.MAX_RANGE_CONDITIONS,
        ),
        include=include,
        exclude=exclude,
        odd_count=_compile_count(raw.get("oddCount"), ODD_BOUNDS, "oddCount"),
        sum=_compile_count(raw.get("sum"), SUM_BOUNDS, "sum"),
        consecutive=consecutive,
        min_number=_compile_count(raw.get("minNumber"), NUMBER_BOUNDS, "minNumber"),
        max_number=_compile_count(raw.get("maxNumber"), NUMBER_BOUNDS, "maxNumber"),
    )


# ── evaluation ───────────────────────────────────────────────────────

def _match_ranges(mask: int, ranges: tuple[RangeConstraint, ...], masks: Mapping[str, int]) -> bool:
    for rc in ranges:
        bucket_mask = masks.get(rc.key)
        if bucket_mask is None:
            # Compiled conditions never get here; a stray key fails closed
            logger.warning("Range key {} not in bucket pack, treating as no match", rc.key)
            return False
        if not _compare(bitmask.popcount(mask & bucket_mask), rc.op, rc.value):
            return False
    return True


def matches(draw: Draw, condition: Condition, pack: BucketPack) -> bool:
    """Test a draw's main numbers (never the bonus) against every constraint."""
    mask = draw.mask
    nums = draw.numbers

    if condition.ranges and not _match_ranges(mask, condition.ranges, pack.masks):
        return False
    if mask & condition.include_mask != condition.include_mask:
        return False
    if mask & condition.exclude_mask:
        return False
    if condition.odd_count and not condition.odd_count.matches(odd_count(nums)):
        return False
    if condition.sum and not condition.sum.matches(sum(nums)):
        return False
    if condition.consecutive is not None:
        if condition.consecutive != (consecutive_count(nums) > 0):
            return False
    if condition.min_number and not condition.min_number.matches(min(nums)):
        return False
    if condition.max_number and not condition.max_number.matches(max(nums)):
        return False
    return True


@dataclass
class MatchDetail:
    round: int
    numbers: list[int]
    next_numbers: list[int]


@dataclass
class ScanResult:
    start_round: int
    end_round: int
    unit_size: int
    bonus_included: bool
    matched: list[int]
    next_frequency: np.ndarray
    next_range_dist: dict[str, int]
    next_rounds_used: int = 0
    details: list[MatchDetail] | None = None
    truncated: bool = False
    detail_limit: int | None = None


def validate_scan_range(start_round: Any, end_round: Any) -> tuple[int, int]:
    for name, v in (("startRound", start_round), ("endRound", end_round)):
        if isinstance(v, bool) or not isinstance(v, int):
            raise InvalidArgument(f"must be an integer, got {v!r}", field=name)
    if end_round < 2:
        raise InvalidArgument(f"must be at least 2, got {end_round}", field="endRound")
    if start_round < 1 or end_round < start_round:
        raise InvalidArgument(
            f"invalid range {start_round}..{end_round}", field="startRound/endRound"
        )
    return start_round, end_round


def scan(
    snapshot: Snapshot,
    start_round: int,
    end_round: int,
    condition: Condition,
    bucket_cache: BucketCache,
    bonus_included: bool = False,
    include_details: bool = False,
    detail_limit: int | None = None,
) -> ScanResult:
    """Find rounds in ``start..end-1`` matching ``condition`` and tally round r+1.

    Only rounds the snapshot actually holds are visited, so an ``end_round``
    far past the latest draw costs nothing extra; it is still echoed back.

    The condition is tested against the bonus-free numbers; ``bonus_included``
    only affects what is accumulated from the successor round. ``detail_limit``
    bounds the per-round detail list, never the aggregate counts.
    """
    start_round, end_round = validate_scan_range(start_round, end_round)
    pack = bucket_cache.get(condition.unit_size)
    limit = detail_limit if detail_limit is not None else settings.DETAIL_LIMIT

    result = ScanResult(
        start_round=start_round,
        end_round=end_round,
        unit_size=pack.unit_size,
        bonus_included=bonus_included,
        matched=[],
        next_frequency=bitmask.zeros_vector(),
        next_range_dist=pack.empty_dist(),
        details=[] if include_details else None,
        detail_limit=limit if include_details else None,
    )

    # Rounds outside the snapshot can never match
    first = max(start_round, snapshot.first_round)
    stop = min(end_round, snapshot.latest_round + 1)
    for round_no in range(first, stop):
        cur = snapshot.get(round_no)
        if cur is None or not matches(cur, condition, pack):
            continue
        result.matched.append(round_no)

        nxt = snapshot.get(round_no + 1)
        next_mask = nxt.mask_for(bonus_included) if nxt is not None else 0

        if include_details:
            if len(result.details) < limit:
                result.details.append(MatchDetail(
                    round=round_no,
                    numbers=cur.sorted_numbers,
                    next_numbers=bitmask.decode(next_mask),
                ))
            else:
                result.truncated = True

        if nxt is None:
            continue
        result.next_rounds_used += 1
        result.next_frequency[nxt.indices(bonus_included)] += 1
        for b in pack.buckets:
            result.next_range_dist[b.key] += bitmask.popcount(next_mask & b.mask)

    if result.details:
        result.details.sort(key=lambda d: d.round, reverse=True)

    logger.debug(
        "scan {}..{} unit={} matched={} used={}",
        start_round, end_round, pack.unit_size, len(result.matched), result.next_rounds_used,
    )
    return result
