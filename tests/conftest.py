"""Shared snapshot fixtures."""

import pytest

from lotto_nextfreq.core.filter_engine import BucketCache
from lotto_nextfreq.core.snapshot import Snapshot, SnapshotStore


def default_bonus(numbers):
    return next(n for n in range(1, 46) if n not in numbers)


def build_records(rows, rounds=None, bonuses=None):
    rounds = rounds or list(range(1, len(rows) + 1))
    bonuses = bonuses or [default_bonus(nums) for nums in rows]
    return [
        {"round": r, "numbers": list(nums), "bonus": b}
        for r, nums, b in zip(rounds, rows, bonuses)
    ]


ROUNDS_A = [
    [1, 2, 3, 4, 5, 6],
    [7, 8, 9, 10, 11, 12],
    [1, 2, 3, 4, 5, 6],
    [13, 14, 15, 16, 17, 18],
    [1, 2, 3, 4, 5, 6],
]

# All-odd draws at rounds 3 and 7 only
ROUNDS_B = [
    [2, 4, 6, 8, 10, 12],
    [1, 2, 3, 4, 5, 6],
    [1, 3, 5, 7, 9, 11],
    [10, 20, 30, 40, 41, 42],
    [11, 12, 13, 14, 15, 16],
    [21, 22, 23, 24, 25, 26],
    [13, 15, 17, 19, 21, 23],
    [2, 3, 5, 7, 11, 13],
    [31, 32, 33, 34, 35, 36],
    [40, 41, 42, 43, 44, 45],
]


@pytest.fixture
def make_snapshot():
    def _make(rows, rounds=None, bonuses=None, version=0):
        return Snapshot.from_records(build_records(rows, rounds, bonuses), version=version)
    return _make


@pytest.fixture
def snapshot_a(make_snapshot):
    return make_snapshot(ROUNDS_A)


@pytest.fixture
def snapshot_b(make_snapshot):
    return make_snapshot(ROUNDS_B)


@pytest.fixture
def store_b(snapshot_b):
    return SnapshotStore(snapshot_b)


@pytest.fixture
def bucket_cache():
    return BucketCache()
