"""In-memory, round-indexed draw snapshot.

A ``Snapshot`` is never mutated after construction. ``SnapshotStore`` owns the
current snapshot and replaces it wholesale on rebuild, so a reader that grabs
``store.snapshot`` once sees a single consistent version for the whole query.
"""

import bisect
import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import numpy as np
from loguru import logger

from lotto_nextfreq.core import bitmask
from lotto_nextfreq.errors import InvalidArgument

PICK_COUNT = 6


@dataclass(frozen=True)
class Draw:
    """One historical drawing.

    ``mask`` and ``bonus_mask`` are derived from ``numbers``/``bonus`` and are
    recomputed whenever a new Draw is built (including ``dataclasses.replace``).
    When the bonus duplicates a main number, ``bonus_mask`` has 6 bits set, not 7.
    """

    round: int
    numbers: tuple[int, ...]
    bonus: int
    draw_date: date | None = None

    mask: int = field(init=False, compare=False)
    bonus_mask: int = field(init=False, compare=False)
    _main_idx: np.ndarray = field(init=False, compare=False, repr=False)
    _bonus_idx: np.ndarray = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.round, int) or isinstance(self.round, bool) or self.round < 1:
            raise InvalidArgument(f"round must be a positive integer, got {self.round!r}", field="round")
        numbers = tuple(int(n) for n in self.numbers)
        if len(numbers) != PICK_COUNT or len(set(numbers)) != PICK_COUNT:
            raise InvalidArgument(
                f"round {self.round} needs {PICK_COUNT} distinct numbers, got {list(numbers)}",
                field="numbers",
            )
        mask = bitmask.encode(numbers)
        bonus_mask = mask | bitmask.bit(int(self.bonus))

        object.__setattr__(self, "numbers", numbers)
        object.__setattr__(self, "mask", mask)
        object.__setattr__(self, "bonus_mask", bonus_mask)
        object.__setattr__(self, "_main_idx", np.array(bitmask.decode(mask), dtype=np.intp))
        object.__setattr__(self, "_bonus_idx", np.array(bitmask.decode(bonus_mask), dtype=np.intp))

    @property
    def sorted_numbers(self) -> list[int]:
        return sorted(self.numbers)

    def mask_for(self, bonus_included: bool) -> int:
        return self.bonus_mask if bonus_included else self.mask

    def indices(self, bonus_included: bool) -> np.ndarray:
        """Numbers set in the (optionally bonus-inclusive) mask, for vector indexing."""
        return self._bonus_idx if bonus_included else self._main_idx

    def to_dict(self) -> dict:
        return {
            "round": self.round,
            "numbers": self.sorted_numbers,
            "bonus": self.bonus,
            "draw_date": self.draw_date,
        }


def draw_from_record(record: Mapping[str, Any]) -> Draw:
    """Build a Draw from a ``{round, numbers, bonus[, draw_date]}`` record."""
    try:
        return Draw(
            round=record["round"],
            numbers=tuple(record["numbers"]),
            bonus=record["bonus"],
            draw_date=record.get("draw_date"),
        )
    except KeyError as e:
        raise InvalidArgument(f"draw record is missing {e.args[0]!r}", field="record") from e


class Snapshot:
    """Immutable collection of draws indexed by round."""

    def __init__(self, draws: Iterable[Draw] = (), version: int = 0):
        by_round: dict[int, Draw] = {}
        for d in draws:
            if d.round in by_round:
                raise InvalidArgument(f"duplicate round {d.round} in snapshot source", field="round")
            by_round[d.round] = d
        self._by_round = by_round
        self._rounds = sorted(by_round)
        self.version = version

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], version: int = 0) -> "Snapshot":
        return cls((draw_from_record(r) for r in records), version=version)

    def __len__(self) -> int:
        return len(self._rounds)

    def __contains__(self, round_no: int) -> bool:
        return round_no in self._by_round

    def __iter__(self) -> Iterator[Draw]:
        for r in self._rounds:
            yield self._by_round[r]

    def get(self, round_no: int) -> Draw | None:
        return self._by_round.get(round_no)

    def range(self, start: int, end: int) -> list[Draw]:
        """Draws with ``start <= round <= end`` in round order; missing rounds are skipped."""
        if not self._rounds or end < start:
            return []
        lo = max(start, self._rounds[0])
        hi = min(end, self._rounds[-1])
        by_round = self._by_round
        return [by_round[r] for r in range(lo, hi + 1) if r in by_round]

    def before(self, round_no: int) -> list[Draw]:
        """All draws strictly before ``round_no``, in round order."""
        cut = bisect.bisect_left(self._rounds, round_no)
        return [self._by_round[r] for r in self._rounds[:cut]]

    def all(self) -> list[Draw]:
        return list(self)

    @property
    def rounds(self) -> list[int]:
        return list(self._rounds)

    @property
    def latest_round(self) -> int:
        return self._rounds[-1] if self._rounds else 0

    @property
    def first_round(self) -> int:
        return self._rounds[0] if self._rounds else 0

    def stats(self) -> dict:
        if not self._rounds:
            return {
                "total_rounds": 0,
                "first_round": 0,
                "last_round": 0,
                "date_from": None,
                "date_to": None,
            }
        first = self._by_round[self._rounds[0]]
        last = self._by_round[self._rounds[-1]]
        return {
            "total_rounds": len(self._rounds),
            "first_round": first.round,
            "last_round": last.round,
            "date_from": first.draw_date,
            "date_to": last.draw_date,
        }

    def number_history(self, n: int) -> dict:
        """Appearance counts of a single number, split by main and bonus."""
        if not bitmask.in_domain(n):
            raise InvalidArgument(
                f"{n} is outside {bitmask.MIN_NUMBER}..{bitmask.MAX_NUMBER}", field="number"
            )
        as_main = 0
        as_bonus = 0
        last_appearance = None
        for d in self:
            if bitmask.has(d.mask, n):
                as_main += 1
                last_appearance = d.round
            elif d.bonus == n:
                as_bonus += 1
                last_appearance = d.round
        return {
            "number": n,
            "total_appearances": as_main + as_bonus,
            "as_main": as_main,
            "as_bonus": as_bonus,
            "last_appearance": last_appearance,
        }


class SnapshotStore:
    """Owner of the live snapshot.

    Readers call ``store.snapshot`` without locking; ``rebuild`` builds the new
    snapshot completely and then swaps the reference in one assignment.
    """

    def __init__(self, snapshot: Snapshot | None = None):
        self._snapshot = snapshot if snapshot is not None else Snapshot()
        self._write_lock = threading.Lock()

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def rebuild(self, records: Iterable[Mapping[str, Any]]) -> Snapshot:
        """Replace the live snapshot with one built from ``records``.

        If building fails the previous snapshot stays live.
        """
        with self._write_lock:
            fresh = Snapshot.from_records(records, version=self._snapshot.version + 1)
            self._snapshot = fresh
        logger.info(
            "Snapshot rebuilt: version={} rounds={} latest={}",
            fresh.version, len(fresh), fresh.latest_round,
        )
        return fresh

    def get_draw(self, round_no: int) -> Draw | None:
        return self._snapshot.get(round_no)

    def get_range(self, start: int, end: int) -> list[Draw]:
        return self._snapshot.range(start, end)

    def latest_round(self) -> int:
        return self._snapshot.latest_round
