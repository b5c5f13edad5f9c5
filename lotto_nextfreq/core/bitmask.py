"""Bitmask codec for sets of lotto numbers.

Number ``n`` occupies bit ``n - BASE``. The domain is 45 numbers wide, so a
mask always fits in a 64-bit word; ``encode`` refuses anything outside the
domain instead of silently growing the integer.
"""

from collections.abc import Iterable

import numpy as np

from lotto_nextfreq.config import settings
from lotto_nextfreq.errors import InvalidArgument

BASE: int = settings.NUMBER_BASE
DOMAIN_SIZE = 45
MIN_NUMBER = BASE
MAX_NUMBER = BASE + DOMAIN_SIZE - 1
MASK_WIDTH = 64

# Dense vectors are indexed by the number itself, so index 0 is unused when BASE == 1
VECTOR_LENGTH = MAX_NUMBER + 1


def in_domain(n: int) -> bool:
    return MIN_NUMBER <= n <= MAX_NUMBER


def bit(n: int) -> int:
    """Single-bit mask for number ``n``."""
    shift = n - BASE
    if not 0 <= shift < DOMAIN_SIZE:
        raise InvalidArgument(f"{n} is outside {MIN_NUMBER}..{MAX_NUMBER}", field="number")
    return 1 << shift


def encode(numbers: Iterable[int], bonus: int | None = None) -> int:
    """Encode numbers (and optionally a bonus number) as a bitmask."""
    mask = 0
    for n in numbers:
        mask |= bit(int(n))
    if bonus is not None:
        mask |= bit(int(bonus))
    return mask


def has(mask: int, n: int) -> bool:
    if not in_domain(n):
        return False
    return (mask >> (n - BASE)) & 1 == 1


def decode(mask: int) -> list[int]:
    """Sorted list of the numbers whose bits are set."""
    return [n for n in range(MIN_NUMBER, MAX_NUMBER + 1) if (mask >> (n - BASE)) & 1]


def popcount(mask: int) -> int:
    return int(mask).bit_count()


def intersect_count(a: int, b: int) -> int:
    return popcount(a & b)


def range_mask(lo: int, hi: int) -> int:
    """Mask with every number in ``lo..hi`` (inclusive) set."""
    mask = 0
    for n in range(lo, hi + 1):
        mask |= bit(n)
    return mask


def zeros_vector() -> np.ndarray:
    """Dense per-number counter, indexed by number."""
    return np.zeros(VECTOR_LENGTH, dtype=np.int64)
