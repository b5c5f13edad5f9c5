"""ORM models package."""

from lotto_nextfreq.db.models.lotto_draw import LottoDraw

__all__ = [
    "LottoDraw",
]
