"""Lotto 6/45 draw ORM model."""

from datetime import date

from sqlalchemy import Date, Integer
from sqlalchemy.orm import Mapped, mapped_column

from lotto_nextfreq.db.base import Base


class LottoDraw(Base):
    """One drawing: six main numbers from 45 plus a bonus number."""

    __tablename__ = "lotto_draws"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)
    draw_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)

    # Original draw order
    num_1: Mapped[int] = mapped_column(Integer, nullable=False)
    num_2: Mapped[int] = mapped_column(Integer, nullable=False)
    num_3: Mapped[int] = mapped_column(Integer, nullable=False)
    num_4: Mapped[int] = mapped_column(Integer, nullable=False)
    num_5: Mapped[int] = mapped_column(Integer, nullable=False)
    num_6: Mapped[int] = mapped_column(Integer, nullable=False)
    bonus_num: Mapped[int] = mapped_column(Integer, nullable=False)

    @property
    def numbers(self) -> list[int]:
        return [self.num_1, self.num_2, self.num_3, self.num_4, self.num_5, self.num_6]

    def __repr__(self) -> str:
        return f"<LottoDraw round={self.round} numbers={self.numbers} bonus={self.bonus_num}>"
