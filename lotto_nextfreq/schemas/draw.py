"""Pydantic schemas for draws and snapshot metadata."""

from datetime import date

from pydantic import BaseModel


class DrawSchema(BaseModel):
    round: int
    numbers: list[int]
    bonus: int | None = None
    draw_date: date | None = None


class SnapshotStats(BaseModel):
    version: int
    total_rounds: int
    first_round: int
    last_round: int
    date_from: date | None = None
    date_to: date | None = None


class NumberHistory(BaseModel):
    number: int
    total_appearances: int
    as_main: int
    as_bonus: int
    last_appearance: int | None = None


class RebuildResponse(BaseModel):
    version: int
    total_rounds: int
    latest_round: int
    message: str
