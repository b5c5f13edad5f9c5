"""tests/test_services.py"""
import asyncio
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from loguru import logger

from lotto_nextfreq import scheduler
from lotto_nextfreq.core.snapshot import SnapshotStore
from lotto_nextfreq.db.models.lotto_draw import LottoDraw
from lotto_nextfreq.errors import InvalidArgument, NotFound
from lotto_nextfreq.schemas.analysis import NextFreqRequest
from lotto_nextfreq.schemas.draw import DrawSchema
from lotto_nextfreq.services import analysis_service, snapshot_service

CRUD = "lotto_nextfreq.services.snapshot_service.crud"


def make_row(round_no, numbers, bonus, draw_date=None):
    n = list(numbers)
    return LottoDraw(
        round=round_no, draw_date=draw_date,
        num_1=n[0], num_2=n[1], num_3=n[2], num_4=n[3], num_5=n[4], num_6=n[5],
        bonus_num=bonus,
    )


def session_factory(session=None):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session or MagicMock()
    return factory


class TestRebuildSnapshot:
    def setup_method(self):
        self.rows = [
            make_row(1, [10, 23, 29, 33, 37, 40], 16, date(2002, 12, 7)),
            make_row(2, [9, 13, 21, 25, 32, 42], 2, date(2002, 12, 14)),
        ]

    def test_loads_rows_into_store(self, store_b):
        with patch(f"{CRUD}.get_all_sorted_by_round", AsyncMock(return_value=self.rows)):
            snapshot = asyncio.run(snapshot_service.rebuild_snapshot(store_b, session_factory()))
        assert store_b.snapshot is snapshot
        assert snapshot.version == 1
        assert len(snapshot) == 2
        assert snapshot.get(2).bonus == 2
        assert snapshot.get(1).draw_date == date(2002, 12, 7)

    def test_bad_row_keeps_previous_snapshot(self, store_b):
        before = store_b.snapshot
        rows = self.rows + [make_row(3, [1, 1, 2, 3, 4, 5], 6)]
        with patch(f"{CRUD}.get_all_sorted_by_round", AsyncMock(return_value=rows)):
            with pytest.raises(InvalidArgument):
                asyncio.run(snapshot_service.rebuild_snapshot(store_b, session_factory()))
        assert store_b.snapshot is before


class TestImportDraws:
    def test_rows_are_flattened(self):
        draws = [DrawSchema(round=3, numbers=[11, 16, 19, 21, 27, 31], bonus=30)]
        bulk = AsyncMock(return_value=1)
        latest = AsyncMock(return_value=make_row(3, [11, 16, 19, 21, 27, 31], 30))
        with patch(f"{CRUD}.bulk_upsert", bulk), patch(f"{CRUD}.get_latest", latest):
            inserted, latest_round = asyncio.run(snapshot_service.import_draws(MagicMock(), draws))
        assert (inserted, latest_round) == (1, 3)
        row = bulk.call_args.args[1][0]
        assert row["num_1"] == 11
        assert row["bonus_num"] == 30

    def test_missing_bonus(self):
        with pytest.raises(InvalidArgument):
            snapshot_service.schema_to_row(DrawSchema(round=3, numbers=[1, 2, 3, 4, 5, 6]))

    def test_invalid_numbers_rejected_before_insert(self):
        bulk = AsyncMock()
        draws = [DrawSchema(round=3, numbers=[1, 2, 3, 4, 5, 99], bonus=7)]
        with patch(f"{CRUD}.bulk_upsert", bulk):
            with pytest.raises(InvalidArgument):
                asyncio.run(snapshot_service.import_draws(MagicMock(), draws))
        bulk.assert_not_called()


class TestScheduledRebuild:
    def test_failure_is_logged_and_store_kept(self, store_b):
        messages = []
        sink_id = logger.add(messages.append, level="ERROR")
        before = store_b.snapshot
        try:
            with patch(
                "lotto_nextfreq.services.snapshot_service.rebuild_snapshot",
                AsyncMock(side_effect=RuntimeError("db down")),
            ):
                asyncio.run(scheduler._rebuild_job(store_b))
        finally:
            logger.remove(sink_id)
        assert store_b.snapshot is before
        assert any("db down" in m for m in messages)

    def test_status_without_scheduler(self):
        assert scheduler.get_scheduler_status() == []


class TestAnalysisService:
    def test_next_freq_defaults(self, store_b, bucket_cache):
        response = analysis_service.get_next_freq(store_b, bucket_cache, NextFreqRequest())
        assert response.meta.start_round == 1
        assert response.meta.end_round == 10
        assert response.meta.range_unit == 7

    def test_top_level_range_unit_wins(self, store_b, bucket_cache):
        request = NextFreqRequest(rangeUnit=5, conditions={"rangeUnit": 10})
        response = analysis_service.get_next_freq(store_b, bucket_cache, request)
        assert response.meta.range_unit == 5
        assert "41-45" in response.next_range_dist
        assert "1-5" in response.next_range_dist

    def test_aggregate_uses_live_snapshot(self, store_b):
        response = analysis_service.get_aggregate(store_b, 10, "zone")
        assert response.round == 10
        assert response.scheme == "zone"

    def test_round_analysis_default_recent(self, store_b):
        response = analysis_service.get_round_analysis(store_b, 5)
        assert response.meta.recent_count == 10
        assert sum(response.recent_freq.values()) == 30

    def test_round_pattern_defaults_to_latest(self, store_b):
        response = analysis_service.get_round_pattern(store_b)
        assert response.round == 10
        assert response.method == "hybrid"
        assert response.min_similarity == 0.7
        assert response.match_count == 8
        assert len(response.similar_matches) == 8

    def test_round_pattern_on_empty_snapshot(self):
        with pytest.raises(NotFound):
            analysis_service.get_round_pattern(SnapshotStore())

    def test_interval_defaults(self, store_b):
        response = analysis_service.get_interval_analysis(store_b)
        assert (response.start_round, response.end_round) == (1, 10)
        assert response.pattern_len == 3
        assert response.min_sample == 3
        assert response.base_numbers == [40, 41, 42, 43, 44, 45]
