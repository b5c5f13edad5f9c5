"""tests/test_aggregator.py"""
import pytest

from lotto_nextfreq.core import aggregator
from lotto_nextfreq.core.classify import Scheme
from lotto_nextfreq.errors import InvalidArgument, NotFound

A = [1, 2, 3, 4, 5, 6]
B = [7, 8, 9, 10, 11, 12]


class TestAggregate:
    def test_exact_numbers_history(self, snapshot_a):
        result = aggregator.aggregate(snapshot_a, 5, Scheme.EXACT)
        assert result.match_count == 2
        assert result.next_rounds_used == 2
        for n in range(7, 19):
            assert result.frequency[n] == 1
        for n in list(range(1, 7)) + list(range(19, 46)):
            assert result.frequency[n] == 0

    def test_only_rounds_before_target_are_used(self, snapshot_a):
        result = aggregator.aggregate(snapshot_a, 3, "exact-numbers")
        assert result.match_count == 1
        assert result.frequency[7] == 1
        assert result.frequency[13] == 0

    def test_match_without_successor_still_counted(self, make_snapshot):
        snap = make_snapshot([A, A, B, A], rounds=[1, 2, 4, 5])
        result = aggregator.aggregate(snap, 5, Scheme.EXACT)
        assert result.match_count == 2
        assert result.next_rounds_used == 1
        assert result.frequency[1] == 1

    def test_bonus_included_adds_successor_bonus(self, snapshot_a):
        without = aggregator.aggregate(snapshot_a, 5, Scheme.EXACT)
        with_bonus = aggregator.aggregate(snapshot_a, 5, Scheme.EXACT, bonus_included=True)
        # rounds 2 and 4 both carry bonus 1
        assert without.frequency[1] == 0
        assert with_bonus.frequency[1] == 2
        assert with_bonus.frequency.sum() == 14

    def test_frequency_total_is_six_per_successor(self, snapshot_b):
        for scheme in Scheme:
            result = aggregator.aggregate(snapshot_b, 10, scheme)
            assert result.frequency.sum() == 6 * result.next_rounds_used

    def test_first_round_has_no_history(self, snapshot_a):
        result = aggregator.aggregate(snapshot_a, 1, Scheme.ZONE)
        assert result.match_count == 0
        assert result.frequency.sum() == 0

    def test_missing_target(self, snapshot_a):
        with pytest.raises(NotFound) as exc:
            aggregator.aggregate(snapshot_a, 99, Scheme.ZONE)
        assert exc.value.round == 99

    @pytest.mark.parametrize("round_no", [0, -3, "5", True])
    def test_bad_target_round(self, snapshot_a, round_no):
        with pytest.raises(InvalidArgument):
            aggregator.aggregate(snapshot_a, round_no, Scheme.ZONE)

    def test_unknown_scheme(self, snapshot_a):
        with pytest.raises(InvalidArgument):
            aggregator.aggregate(snapshot_a, 5, "moon-phase")


class TestKMatch:
    def test_overlap_of_three(self, snapshot_b):
        result = aggregator.aggregate_k_match(snapshot_b, 10)
        assert result.match_count["3"] == 1
        assert result.next_rounds_used["3"] == 1
        for n in range(11, 17):
            assert result.frequency["3"][n] == 1
        assert result.match_count["4+"] == 0

    def test_buckets_are_exhaustive(self, snapshot_b):
        target = snapshot_b.get(8)
        result = aggregator.aggregate_k_match(snapshot_b, 8)
        overlapping = sum(1 for r in snapshot_b.before(8) if r.mask & target.mask)
        assert sum(result.match_count.values()) == overlapping
        assert set(result.match_count) == {"1", "2", "3", "4+"}

    def test_identical_draw_lands_in_4_plus(self, snapshot_a):
        result = aggregator.aggregate_k_match(snapshot_a, 5)
        assert result.match_count["4+"] == 2
        assert result.match_count["1"] == 0

    @pytest.mark.parametrize("k,bucket", [(0, None), (1, "1"), (3, "3"), (4, "4+"), (6, "4+")])
    def test_k_bucket(self, k, bucket):
        assert aggregator.k_bucket(k) == bucket


class TestPerNumber:
    def test_tracks_target_numbers(self, snapshot_a):
        per_number = aggregator.aggregate_per_number(snapshot_a, 5)
        assert sorted(per_number) == [1, 2, 3, 4, 5, 6]
        assert per_number[1][7] == 1
        assert per_number[1][13] == 1
        assert per_number[1][1] == 0

    def test_bonus_is_tracked_when_included(self, snapshot_a):
        # round 5 bonus is 7
        per_number = aggregator.aggregate_per_number(snapshot_a, 5, bonus_included=True)
        assert 7 in per_number
        # 7 appears in round 1 (bonus), round 2 (main), round 3 (bonus)
        assert per_number[7][1] == 3


class TestWindowStats:
    def test_recent_frequency(self, snapshot_a):
        freq = aggregator.recent_frequency(snapshot_a, 5, 2)
        assert freq[1] == 1
        assert freq[13] == 1
        assert freq[7] == 0

    def test_recent_window_clipped_at_round_one(self, snapshot_a):
        freq = aggregator.recent_frequency(snapshot_a, 2, 10)
        assert freq.sum() == 12

    def test_recent_count_must_be_positive(self, snapshot_a):
        with pytest.raises(InvalidArgument):
            aggregator.recent_frequency(snapshot_a, 5, 0)

    def test_odd_even_next(self, snapshot_b):
        result = aggregator.odd_even_next(snapshot_b, 7)
        assert result.odd_count == 6
        assert result.match_count == 1
        assert (result.odd, result.even) == (1, 5)
        assert result.ratio == pytest.approx(1 / 6)

    def test_odd_even_ratio_without_matches(self, snapshot_b):
        result = aggregator.odd_even_next(snapshot_b, 1)
        assert result.match_count == 0
        assert result.ratio == 0.0

    def test_last_appearance(self, snapshot_a):
        last = aggregator.last_appearance(snapshot_a, 4)
        assert last[1] == 3
        assert last[13] == 4
        assert last[45] == 0
        assert aggregator.last_appearance(snapshot_a, 4, bonus_included=True)[1] == 4


class TestConsecutiveAppearances:
    def test_counts_streaks(self, make_snapshot):
        snap = make_snapshot([A, A, B, A, A, A])
        counts = aggregator.consecutive_appearances(snap, 6)
        assert counts[1] == 2
        assert counts[7] == 0

    def test_alternating_draws_have_no_streaks(self, snapshot_a):
        counts = aggregator.consecutive_appearances(snapshot_a, 5)
        assert all(v == 0 for v in counts.values())

    def test_stops_at_gap(self, make_snapshot):
        snap = make_snapshot([A, A, A, A], rounds=[1, 2, 4, 5])
        assert aggregator.consecutive_appearances(snap, 5)[1] == 1


class TestAnalyzeRound:
    def test_bundle(self, snapshot_a):
        analysis = aggregator.analyze_round(snapshot_a, 3, recent_count=2)
        assert analysis.target.round == 3
        assert analysis.total_rounds_analyzed == 2
        assert set(analysis.schemes) == set(Scheme)
        assert analysis.schemes[Scheme.EXACT].match_count == 1
        assert analysis.next_draw.round == 4
        assert analysis.recent_count == 2

    def test_latest_round_has_no_next_draw(self, snapshot_a):
        assert aggregator.analyze_round(snapshot_a, 5).next_draw is None

    def test_missing_target(self, snapshot_a):
        with pytest.raises(NotFound):
            aggregator.analyze_round(snapshot_a, 6)


class TestSimilarDistRounds:
    def test_ranked_by_similarity(self, snapshot_b):
        result = aggregator.similar_dist_rounds(snapshot_b, 10)
        assert result.pattern.pattern_str == "S-S-S-S-S"
        # round 4 (10-20-30-40-41-42) is the only one under the threshold
        assert result.match_count == 8
        assert [m.round for m in result.matches] == [2, 5, 6, 9, 1, 3, 7, 8]
        assert result.matches[0].similarity == pytest.approx(1.0)
        assert result.matches[-1].similarity == pytest.approx(0.982)
        assert result.matches[3].next_numbers == [40, 41, 42, 43, 44, 45]
        assert result.next_draw is None

    def test_frequency_covers_every_match_beyond_top_n(self, snapshot_b):
        result = aggregator.similar_dist_rounds(snapshot_b, 10, top_n=3)
        assert [m.round for m in result.matches] == [2, 5, 6]
        assert result.match_count == 8
        assert result.frequency.sum() == 48
        for n in (1, 13, 40, 41):
            assert result.frequency[n] == 2

    def test_exact_method_threshold(self, snapshot_b):
        result = aggregator.similar_dist_rounds(snapshot_b, 10, min_similarity=0.96, method="exact")
        assert [m.round for m in result.matches] == [2, 5, 6, 9]

    def test_rounds_without_successor_are_skipped(self, make_snapshot):
        snap = make_snapshot([[1, 2, 3, 4, 5, 6]] * 4, rounds=[1, 2, 4, 5])
        result = aggregator.similar_dist_rounds(snap, 5)
        assert [m.round for m in result.matches] == [1, 4]
        assert result.matches[1].next_round == 5

    def test_next_draw(self, snapshot_b):
        assert aggregator.similar_dist_rounds(snapshot_b, 9).next_draw.round == 10

    @pytest.mark.parametrize("kwargs", [
        {"min_similarity": 1.5},
        {"min_similarity": -0.1},
        {"min_similarity": True},
        {"top_n": 0},
        {"method": "cosine"},
    ])
    def test_invalid_arguments(self, snapshot_b, kwargs):
        with pytest.raises(InvalidArgument):
            aggregator.similar_dist_rounds(snapshot_b, 10, **kwargs)

    def test_missing_target(self, snapshot_b):
        with pytest.raises(NotFound):
            aggregator.similar_dist_rounds(snapshot_b, 11)


class TestIntervalPatterns:
    def test_patterns_complete_at_appearance(self):
        assert list(aggregator.interval_patterns([3, 10, 12, 30], 3)) == [("M-S-L", 30)]
        assert aggregator.latest_interval_pattern([3, 10, 12, 30], 3) == "M-S-L"
        assert aggregator.latest_interval_pattern([3, 10, 12], 3) is None

    def test_index_spans_numbers(self):
        index = aggregator.interval_pattern_index({1: [1, 2, 3, 4], 2: [2, 3, 4, 5], 3: [1]}, 3)
        assert index == {"S-S-S": [4, 5]}

    def test_too_few_samples(self, make_snapshot):
        snap = make_snapshot([[1, 2, 3, 4, 5, 6]] * 6)
        result = aggregator.interval_pattern_next(snap, {"S-S-S": [4, 5]}, 1, "S-S-S", 6, min_sample=3)
        assert result.sample_count == 0
        assert result.frequency.sum() == 0


class TestIntervalAnalysis:
    SAME = [1, 2, 3, 4, 5, 6]

    def test_repeating_draw(self, make_snapshot):
        analysis = aggregator.interval_analysis(make_snapshot([self.SAME] * 6))
        assert (analysis.start_round, analysis.end_round) == (1, 6)
        assert analysis.base.round == 6
        one = analysis.per_number[0]
        assert (one.number, one.appear_count, one.latest_pattern) == (1, 6, "S-S-S")
        assert (one.pattern_sample_count, one.current_gap, one.last_gap) == (3, 0, 1)
        seven = analysis.per_number[6]
        assert (seven.appear_count, seven.latest_pattern, seven.current_gap) == (0, None, None)

        assert [b.number for b in analysis.base_next] == self.SAME
        first = analysis.base_next[0]
        # six numbers completed S-S-S at rounds 4, 5 and 6; round 7 is out of range
        assert first.sample_count == 18
        assert first.next_rounds_used == 12
        assert first.frequency[1] == 12
        assert analysis.next_draw is None

    def test_end_clamped_to_latest(self, make_snapshot):
        analysis = aggregator.interval_analysis(make_snapshot([self.SAME] * 6), 2, 99)
        assert (analysis.start_round, analysis.end_round) == (2, 6)
        assert analysis.per_number[0].appear_count == 5
        assert analysis.base_next[0].sample_count == 12
        assert analysis.base_next[0].next_rounds_used == 6

    def test_window_before_latest_reports_next_draw(self, make_snapshot):
        analysis = aggregator.interval_analysis(make_snapshot([self.SAME] * 6), 1, 5)
        assert analysis.base.round == 5
        assert analysis.next_draw.round == 6

    def test_bonus_only_changes_tally(self, make_snapshot):
        snap = make_snapshot([self.SAME] * 6)
        plain = aggregator.interval_analysis(snap)
        with_bonus = aggregator.interval_analysis(snap, bonus_included=True)
        assert plain.base_next[0].frequency[7] == 0
        assert with_bonus.base_next[0].frequency[7] == 12
        assert with_bonus.per_number[6].appear_count == 0

    def test_base_numbers_without_history(self, make_snapshot):
        analysis = aggregator.interval_analysis(make_snapshot([self.SAME] * 6 + [[7, 8, 9, 10, 11, 12]]))
        assert analysis.per_number[0].current_gap == 1
        assert [b.pattern for b in analysis.base_next] == [None] * 6
        assert all(b.sample_count == 0 for b in analysis.base_next)

    def test_sparse_number(self, snapshot_b):
        analysis = aggregator.interval_analysis(snapshot_b)
        n41 = analysis.per_number[40]
        assert (n41.number, n41.appear_count, n41.last_gap, n41.current_gap) == (41, 2, 6, 0)

    @pytest.mark.parametrize("start,end", [(8, None), (0, 5), (3, 2)])
    def test_invalid_window(self, make_snapshot, start, end):
        with pytest.raises(InvalidArgument):
            aggregator.interval_analysis(make_snapshot([self.SAME] * 6), start, end)
