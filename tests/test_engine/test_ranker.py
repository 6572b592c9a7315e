"""
Tests for movielens_olap/engine/ranker.py.

What we test
------------
rank_accumulator():
  - items below min_votes are dropped; the threshold is inclusive.
  - ordering is average desc, count desc, item id asc.
  - at most n rows; all qualifying rows when fewer than n qualify.
  - n=0 -> []; negative n or min_votes -> ValueError.
  - no item appears twice.

rank_strata():
  - one report per configured stratum, named Top{n}_{label}, in stratum order.
  - strata missing from the accumulators yield empty lists.
"""

from __future__ import annotations

import random

import pytest

from movielens_olap.engine.accumulator import Accumulator
from movielens_olap.engine.ranker import (
    rank_accumulator,
    rank_strata,
    ranking_key,
    report_name,
)
from movielens_olap.engine.strata import Stratum, StratumClassifier
from movielens_olap.models.report import RankedRow


def _acc(pairs: list[tuple[int, float]]) -> Accumulator:
    acc = Accumulator()
    for item_id, score in pairs:
        acc.update(item_id, score)
    return acc


# ── Threshold ─────────────────────────────────────────────────────────────────

class TestMinVotes:
    def test_item_below_threshold_dropped(self):
        acc = _acc([(1, 5.0)] * 4)
        assert rank_accumulator(acc, n=10, min_votes=5) == []

    def test_threshold_is_inclusive(self):
        acc = _acc([(1, 5.0)] * 5)
        rows = rank_accumulator(acc, n=10, min_votes=5)
        assert rows == [RankedRow(item_id=1, average=5.0, count=5)]

    def test_worked_example(self):
        # six 5.0s and two 3.0s: average 4.5 over 8 ratings
        acc = _acc([(10, 5.0)] * 6 + [(10, 3.0)] * 2)
        assert rank_accumulator(acc, n=10, min_votes=5) == [
            RankedRow(item_id=10, average=4.5, count=8)
        ]
        assert rank_accumulator(acc, n=10, min_votes=9) == []

    def test_min_votes_zero_keeps_everything(self):
        acc = _acc([(1, 1.0), (2, 2.0)])
        assert [r.item_id for r in rank_accumulator(acc, n=10, min_votes=0)] == [2, 1]


# ── Ordering ──────────────────────────────────────────────────────────────────

class TestOrdering:
    def test_average_descending(self):
        acc = _acc([(1, 3.0), (2, 5.0), (3, 4.0)])
        rows = rank_accumulator(acc, n=10, min_votes=1)
        assert [r.item_id for r in rows] == [2, 3, 1]

    def test_count_breaks_average_tie(self):
        acc = _acc([(1, 4.0)] * 2 + [(2, 4.0)] * 5)
        rows = rank_accumulator(acc, n=10, min_votes=1)
        assert [r.item_id for r in rows] == [2, 1]

    def test_item_id_breaks_full_tie(self):
        acc = _acc([(7, 4.0)] * 3 + [(3, 4.0)] * 3)
        rows = rank_accumulator(acc, n=10, min_votes=1)
        assert [r.item_id for r in rows] == [3, 7]

    def test_order_is_total_and_unique(self):
        rng = random.Random(5)
        pairs = [(rng.randint(1, 60), float(rng.randint(1, 5))) for _ in range(1_500)]
        rows = rank_accumulator(_acc(pairs), n=100, min_votes=1)
        ids = [r.item_id for r in rows]
        assert len(ids) == len(set(ids))
        keys = [ranking_key(r) for r in rows]
        assert keys == sorted(keys)

    def test_ranking_key(self):
        assert ranking_key(RankedRow(item_id=4, average=3.5, count=9)) == (-3.5, -9, 4)


# ── Size ──────────────────────────────────────────────────────────────────────

class TestSize:
    def test_at_most_n(self):
        acc = _acc([(i, float(i % 5)) for i in range(1, 50)])
        assert len(rank_accumulator(acc, n=10, min_votes=1)) == 10

    def test_fewer_qualifying_than_n(self):
        acc = _acc([(1, 4.0)] * 5 + [(2, 3.0)] * 5 + [(3, 5.0)])
        rows = rank_accumulator(acc, n=10, min_votes=5)
        assert [r.item_id for r in rows] == [1, 2]

    def test_n_zero(self):
        assert rank_accumulator(_acc([(1, 4.0)] * 6), n=0, min_votes=1) == []

    def test_empty_accumulator(self):
        assert rank_accumulator(Accumulator()) == []

    @pytest.mark.parametrize("n,min_votes", [(-1, 5), (10, -1)])
    def test_negative_arguments_rejected(self, n, min_votes):
        with pytest.raises(ValueError):
            rank_accumulator(Accumulator(), n=n, min_votes=min_votes)


# ── rank_strata ───────────────────────────────────────────────────────────────

def test_report_name():
    assert report_name(Stratum("genre=Action", "Action"), 10) == "Top10_Action"


def test_rank_strata_names_and_order():
    classifier = StratumClassifier()
    reports = rank_strata({}, classifier.strata, n=5, min_votes=1)
    assert list(reports) == [
        "Top5_General", "Top5_Male", "Top5_Female",
        "Top5_Age_LT18", "Top5_Age_18to30", "Top5_Age_GT30",
        "Top5_Action", "Top5_Drama", "Top5_Comedy", "Top5_Fantasy",
    ]
    assert all(rows == [] for rows in reports.values())


def test_rank_strata_uses_matching_accumulator():
    strata = [Stratum("overall", "General"), Stratum("genre=Drama", "Drama")]
    accumulators = {"overall": _acc([(1, 4.0), (2, 5.0)])}
    reports = rank_strata(accumulators, strata, n=10, min_votes=1)
    assert [r.item_id for r in reports["Top10_General"]] == [2, 1]
    assert reports["Top10_Drama"] == []
