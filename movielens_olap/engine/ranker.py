"""
Ranker: turns per-stratum accumulators into top-N lists.

Ordering rule, strictly in this priority:

1. average score, descending
2. rating count, descending
3. item id, ascending

The item id tie-break makes the order total, so output never depends on
dict iteration order.  Items rated fewer than ``min_votes`` times in the
stratum are dropped before sorting.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from movielens_olap.engine.accumulator import Accumulator
from movielens_olap.engine.strata import Stratum
from movielens_olap.models.report import RankedRow

DEFAULT_TOP_N = 10
DEFAULT_MIN_VOTES = 5


def ranking_key(row: RankedRow) -> tuple[float, int, int]:
    """Sort key implementing (average desc, count desc, item id asc)."""
    return (-row.average, -row.count, row.item_id)


def rank_accumulator(
    accumulator: Accumulator,
    n: int = DEFAULT_TOP_N,
    min_votes: int = DEFAULT_MIN_VOTES,
) -> list[RankedRow]:
    """Return at most ``n`` ranked rows for one stratum.

    Args:
        accumulator: The stratum's accumulator.
        n:           Maximum rows to return.
        min_votes:   Minimum rating count for an item to qualify.

    Returns:
        Ranked rows in ranking order; all qualifying items when fewer than
        ``n`` qualify, ``[]`` when none do.

    Raises:
        ValueError: If ``n`` or ``min_votes`` is negative.
    """
    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")
    if min_votes < 0:
        raise ValueError(f"min_votes must be >= 0, got {min_votes}")

    rows = [
        RankedRow(item_id=item_id, average=entry.average, count=entry.count)
        for item_id, entry in accumulator.items()
        if entry.count > 0 and entry.count >= min_votes
    ]
    rows.sort(key=ranking_key)
    return rows[:n]


def report_name(stratum: Stratum, n: int) -> str:
    """``Top{n}_{label}``, e.g. ``"Top10_Action"``."""
    return f"Top{n}_{stratum.label}"


def rank_strata(
    accumulators: Mapping[str, Accumulator],
    strata: Sequence[Stratum],
    n: int = DEFAULT_TOP_N,
    min_votes: int = DEFAULT_MIN_VOTES,
) -> dict[str, list[RankedRow]]:
    """Rank every configured stratum.

    Strata missing from ``accumulators`` yield empty lists.

    Returns:
        Report name → ranked rows, in ``strata`` order.
    """
    empty = Accumulator()
    return {
        report_name(stratum, n): rank_accumulator(
            accumulators.get(stratum.key, empty), n=n, min_votes=min_votes
        )
        for stratum in strata
    }
