"""
Ranked rows and the Report Set handed to writers and presenters.

``RankedRow`` is produced fresh by the ranker on every generation call and is
never mutated.  ``ReportSet`` bundles every stratum's ranked list with the
timing measurements of the run that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from movielens_olap.store import RecordStore

REPORT_COLUMNS: list[str] = ["Rank", "ItemId", "Title", "AvgRating", "NumRatings"]

MODE_SEQUENTIAL = "sequential"
MODE_PARALLEL = "parallel"

# File-name prefix per run mode.
MODE_PREFIXES: dict[str, str] = {
    MODE_SEQUENTIAL: "WithoutThreads",
    MODE_PARALLEL: "WithThreads",
}


@dataclass(frozen=True)
class RankedRow:
    """One row of a top-N list.

    Attributes:
        item_id: Rated item id.
        average: Mean score over the stratum's ratings of this item.
        count:   Number of ratings in the stratum for this item.
    """

    item_id: int
    average: float
    count: int


@dataclass
class ReportSet:
    """Named top-N lists for every configured stratum.

    Attributes:
        mode:                ``"sequential"`` or ``"parallel"``.
        reports:             Report name (e.g. ``"Top10_Action"``) → ranked
                             rows, in configured stratum order.
        aggregation_seconds: Wall-clock time of the fold (and merge) only.
        elapsed_seconds:     Aggregation plus ranking; the "report time".
        chunk_count:         Number of chunks folded (1 for sequential).
    """

    mode: str
    reports: dict[str, list[RankedRow]] = field(default_factory=dict)
    aggregation_seconds: float = 0.0
    elapsed_seconds: float = 0.0
    chunk_count: int = 1

    @property
    def prefix(self) -> str:
        return MODE_PREFIXES.get(self.mode, self.mode)

    def same_rankings(self, other: "ReportSet") -> bool:
        """True when both sets hold identical reports (timings ignored)."""
        return self.reports == other.reports

    def to_records(self, name: str, store: "RecordStore") -> list[dict]:
        """Flatten one report into CSV-ready row dicts.

        Rank is 1-based and contiguous; the average is fixed to 3 decimals.
        """
        return [
            {
                "Rank": rank,
                "ItemId": row.item_id,
                "Title": store.title_of(row.item_id),
                "AvgRating": f"{row.average:.3f}",
                "NumRatings": row.count,
            }
            for rank, row in enumerate(self.reports.get(name, []), start=1)
        ]
