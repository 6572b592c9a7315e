"""
In-memory Record Store.

Populated once by ``ingestion.loaders.load_dataset`` and treated as read-only
afterwards: both aggregation drivers (and every worker thread/process they
start) only read it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from movielens_olap.models.entities import Item, Rater, Rating


@dataclass
class RecordStore:
    """Raters and items keyed by id, plus the full rating sequence.

    Attributes:
        raters:  ``rater_id`` → ``Rater``.  Empty when the dataset ships no
                 rater metadata.
        items:   ``item_id`` → ``Item``.
        ratings: All ratings in file order.
    """

    raters: dict[int, Rater] = field(default_factory=dict)
    items: dict[int, Item] = field(default_factory=dict)
    ratings: list[Rating] = field(default_factory=list)

    def rater(self, rater_id: int) -> Optional[Rater]:
        return self.raters.get(rater_id)

    def item(self, item_id: int) -> Optional[Item]:
        return self.items.get(item_id)

    def title_of(self, item_id: int, default: str = "Unknown") -> str:
        """Item title, or ``default`` for dangling ids."""
        found = self.items.get(item_id)
        return found.title if found is not None else default

    @classmethod
    def from_records(
        cls,
        raters: list[Rater] | None = None,
        items: list[Item] | None = None,
        ratings: list[Rating] | None = None,
    ) -> "RecordStore":
        """Build a store from flat lists (later duplicates of an id win)."""
        return cls(
            raters={r.rater_id: r for r in raters or []},
            items={i.item_id: i for i in items or []},
            ratings=list(ratings or []),
        )

    def summary(self) -> dict[str, int]:
        return {
            "raters": len(self.raters),
            "items": len(self.items),
            "ratings": len(self.ratings),
        }
