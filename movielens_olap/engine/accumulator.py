"""
Per-stratum accumulators: item id → (exact sum of scores, count).

Exact sums
----------
The parallel driver folds chunks independently and merges the partial
results, so the additions happen in a different grouping than the
sequential fold.  Plain ``float`` addition is not associative; to make the
two drivers agree bit for bit, each entry keeps its running total as a list
of non-overlapping float partials (Shewchuk's algorithm, as used by
``math.fsum``).  The partials represent the sum exactly, and ``total`` is
the correctly rounded value of that exact sum.  It therefore depends only
on the multiset of scores added, never on order or chunking.

Merge
-----
``Accumulator.merge(other)`` folds ``other``'s partials into ``self``;
``merge_accumulators(a, b)`` returns a new accumulator and leaves both
operands untouched.  Both are associative and commutative in value.
"""

from __future__ import annotations

import math
from typing import Iterator, Mapping


def _add_exact(partials: list[float], x: float) -> None:
    """Add ``x`` to the exact sum held in ``partials`` (in place)."""
    i = 0
    for y in partials:
        if abs(x) < abs(y):
            x, y = y, x
        hi = x + y
        lo = y - (hi - x)
        if lo:
            partials[i] = lo
            i += 1
        x = hi
    partials[i:] = [x]


class AccumulatorEntry:
    """Running (sum, count) for one item within one stratum."""

    __slots__ = ("count", "_partials")

    def __init__(self, total: float = 0.0, count: int = 0) -> None:
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}.")
        self.count = count
        self._partials: list[float] = [total] if total else []

    def add(self, score: float) -> None:
        _add_exact(self._partials, score)
        self.count += 1

    def absorb(self, other: "AccumulatorEntry") -> None:
        """Add another entry's sum and count into this one."""
        for p in other._partials:
            _add_exact(self._partials, p)
        self.count += other.count

    def copy(self) -> "AccumulatorEntry":
        clone = AccumulatorEntry()
        clone.count = self.count
        clone._partials = list(self._partials)
        return clone

    @property
    def total(self) -> float:
        return math.fsum(self._partials)

    @property
    def average(self) -> float:
        if self.count == 0:
            raise ZeroDivisionError("average is undefined for an empty entry")
        return self.total / self.count

    def as_tuple(self) -> tuple[float, int]:
        return (self.total, self.count)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccumulatorEntry):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __repr__(self) -> str:
        return f"AccumulatorEntry(total={self.total!r}, count={self.count})"


class Accumulator:
    """Item id → ``AccumulatorEntry`` for a single stratum."""

    def __init__(self) -> None:
        self._entries: dict[int, AccumulatorEntry] = {}

    def update(self, item_id: int, score: float) -> None:
        """Count one rating of ``item_id``; creates the entry if absent."""
        entry = self._entries.get(item_id)
        if entry is None:
            entry = self._entries[item_id] = AccumulatorEntry()
        entry.add(score)

    def merge(self, other: "Accumulator") -> "Accumulator":
        """Fold ``other`` into ``self`` (in place) and return ``self``."""
        for item_id, theirs in other._entries.items():
            mine = self._entries.get(item_id)
            if mine is None:
                self._entries[item_id] = theirs.copy()
            else:
                mine.absorb(theirs)
        return self

    def copy(self) -> "Accumulator":
        clone = Accumulator()
        clone._entries = {k: e.copy() for k, e in self._entries.items()}
        return clone

    def get(self, item_id: int) -> AccumulatorEntry | None:
        return self._entries.get(item_id)

    def items(self) -> Iterator[tuple[int, AccumulatorEntry]]:
        return iter(self._entries.items())

    def snapshot(self) -> dict[int, tuple[float, int]]:
        """Plain ``{item_id: (total, count)}`` view, handy for comparisons."""
        return {k: e.as_tuple() for k, e in self._entries.items()}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Accumulator):
            return NotImplemented
        return self.snapshot() == other.snapshot()

    def __repr__(self) -> str:
        return f"Accumulator({len(self._entries)} items)"


def merge_accumulators(a: Accumulator, b: Accumulator) -> Accumulator:
    """Return a new accumulator holding ``a + b``; operands are not modified."""
    return a.copy().merge(b)


def merge_strata(
    a: Mapping[str, Accumulator],
    b: Mapping[str, Accumulator],
) -> dict[str, Accumulator]:
    """Merge two stratum → accumulator mappings into a new mapping.

    Keys present in only one operand are copied over unchanged.  Key order
    follows ``a`` first, then keys new in ``b``.
    """
    result = {key: acc.copy() for key, acc in a.items()}
    for key, acc in b.items():
        if key in result:
            result[key].merge(acc)
        else:
            result[key] = acc.copy()
    return result
