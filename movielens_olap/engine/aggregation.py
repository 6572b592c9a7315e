"""
Aggregation engine: sequential and chunked parallel folds.

Both drivers share one contract::

    (ratings, RecordStore, StratumClassifier) → {stratum key: Accumulator}

and both use the same named per-record update, ``fold_ratings()``.

Sequential driver
-----------------
Folds every rating in input order into a single set of accumulators.

Parallel driver
---------------
1. Split the rating list into contiguous chunks of ``chunk_size`` (the last
   chunk may be shorter).
2. Submit one task per chunk to a bounded ``concurrent.futures`` pool.  Each
   task folds its chunk into private accumulators; no state is shared.
3. Block until every task has finished (``Executor.map`` re-raises the first
   worker exception, aborting the whole call).
4. The coordinating thread merges the chunk results in chunk order.

Because accumulator entries keep exact sums (see ``engine.accumulator``),
the merged result equals the sequential result exactly, for any chunk size.

Executors
---------
``"thread"`` (default) shares the Record Store with workers at no cost.
``"process"`` sidesteps the GIL; the store is shipped once per worker
process through the pool initializer and each task only receives its
(start, end) bounds.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional, Sequence

from movielens_olap.engine.accumulator import Accumulator
from movielens_olap.engine.strata import StratumClassifier
from movielens_olap.models.entities import Rating
from movielens_olap.models.report import MODE_PARALLEL, MODE_SEQUENTIAL
from movielens_olap.store import RecordStore
from movielens_olap.utils.time_utils import Stopwatch

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10_000
VALID_EXECUTORS = frozenset({"thread", "process"})

StrataAccumulators = dict[str, Accumulator]


@dataclass
class AggregationResult:
    """Output of one aggregation call.

    Attributes:
        accumulators:    Stratum key → accumulator, one per configured stratum
                         (empty accumulators included).
        elapsed_seconds: Wall-clock time of the fold and merge only.
        chunk_count:     Chunks folded (1 for the sequential driver).
        mode:            ``"sequential"`` or ``"parallel"``.
    """

    accumulators: StrataAccumulators = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    chunk_count: int = 1
    mode: str = MODE_SEQUENTIAL

    def snapshot(self) -> dict[str, dict[int, tuple[float, int]]]:
        return {key: acc.snapshot() for key, acc in self.accumulators.items()}


def empty_strata(classifier: StratumClassifier) -> StrataAccumulators:
    """One fresh accumulator per configured stratum."""
    return {key: Accumulator() for key in classifier.keys}


def fold_ratings(
    ratings: Sequence[Rating],
    store: RecordStore,
    classifier: StratumClassifier,
    accumulators: Optional[StrataAccumulators] = None,
) -> StrataAccumulators:
    """Fold ``ratings`` into per-stratum accumulators.

    Args:
        ratings:      Ratings to fold, in order.
        store:        Read-only Record Store used to resolve raters and items.
        classifier:   Decides which strata each rating belongs to.
        accumulators: Existing accumulators to fold into; a fresh set is
                      created when ``None``.

    Returns:
        The (possibly newly created) accumulators.
    """
    if accumulators is None:
        accumulators = empty_strata(classifier)
    raters = store.raters
    items = store.items

    for rating in ratings:
        keys = classifier.classify(
            rating,
            raters.get(rating.rater_id),
            items.get(rating.item_id),
        )
        for key in keys:
            acc = accumulators.get(key)
            if acc is None:
                acc = accumulators[key] = Accumulator()
            acc.update(rating.item_id, rating.score)

    return accumulators


def chunk_bounds(total: int, chunk_size: int) -> list[tuple[int, int]]:
    """Contiguous ``[start, end)`` bounds covering ``range(total)``.

    Raises:
        ValueError: If ``chunk_size < 1``.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    return [(start, min(start + chunk_size, total)) for start in range(0, total, chunk_size)]


def aggregate_sequential(
    store: RecordStore,
    classifier: StratumClassifier,
    ratings: Optional[Sequence[Rating]] = None,
) -> AggregationResult:
    """Single-pass fold over all ratings in input order."""
    ratings = store.ratings if ratings is None else ratings
    with Stopwatch() as sw:
        accumulators = fold_ratings(ratings, store, classifier)
    logger.debug("Sequential fold: %d ratings in %.3fs", len(ratings), sw.elapsed)
    return AggregationResult(
        accumulators=accumulators,
        elapsed_seconds=sw.elapsed,
        chunk_count=1,
        mode=MODE_SEQUENTIAL,
    )


# ── Process-pool worker state ─────────────────────────────────────────────────

_worker_ratings: Sequence[Rating] = ()
_worker_store: Optional[RecordStore] = None
_worker_classifier: Optional[StratumClassifier] = None


def _init_worker(
    ratings: Sequence[Rating],
    store: RecordStore,
    classifier: StratumClassifier,
) -> None:
    global _worker_ratings, _worker_store, _worker_classifier
    _worker_ratings = ratings
    _worker_store = store
    _worker_classifier = classifier


def _fold_bounds_in_worker(bounds: tuple[int, int]) -> StrataAccumulators:
    start, end = bounds
    assert _worker_store is not None and _worker_classifier is not None
    return fold_ratings(_worker_ratings[start:end], _worker_store, _worker_classifier)


def _make_executor(
    kind: str,
    max_workers: int,
    ratings: Sequence[Rating],
    store: RecordStore,
    classifier: StratumClassifier,
) -> Executor:
    if kind == "process":
        return ProcessPoolExecutor(
            max_workers=max_workers,
            initializer=_init_worker,
            initargs=(ratings, store, classifier),
        )
    return ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fold")


def aggregate_parallel(
    store: RecordStore,
    classifier: StratumClassifier,
    ratings: Optional[Sequence[Rating]] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_workers: Optional[int] = None,
    executor: str = "thread",
) -> AggregationResult:
    """Chunked fork-join fold; result equals ``aggregate_sequential`` exactly.

    Args:
        store:       Read-only Record Store.
        classifier:  Stratum classifier shared by all workers.
        ratings:     Ratings to fold; defaults to ``store.ratings``.
        chunk_size:  Ratings per chunk (``>= 1``).
        max_workers: Pool size; defaults to ``os.cpu_count()``.  Never more
                     workers than chunks.
        executor:    ``"thread"`` or ``"process"``.

    Returns:
        ``AggregationResult`` with ``mode="parallel"``.

    Raises:
        ValueError: On invalid ``chunk_size``, ``max_workers`` or ``executor``.
        Exception:  Any exception raised while folding a chunk.
    """
    if executor not in VALID_EXECUTORS:
        raise ValueError(f"executor must be one of {sorted(VALID_EXECUTORS)}, got '{executor}'")
    if max_workers is not None and max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    ratings = store.ratings if ratings is None else ratings
    bounds = chunk_bounds(len(ratings), chunk_size)

    with Stopwatch() as sw:
        accumulators = empty_strata(classifier)
        if bounds:
            workers = min(max_workers or os.cpu_count() or 1, len(bounds))
            with _make_executor(executor, workers, ratings, store, classifier) as pool:
                if executor == "process":
                    partials = list(pool.map(_fold_bounds_in_worker, bounds))
                else:
                    partials = list(
                        pool.map(
                            lambda b: fold_ratings(ratings[b[0]:b[1]], store, classifier),
                            bounds,
                        )
                    )
            # Barrier passed: every chunk is folded.  Merge on this thread only.
            for chunk_result in partials:
                for key, acc in chunk_result.items():
                    target = accumulators.get(key)
                    if target is None:
                        accumulators[key] = acc
                    else:
                        target.merge(acc)

    logger.debug(
        "Parallel fold: %d ratings in %d chunk(s) via %s pool in %.3fs",
        len(ratings), len(bounds), executor, sw.elapsed,
    )
    return AggregationResult(
        accumulators=accumulators,
        elapsed_seconds=sw.elapsed,
        chunk_count=len(bounds),
        mode=MODE_PARALLEL,
    )


def run_aggregation(
    store: RecordStore,
    classifier: StratumClassifier,
    parallel: bool,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_workers: Optional[int] = None,
    executor: str = "thread",
) -> AggregationResult:
    """Dispatch to the sequential or parallel driver."""
    if parallel:
        return aggregate_parallel(
            store,
            classifier,
            chunk_size=chunk_size,
            max_workers=max_workers,
            executor=executor,
        )
    return aggregate_sequential(store, classifier)
