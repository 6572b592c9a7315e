"""
Load and report stages.

``LoadStage``
    Reads the active dataset into a ``RecordStore``.  A missing required
    file raises ``DatasetLoadError`` and nothing is aggregated.

``ReportStage``
    Aggregates (sequential or parallel), ranks every configured stratum,
    writes one CSV per report and appends a timing line.  There is a hard
    barrier between aggregation and ranking: ranking only starts once the
    driver has returned fully merged accumulators.

``generate_report_set()`` is the I/O-free core of ``ReportStage``; the CLI
uses it directly when comparing the two drivers.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from movielens_olap.config import AppConfig
from movielens_olap.engine.aggregation import DEFAULT_CHUNK_SIZE, run_aggregation
from movielens_olap.engine.ranker import DEFAULT_MIN_VOTES, DEFAULT_TOP_N, rank_strata
from movielens_olap.engine.strata import StratumClassifier
from movielens_olap.ingestion.loaders import LoadStats, load_dataset
from movielens_olap.models.meta import RunMetadata
from movielens_olap.models.report import ReportSet
from movielens_olap.pipeline.base import PipelineStage
from movielens_olap.reporting.export import append_timing_log, write_report_set
from movielens_olap.store import RecordStore
from movielens_olap.utils.time_utils import Stopwatch

logger = logging.getLogger(__name__)


def generate_report_set(
    store: RecordStore,
    classifier: StratumClassifier,
    parallel: bool,
    top_n: int = DEFAULT_TOP_N,
    min_votes: int = DEFAULT_MIN_VOTES,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_workers: Optional[int] = None,
    executor: str = "thread",
) -> ReportSet:
    """Aggregate then rank; no file I/O.

    Returns:
        ``ReportSet`` whose ``elapsed_seconds`` covers aggregation and
        ranking, and ``aggregation_seconds`` the fold alone.
    """
    with Stopwatch() as sw:
        result = run_aggregation(
            store,
            classifier,
            parallel=parallel,
            chunk_size=chunk_size,
            max_workers=max_workers,
            executor=executor,
        )
        reports = rank_strata(result.accumulators, classifier.strata, n=top_n, min_votes=min_votes)

    return ReportSet(
        mode=result.mode,
        reports=reports,
        aggregation_seconds=result.elapsed_seconds,
        elapsed_seconds=sw.elapsed,
        chunk_count=result.chunk_count,
    )


class LoadStage(PipelineStage):
    """Load the active dataset into memory.

    After ``run()``, ``self.store`` and ``self.stats`` hold the result.
    """

    stage_name = "load"

    def __init__(self, config: AppConfig, data_dir: Optional[Path] = None) -> None:
        super().__init__(config)
        self.data_dir = Path(data_dir or config.data.data_dir)
        self.store: Optional[RecordStore] = None
        self.stats: Optional[LoadStats] = None

    def _execute(self, run: RunMetadata, **kwargs) -> int:
        self.store, self.stats = load_dataset(self.config.active_dataset, self.data_dir)
        return len(self.store.ratings)


class ReportStage(PipelineStage):
    """Generate, write and time one report set.

    After ``run(store=..., parallel=...)``:
      - ``self.report_set`` holds the ranked reports,
      - ``self.written`` the CSV paths,
      - ``self.execution_seconds`` generation plus CSV writing time.
    """

    stage_name = "report"

    def __init__(self, config: AppConfig, reports_dir: Optional[Path] = None) -> None:
        super().__init__(config)
        self.reports_dir = Path(reports_dir or config.data.reports_dir)
        self.classifier = StratumClassifier.from_config(config)
        self.report_set: Optional[ReportSet] = None
        self.written: list[Path] = []
        self.execution_seconds: float = 0.0

    @property
    def timing_log_path(self) -> Path:
        return self.reports_dir / self.config.data.timing_log

    def _execute(self, run: RunMetadata, store: RecordStore, parallel: bool = False, **kwargs) -> int:
        engine = self.config.engine
        self.classifier = StratumClassifier.from_config(self.config, store)
        with Stopwatch() as sw:
            self.report_set = generate_report_set(
                store,
                self.classifier,
                parallel=parallel,
                top_n=engine.top_n,
                min_votes=engine.min_votes,
                chunk_size=engine.chunk_size,
                max_workers=engine.max_workers,
                executor=engine.executor,
            )
            self.written = write_report_set(self.report_set, store, self.reports_dir)
        self.execution_seconds = sw.elapsed

        append_timing_log(
            self.timing_log_path,
            self.report_set.prefix,
            self.report_set.elapsed_seconds,
            self.execution_seconds,
        )
        logger.info(
            "%s reports written to %s | report=%.2fs execution=%.2fs",
            len(self.written), self.reports_dir,
            self.report_set.elapsed_seconds, self.execution_seconds,
        )
        return len(store.ratings)
