"""
Pipeline stage base class.

A stage wraps one unit of work (loading a dataset, generating one report
set) in an auditable ``RunMetadata`` record::

    stage = ReportStage(config)
    run = stage.run(store=store, parallel=True)
    run.status              # RunStatus.SUCCESS
    run.rows_processed      # ratings folded
    run.duration_seconds

Subclasses set ``stage_name`` and implement ``_execute(run, **kwargs)``,
returning the number of ratings they processed.  ``run()`` never hides a
failure: the record is closed as ``failed`` with the error message, the error
is logged, and the exception propagates unchanged.  The latest record is kept
on ``stage.last_run``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

from movielens_olap.config import AppConfig
from movielens_olap.models.meta import RunMetadata, RunStatus
from movielens_olap.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Base class for ``LoadStage`` and ``ReportStage``.

    Attributes:
        stage_name: ``"load"`` or ``"report"``.
        config:     Application configuration.
        last_run:   Record of the most recent ``run()`` call.
    """

    stage_name: str

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.last_run: Optional[RunMetadata] = None

    def _open_run(self) -> RunMetadata:
        return RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            dataset=self.config.dataset.active,
            config_snapshot=self.config.model_dump(mode="json"),
            started_at=utcnow(),
        )

    def run(self, **kwargs) -> RunMetadata:
        """Execute the stage once.

        Args:
            **kwargs: Passed through to ``_execute()``.

        Returns:
            The closed ``RunMetadata`` (``status == "success"``).

        Raises:
            Exception: Whatever ``_execute()`` raised, after the record has
                been closed as ``failed``.
        """
        run = self.last_run = self._open_run()
        logger.info(
            "%s stage started | dataset=%s run=%s", self.stage_name, run.dataset, run.run_slug
        )

        try:
            run.rows_processed = self._execute(run=run, **kwargs)
        except Exception as exc:
            run.finish(RunStatus.FAILED, utcnow(), error=exc)
            logger.error(
                "%s stage failed after %.2fs: %s | run=%s",
                self.stage_name, run.duration_seconds, exc, run.run_slug,
            )
            raise

        run.finish(RunStatus.SUCCESS, utcnow())
        logger.info(
            "%s stage finished in %.2fs | rows=%d run=%s",
            self.stage_name, run.duration_seconds, run.rows_processed, run.run_slug,
        )
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs) -> int:
        """Do the stage's work and return the number of ratings processed."""
