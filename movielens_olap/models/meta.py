"""
Run records for pipeline stages.

One ``RunMetadata`` is created per ``PipelineStage.run()`` call and updated
in place as the stage progresses.  ``config_snapshot`` is the JSON dump of
the ``AppConfig`` in force, so the exact parameters of a report run (dataset,
top-N, min votes, chunk size, executor) can be read back from the record.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

StageName = Literal["load", "report"]


class RunStatus(StrEnum):
    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"


class RunMetadata(BaseModel):
    """Audit record of one stage run.

    Attributes:
        run_slug: UUID4 string identifying the run.
        pipeline_stage: ``"load"`` or ``"report"``.
        status: ``started`` until the stage returns or raises.
        dataset: Active dataset preset name.
        config_snapshot: ``AppConfig.model_dump(mode="json")`` at start.
        rows_processed: Ratings loaded or folded.
        error_message: ``str(exc)`` of the failure, if any.
        started_at: UTC start time.
        finished_at: UTC end time; ``None`` while running.
    """

    model_config = ConfigDict(frozen=False)

    run_slug: str
    pipeline_stage: StageName
    status: RunStatus = RunStatus.STARTED
    dataset: Optional[str] = None
    config_snapshot: dict[str, Any]
    rows_processed: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def finish(
        self,
        status: RunStatus,
        finished_at: datetime,
        error: Optional[BaseException] = None,
    ) -> None:
        """Close the record with a final status."""
        self.status = status
        self.error_message = None if error is None else str(error)
        self.finished_at = finished_at
