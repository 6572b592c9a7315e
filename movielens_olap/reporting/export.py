"""
Flat-file export: one CSV per report plus an append-only timing log.

CSV layout (one file per stratum)::

    Rank,ItemId,Title,AvgRating,NumRatings
    1,1189,Prefontaine (1997),5.000,3
    2,1500,"Santa with Muscles, The (1996)",4.500,8

Titles are written through ``csv.writer``, so a title containing the
delimiter (or a quote) is quoted and stays a single well-formed field.
Reports with no qualifying items still get the header line.

Timing log line::

    2026-10-18 14:03:11 | WithThreads | ReportTimeSeconds: 0.42 | ExecutionTimeSeconds: 0.57
"""

from __future__ import annotations

import csv
from pathlib import Path

from movielens_olap.models.report import REPORT_COLUMNS, ReportSet
from movielens_olap.store import RecordStore
from movielens_olap.utils.time_utils import local_timestamp


def export_to_csv(
    records: list[dict],
    path: Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` to a UTF-8 CSV file.

    Args:
        records:    List of row dicts.
        path:       Destination file path (parent dirs created if missing).
        fieldnames: Column order.  If None, uses the keys of the first record.
                    When given, the header is written even for no records.

    Returns:
        ``path`` as written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if not records and fieldnames is None:
        path.write_text("", encoding="utf-8")
        return path
    cols = fieldnames or list(records[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore", lineterminator="\n")
        writer.writeheader()
        writer.writerows(records)
    return path


def report_path(reports_dir: Path, prefix: str, name: str) -> Path:
    """``<reports_dir>/<prefix>_<name>.csv``."""
    return Path(reports_dir) / f"{prefix}_{name}.csv"


def write_report_set(
    report_set: ReportSet,
    store: RecordStore,
    reports_dir: Path,
    prefix: str | None = None,
) -> list[Path]:
    """Write every report in ``report_set`` to its own CSV file.

    Args:
        report_set:  Ranked reports to write.
        store:       Record Store used to look up titles.
        reports_dir: Output directory (created if missing).
        prefix:      File-name prefix; defaults to ``report_set.prefix``
                     (``WithoutThreads`` / ``WithThreads``).

    Returns:
        Written paths, in report order.
    """
    prefix = prefix or report_set.prefix
    written: list[Path] = []
    for name in report_set.reports:
        written.append(
            export_to_csv(
                report_set.to_records(name, store),
                report_path(reports_dir, prefix, name),
                fieldnames=REPORT_COLUMNS,
            )
        )
    return written


def format_timing_line(
    prefix: str,
    report_seconds: float,
    execution_seconds: float,
    timestamp: str | None = None,
) -> str:
    return (
        f"{timestamp or local_timestamp()} | {prefix} | "
        f"ReportTimeSeconds: {report_seconds:.2f} | "
        f"ExecutionTimeSeconds: {execution_seconds:.2f}"
    )


def append_timing_log(
    path: Path,
    prefix: str,
    report_seconds: float,
    execution_seconds: float,
) -> Path:
    """Append one timing line to ``path`` (created with parents if missing)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(format_timing_line(prefix, report_seconds, execution_seconds) + "\n")
    return path
