"""
ASCII terminal formatters for CLI output.

All formatters return plain multi-line strings suitable for ``typer.echo()``.
No third-party dependencies (no ``rich``, no ``colorama``).
"""

from __future__ import annotations

from movielens_olap.models.report import RankedRow, ReportSet
from movielens_olap.store import RecordStore

_TITLE_WIDTH = 50

MENU_TEXT = "\n".join([
    "Menu:",
    "1. Generate reports WITHOUT threads",
    "2. Generate reports WITH threads ({chunk_size} ratings per task)",
    "3. Exit",
])


def format_header(data_dir: str, reports_dir: str, dataset: str) -> str:
    lines = [
        "MovieLens OLAP Report Generator",
        "===============================",
        f"Dataset:        {dataset}",
        f"Data folder:    {data_dir}",
        f"Reports folder: {reports_dir}",
    ]
    return "\n".join(lines)


def format_menu(chunk_size: int) -> str:
    return MENU_TEXT.format(chunk_size=f"{chunk_size:,}")


def format_top_table(
    title: str,
    rows: list[RankedRow],
    store: RecordStore,
) -> str:
    """Format one ranked report as an ASCII table.

    ::

        --- WithThreads - Top10 General ---
          Rank  ItemId    Avg  Count  Title
          ---------------------------------
             1    1189  5.000      3  Prefontaine (1997)

    Args:
        title: Block heading.
        rows:  Ranked rows, already in rank order.
        store: Record Store for title lookups.

    Returns:
        Multi-line string.
    """
    lines: list[str] = ["", f"--- {title} ---"]
    if not rows:
        lines.append("  (no items meet the minimum-votes threshold)")
        return "\n".join(lines)

    header = f"  {'Rank':>4}  {'ItemId':>6}  {'Avg':>5}  {'Count':>6}  {'Title'}"
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2 + _TITLE_WIDTH - len("Title")))
    for rank, row in enumerate(rows, start=1):
        name = store.title_of(row.item_id)[:_TITLE_WIDTH]
        lines.append(
            f"  {rank:>4}  {row.item_id:>6}  {row.average:>5.3f}  {row.count:>6}  {name}"
        )
    return "\n".join(lines)


def format_report_summary(
    report_set: ReportSet,
    store: RecordStore,
    show: list[str],
    execution_seconds: float | None = None,
) -> str:
    """Tables for the reports named in ``show`` (those present) plus timings."""
    blocks: list[str] = []
    for name in show:
        if name in report_set.reports:
            label = name.replace("_", " ", 1)
            blocks.append(
                format_top_table(f"{report_set.prefix} - {label}", report_set.reports[name], store)
            )
    blocks.append("")
    blocks.append(format_timings(report_set, execution_seconds))
    return "\n".join(blocks)


def format_timings(report_set: ReportSet, execution_seconds: float | None = None) -> str:
    lines = [
        f"Aggregation time:       {report_set.aggregation_seconds:.2f} seconds"
        f" ({report_set.chunk_count} chunk(s))",
        f"Report generation time: {report_set.elapsed_seconds:.2f} seconds",
    ]
    if execution_seconds is not None:
        lines.append(f"Total execution time:   {execution_seconds:.2f} seconds")
    return "\n".join(lines)
