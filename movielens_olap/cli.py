"""
MovieLens OLAP CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()`` (plus command-line overrides).
  2. Configure logging.
  3. Load the dataset (fatal on missing files).
  4. Generate, write and time the reports.
  5. Report results to stdout.

Install and run::

    pip install -e .
    movielens-olap --help
    movielens-olap validate-config
    movielens-olap generate --mode both
    movielens-olap generate --dataset ml-25m --mode parallel --executor process
    movielens-olap menu
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer

app = typer.Typer(
    name="movielens-olap",
    help="MovieLens OLAP: stratified top-N rating reports.",
    add_completion=False,
)

# Reports echoed to the console after each run (when configured).
CONSOLE_REPORT_LABELS = ["General", "Male", "Female"]


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None, **overrides: Any):
    """Load AppConfig and apply CLI overrides, exiting on failure."""
    from movielens_olap.config import DatasetSelection, EngineConfig, load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        config = load_config(cfg_path)
        dataset = overrides.pop("dataset", None)
        engine_updates = {k: v for k, v in overrides.items() if v is not None}
        updates: dict[str, Any] = {}
        if engine_updates:
            updates["engine"] = EngineConfig(**{**config.engine.model_dump(), **engine_updates})
        if dataset:
            updates["dataset"] = DatasetSelection(
                active=dataset, overrides=config.dataset.overrides
            )
        return config.model_copy(update=updates) if updates else config
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config) -> None:
    from movielens_olap.utils.logging import configure_logging
    configure_logging(config.logging, debug=config.debug)


def _load_store_or_exit(config):
    """Run LoadStage; print a friendly error and exit on a fatal load error."""
    from movielens_olap.ingestion.loaders import DatasetLoadError, find_dataset_dir
    from movielens_olap.pipeline.report import LoadStage

    dataset = config.active_dataset
    data_dir = find_dataset_dir(Path(config.data.data_dir), dataset) or Path(config.data.data_dir)
    typer.echo(f"Loading {dataset.name} from: {data_dir}")
    stage = LoadStage(config=config, data_dir=data_dir)
    try:
        stage.run()
    except DatasetLoadError as exc:
        typer.echo(f"[ERROR] Error loading data: {exc}", err=True)
        raise typer.Exit(code=1)

    summary = stage.store.summary()
    typer.echo(
        f"  raters={summary['raters']} items={summary['items']} "
        f"ratings={summary['ratings']} skipped_lines={stage.stats.total_skipped}"
    )
    return stage.store


def _console_report_names(config) -> list[str]:
    return [f"Top{config.engine.top_n}_{label}" for label in CONSOLE_REPORT_LABELS]


def _run_mode(config, store, parallel: bool):
    """Run ReportStage once and echo the console tables; returns the stage."""
    from movielens_olap.pipeline.report import ReportStage
    from movielens_olap.reporting.formatters import format_report_summary

    typer.echo("Generating WITH threads..." if parallel else "Generating WITHOUT threads...")
    stage = ReportStage(config=config)
    stage.run(store=store, parallel=parallel)
    typer.echo(
        format_report_summary(
            stage.report_set,
            store,
            show=_console_report_names(config),
            execution_seconds=stage.execution_seconds,
        )
    )
    typer.echo(f"All report CSVs saved to: {stage.reports_dir}")
    return stage


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)
    dataset = config.active_dataset

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Dataset:          {dataset.name} ({dataset.format.value})")
    typer.echo(f"  Data folder:      {config.data.data_dir}")
    typer.echo(f"  Reports folder:   {config.data.reports_dir}")
    typer.echo(f"  Top-N / min votes:{config.engine.top_n} / {config.engine.min_votes}")
    typer.echo(f"  Chunk size:       {config.engine.chunk_size}")
    typer.echo(f"  Executor:         {config.engine.executor}")
    typer.echo(f"  Genres reported:  {', '.join(config.strata.reportable_genres)}")
    typer.echo(f"  Log level:        {config.logging.level}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(mode="json"), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("generate")
def generate(
    mode: str = typer.Option(
        "both",
        "--mode",
        help="sequential, parallel, or both (runs both and checks they agree).",
    ),
    dataset: Optional[str] = typer.Option(
        None, "--dataset", help="Dataset preset: ml-100k, ml-10m or ml-25m."
    ),
    top_n: Optional[int] = typer.Option(None, "--top-n", help="Rows per report."),
    min_votes: Optional[int] = typer.Option(
        None, "--min-votes", help="Minimum ratings for an item to be ranked."
    ),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", help="Ratings per parallel task."
    ),
    executor: Optional[str] = typer.Option(
        None, "--executor", help="Parallel executor: thread or process."
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Load the dataset, generate every top-N report and write the CSVs.

    \b
    Output (in the reports folder):
      WithoutThreads_Top10_<stratum>.csv   sequential run
      WithThreads_Top10_<stratum>.csv      parallel run
      timings.txt                          one line appended per run
    """
    if mode not in ("sequential", "parallel", "both"):
        typer.echo(f"[ERROR] Unknown --mode '{mode}'. Use sequential, parallel or both.", err=True)
        raise typer.Exit(code=1)

    config = _load_config_or_exit(
        config_path,
        dataset=dataset,
        top_n=top_n,
        min_votes=min_votes,
        chunk_size=chunk_size,
        executor=executor,
    )
    _configure_logging(config)
    store = _load_store_or_exit(config)

    stages = []
    if mode in ("sequential", "both"):
        stages.append(_run_mode(config, store, parallel=False))
    if mode in ("parallel", "both"):
        stages.append(_run_mode(config, store, parallel=True))

    if mode == "both":
        sequential, parallel = stages
        if not sequential.report_set.same_rankings(parallel.report_set):
            typer.echo("[ERROR] Sequential and parallel reports differ.", err=True)
            raise typer.Exit(code=1)
        typer.echo("Sequential and parallel reports are identical.")

    typer.echo("")
    typer.echo("[OK] Reports generated.")


@app.command("menu")
def menu(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Interactive menu: 1 = sequential, 2 = parallel, 3 = exit."""
    from movielens_olap.reporting.formatters import format_header, format_menu

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    typer.echo(
        format_header(config.data.data_dir, config.data.reports_dir, config.dataset.active)
    )
    store = _load_store_or_exit(config)
    typer.echo("Data loaded successfully.")

    while True:
        typer.echo("")
        typer.echo(format_menu(config.engine.chunk_size))
        choice = typer.prompt("Enter choice", default="3", show_default=False).strip()
        if choice == "3":
            break
        if choice in ("1", "2"):
            _run_mode(config, store, parallel=choice == "2")
        else:
            typer.echo("Invalid choice. Try again.")

    typer.echo("Exiting. Goodbye!")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
