"""
movielens_olap.reporting: flat-file output and console presentation.

Modules:
  export    : per-report CSV files and the append-only timing log.
  formatters: ASCII terminal tables for Typer CLI commands.
"""
