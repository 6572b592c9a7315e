"""
Dataset loaders for the three MovieLens layouts.

Formats
-------
``pipe`` (ml-100k)::

    u.user   1|24|M|technician|85711            (pipe or tab separated)
    u.item   1|Toy Story (1995)|01-Jan-1995||http://...|0|0|0|1|1|1|0|...
             → id, title, release, video release, url, then one 0/1 flag
               per genre in ``DatasetConfig.genre_labels`` order
    u.data   196<TAB>242<TAB>3<TAB>881250949

``double_colon`` (ml-10m)::

    movies.dat   1::Toy Story (1995)::Adventure|Animation|Children|Comedy
    ratings.dat  1::122::5::838985046
    users.dat    optional; id|age|gender (pipe or tab separated)

``csv`` (ml-25m)::

    movies.csv   movieId,title,genres          (titles may be quoted)
    ratings.csv  userId,movieId,rating,timestamp

Malformed lines
---------------
Blank lines, lines with too few fields, non-numeric ids / ages / scores,
negative ages and non-finite scores are skipped.  The number skipped per
file is recorded in ``LoadStats`` and logged once as a WARNING.

Bytes that do not decode in the preset encoding become U+FFFD.  The line is
still parsed: a bad byte inside a title keeps the record, one inside a numeric
field makes it malformed.

Missing files
-------------
A missing items or ratings file (or a missing raters file when the preset
marks raters as required) raises ``DatasetLoadError`` before anything is
aggregated.
"""

from __future__ import annotations

import csv
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, TypeVar

from pydantic import ValidationError

from movielens_olap.config import DatasetConfig, DatasetFormat
from movielens_olap.models.entities import Item, Rater, Rating
from movielens_olap.store import RecordStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ml-100k u.item: id, title, release date, video release date, url, genre flags
_PIPE_ITEM_FLAG_OFFSET = 5
_RATER_SPLIT = re.compile(r"[|\t]")


class DatasetLoadError(FileNotFoundError):
    """Raised when a required dataset file is missing or unreadable."""

    def __init__(self, path: Path, reason: str = "file not found") -> None:
        self.path = path
        super().__init__(f"Could not load '{path}': {reason}")


class MalformedRecord(ValueError):
    """One unparseable line; caught by the loaders and counted."""


@dataclass
class LoadStats:
    """Per-file loaded / skipped line counts."""

    loaded: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())


# ── Field helpers ─────────────────────────────────────────────────────────────

def _int(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise MalformedRecord(f"not an integer: {value!r}") from exc


def _score(value: str) -> float:
    try:
        score = float(value.strip())
    except ValueError as exc:
        raise MalformedRecord(f"not a number: {value!r}") from exc
    if not math.isfinite(score):
        raise MalformedRecord(f"non-finite score: {value!r}")
    return score


def _require(parts: list[str], n: int) -> None:
    if len(parts) < n:
        raise MalformedRecord(f"expected >= {n} fields, got {len(parts)}")


# ── Line parsers (one per file kind) ──────────────────────────────────────────

def parse_rater_line(line: str) -> Rater:
    """``id|age|gender[|...]`` (pipe or tab separated)."""
    parts = _RATER_SPLIT.split(line)
    _require(parts, 3)
    try:
        return Rater(rater_id=_int(parts[0]), age=_int(parts[1]), gender=parts[2].strip())
    except ValidationError as exc:
        raise MalformedRecord(str(exc)) from exc


def make_pipe_item_parser(genre_labels: list[str]) -> Callable[[str], Item]:
    """Parser for ml-100k ``u.item`` lines with 0/1 genre flag columns."""

    def parse(line: str) -> Item:
        parts = line.split("|")
        _require(parts, _PIPE_ITEM_FLAG_OFFSET + 1)
        flags = parts[_PIPE_ITEM_FLAG_OFFSET:]
        genres = frozenset(
            label for label, flag in zip(genre_labels, flags) if flag.strip() == "1"
        )
        return Item(item_id=_int(parts[0]), title=parts[1].strip(), genres=genres)

    return parse


def parse_tab_rating_line(line: str) -> Rating:
    """ml-100k ``u.data``: ``rater<TAB>item<TAB>score<TAB>timestamp``."""
    parts = line.split("\t")
    _require(parts, 3)
    return Rating(rater_id=_int(parts[0]), item_id=_int(parts[1]), score=_score(parts[2]))


def parse_colon_item_line(line: str) -> Item:
    """ml-10m ``movies.dat``: ``id::title::g1|g2``."""
    parts = line.split("::")
    _require(parts, 3)
    genres = frozenset(g.strip() for g in parts[2].split("|") if g.strip())
    return Item(item_id=_int(parts[0]), title=parts[1].strip(), genres=genres)


def parse_colon_rating_line(line: str) -> Rating:
    """ml-10m ``ratings.dat``: ``rater::item::score::timestamp``."""
    parts = line.split("::")
    _require(parts, 3)
    return Rating(rater_id=_int(parts[0]), item_id=_int(parts[1]), score=_score(parts[2]))


def parse_csv_item_row(row: list[str]) -> Item:
    """ml-25m ``movies.csv`` row: ``[movieId, title, genres]``."""
    _require(row, 3)
    genres = frozenset(g.strip() for g in row[2].split("|") if g.strip())
    return Item(item_id=_int(row[0]), title=row[1].strip(), genres=genres)


def parse_csv_rating_row(row: list[str]) -> Rating:
    """ml-25m ``ratings.csv`` row: ``[userId, movieId, rating, timestamp]``."""
    _require(row, 3)
    return Rating(rater_id=_int(row[0]), item_id=_int(row[1]), score=_score(row[2]))


# ── File readers ──────────────────────────────────────────────────────────────

def _open(path: Path, encoding: str):
    if not path.is_file():
        raise DatasetLoadError(path)
    try:
        return open(path, encoding=encoding, errors="replace", newline="")
    except OSError as exc:
        raise DatasetLoadError(path, str(exc)) from exc


def _parse_all(
    records: Iterable[T],
    parse: Callable[[T], object],
    path: Path,
    stats: LoadStats,
) -> Iterator:
    """Yield parsed records, skipping and counting malformed ones."""
    loaded = skipped = 0
    for raw in records:
        try:
            parsed = parse(raw)
        except MalformedRecord:
            skipped += 1
            continue
        loaded += 1
        yield parsed
    stats.loaded[path.name] = loaded
    stats.skipped[path.name] = skipped
    if skipped:
        logger.warning("Skipped %d malformed line(s) in %s", skipped, path.name)
    logger.info("Loaded %d record(s) from %s", loaded, path.name)


def read_lines(
    path: Path,
    parse: Callable[[str], T],
    stats: LoadStats,
    encoding: str = "utf-8",
) -> list[T]:
    """Parse every non-blank line of a delimited text file."""
    with _open(path, encoding) as f:
        lines = (line.rstrip("\r\n") for line in f)
        return list(_parse_all((ln for ln in lines if ln.strip()), parse, path, stats))


def read_csv_rows(
    path: Path,
    parse: Callable[[list[str]], T],
    stats: LoadStats,
    encoding: str = "utf-8",
) -> list[T]:
    """Parse a CSV file with a header row (the header is skipped)."""
    with _open(path, encoding) as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            logger.warning("CSV file is empty: %s", path)
            stats.loaded[path.name] = 0
            stats.skipped[path.name] = 0
            return []
        rows = (row for row in reader if any(cell.strip() for cell in row))
        return list(_parse_all(rows, parse, path, stats))


# ── Dataset entry point ───────────────────────────────────────────────────────

def _load_raters(
    dataset: DatasetConfig,
    data_dir: Path,
    stats: LoadStats,
) -> list[Rater]:
    if dataset.raters_file is None:
        return []
    path = data_dir / dataset.raters_file
    if not path.exists() and not dataset.raters_required:
        logger.info("Optional rater file %s not present; no rater metadata", path.name)
        return []
    return read_lines(path, parse_rater_line, stats, dataset.encoding)


def load_dataset(
    dataset: DatasetConfig,
    data_dir: Path,
) -> tuple[RecordStore, LoadStats]:
    """Load raters, items and ratings for ``dataset`` from ``data_dir``.

    Args:
        dataset:  Active dataset preset.
        data_dir: Directory holding the dataset files.

    Returns:
        ``(RecordStore, LoadStats)``.

    Raises:
        DatasetLoadError: If a required file is missing or unreadable.
    """
    data_dir = Path(data_dir)
    stats = LoadStats()
    items_path = data_dir / dataset.items_file
    ratings_path = data_dir / dataset.ratings_file

    raters = _load_raters(dataset, data_dir, stats)

    items: list[Item]
    ratings: list[Rating]
    if dataset.format == DatasetFormat.PIPE:
        items = read_lines(
            items_path, make_pipe_item_parser(dataset.genre_labels), stats, dataset.encoding
        )
        ratings = read_lines(ratings_path, parse_tab_rating_line, stats, dataset.encoding)
    elif dataset.format == DatasetFormat.DOUBLE_COLON:
        items = read_lines(items_path, parse_colon_item_line, stats, dataset.encoding)
        ratings = read_lines(ratings_path, parse_colon_rating_line, stats, dataset.encoding)
    elif dataset.format == DatasetFormat.CSV:
        items = read_csv_rows(items_path, parse_csv_item_row, stats, dataset.encoding)
        ratings = read_csv_rows(ratings_path, parse_csv_rating_row, stats, dataset.encoding)
    else:
        raise ValueError(f"Unsupported dataset format: {dataset.format!r}")

    store = RecordStore.from_records(raters=raters, items=items, ratings=ratings)
    logger.info(
        "Dataset %s loaded | raters=%d items=%d ratings=%d skipped=%d",
        dataset.name, len(store.raters), len(store.items), len(store.ratings),
        stats.total_skipped,
    )
    return store, stats


def find_dataset_dir(data_dir: Path, dataset: DatasetConfig) -> Optional[Path]:
    """Return ``data_dir`` or ``data_dir/<dataset name>``, whichever holds the items file."""
    for candidate in (Path(data_dir), Path(data_dir) / dataset.name):
        if (candidate / dataset.items_file).is_file():
            return candidate
    return None
