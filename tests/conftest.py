"""
Shared pytest fixtures for the MovieLens OLAP test suite.

Provides:
  - ``sample_store``: a small RecordStore with every edge the engine must
    handle (unrecognized gender, dangling rater and item ids, items with
    non-reportable genres, ties).
  - ``classifier``: the default StratumClassifier (rater strata enabled).
  - ``make_ratings``: factory for reproducible pseudo-random rating lists.
  - ``app_config``: an ``AppConfig`` pointing data/reports at ``tmp_path``.
  - ``ml100k_dir`` / ``ml10m_dir`` / ``ml25m_dir``: tiny on-disk datasets
    in each supported layout, including a few malformed lines.
"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Callable

import pytest

from movielens_olap.config import AppConfig, DataConfig, DatasetSelection
from movielens_olap.engine.strata import StratumClassifier
from movielens_olap.models.entities import Item, Rater, Rating
from movielens_olap.store import RecordStore


# ── In-memory fixtures ────────────────────────────────────────────────────────

@pytest.fixture
def sample_raters() -> list[Rater]:
    return [
        Rater(rater_id=1, age=25, gender="M"),
        Rater(rater_id=2, age=16, gender="f"),
        Rater(rater_id=3, age=45, gender="X"),       # unrecognized gender
        Rater(rater_id=4, age=30, gender="Female"),
    ]


@pytest.fixture
def sample_items() -> list[Item]:
    return [
        Item(item_id=10, title="Heat, The (1995)", genres=frozenset({"Action", "Comedy"})),
        Item(item_id=20, title="Casino (1995)", genres=frozenset({"Drama"})),
        Item(item_id=30, title="Willow (1988)", genres=frozenset({"Fantasy", "Action"})),
        Item(item_id=40, title="Scream (1996)", genres=frozenset({"Horror"})),
    ]


@pytest.fixture
def sample_ratings() -> list[Rating]:
    return [
        Rating(1, 10, 5.0),
        Rating(2, 10, 4.0),
        Rating(3, 10, 3.0),
        Rating(4, 20, 4.5),
        Rating(1, 20, 2.0),
        Rating(2, 30, 3.5),
        Rating(4, 30, 4.0),
        Rating(99, 10, 1.0),   # dangling rater
        Rating(1, 77, 5.0),    # dangling item
        Rating(3, 40, 2.5),
    ]


@pytest.fixture
def sample_store(sample_raters, sample_items, sample_ratings) -> RecordStore:
    return RecordStore.from_records(
        raters=sample_raters, items=sample_items, ratings=sample_ratings
    )


@pytest.fixture
def classifier() -> StratumClassifier:
    return StratumClassifier()


@pytest.fixture
def make_ratings() -> Callable[..., list[Rating]]:
    """Deterministic pseudo-random ratings over raters 1–6 and items 1–40.

    Scores are arbitrary floats (not just half stars) so that naive float
    summation would depend on grouping.
    """

    def _make(n: int, seed: int = 7, dangling: bool = True) -> list[Rating]:
        rng = random.Random(seed)
        max_rater = 8 if dangling else 6
        max_item = 45 if dangling else 40
        return [
            Rating(
                rater_id=rng.randint(1, max_rater),
                item_id=rng.randint(1, max_item),
                score=round(rng.uniform(0.5, 5.0), 7) + rng.random() * 1e-9,
            )
            for _ in range(n)
        ]

    return _make


@pytest.fixture
def random_store(make_ratings) -> RecordStore:
    """Six raters spanning every age band and gender form, forty items."""
    genres = ["Action", "Drama", "Comedy", "Fantasy", "Horror"]
    raters = [
        Rater(rater_id=1, age=12, gender="M"),
        Rater(rater_id=2, age=18, gender="F"),
        Rater(rater_id=3, age=30, gender="male"),
        Rater(rater_id=4, age=31, gender="FEMALE"),
        Rater(rater_id=5, age=70, gender="other"),
        Rater(rater_id=6, age=0, gender=""),
    ]
    items = [
        Item(
            item_id=i,
            title=f"Movie {i}, Part {i % 3}",
            genres=frozenset(g for k, g in enumerate(genres) if (i >> k) & 1),
        )
        for i in range(1, 41)
    ]
    return RecordStore.from_records(raters=raters, items=items, ratings=make_ratings(2_500))


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data=DataConfig(
            data_dir=str(tmp_path / "data"),
            reports_dir=str(tmp_path / "reports"),
        ),
        dataset=DatasetSelection(active="ml-100k"),
    )


# ── On-disk dataset fixtures ──────────────────────────────────────────────────

def _flags(genres: set[str]) -> str:
    from movielens_olap.config import ML_100K_GENRES

    return "|".join("1" if g in genres else "0" for g in ML_100K_GENRES)


@pytest.fixture
def ml100k_dir(tmp_path: Path) -> Path:
    d = tmp_path / "ml-100k"
    d.mkdir()
    (d / "u.user").write_text(
        "1|24|M|technician|85711\n"
        "2|53|F|other|94043\n"
        "3|17|m|student|32067\n"
        "bad|line|M\n"
        "4|notanage|F|writer|11111\n"
        "\n",
        encoding="latin-1",
    )
    (d / "u.item").write_text(
        f"1|Toy Story (1995)|01-Jan-1995||http://x|{_flags({'Animation', 'Comedy'})}\n"
        f"2|GoldenEye (1995)|01-Jan-1995||http://x|{_flags({'Action', 'Thriller'})}\n"
        f"3|Café, The (1996)|01-Jan-1996||http://x|{_flags({'Drama'})}\n"
        "x|Broken|01-Jan-1995||http://x|0|0\n"
        "4|Too short\n",
        encoding="latin-1",
    )
    (d / "u.data").write_text(
        "1\t1\t5\t881250949\n"
        "2\t1\t4\t881250950\n"
        "3\t2\t3\t881250951\n"
        "1\t3\t4\t881250952\n"
        "1\tx\t4\t881250953\n"
        "2\t3\tnan\t881250954\n"
        "only-one-field\n",
        encoding="latin-1",
    )
    return d


@pytest.fixture
def ml10m_dir(tmp_path: Path) -> Path:
    d = tmp_path / "ml-10m"
    d.mkdir()
    (d / "movies.dat").write_text(
        "1::Toy Story (1995)::Adventure|Animation|Children|Comedy|Fantasy\n"
        "2::Jumanji (1995)::Adventure|Children|Fantasy\n"
        "3::Heat (1995)::Action|Crime|Thriller\n"
        "broken line without separators\n",
        encoding="utf-8",
    )
    (d / "ratings.dat").write_text(
        "1::1::5::838985046\n"
        "1::2::3.5::838983525\n"
        "2::3::4::838983392\n"
        "2::3::abc::838983392\n"
        "3::1\n",
        encoding="utf-8",
    )
    return d


@pytest.fixture
def ml25m_dir(tmp_path: Path) -> Path:
    d = tmp_path / "ml-25m"
    d.mkdir()
    (d / "movies.csv").write_text(
        "movieId,title,genres\n"
        "1,Toy Story (1995),Adventure|Animation|Children|Comedy|Fantasy\n"
        '11,"American President, The (1995)",Comedy|Drama|Romance\n'
        "12,No Genres Here (2019),(no genres listed)\n"
        "oops,Bad Id,Drama\n",
        encoding="utf-8",
    )
    (d / "ratings.csv").write_text(
        "userId,movieId,rating,timestamp\n"
        "1,1,4.0,1147880044\n"
        "1,11,3.5,1147868817\n"
        "2,11,5.0,1147868828\n"
        "2,12,inf,1147868829\n"
        "3,,4.0,1147868830\n",
        encoding="utf-8",
    )
    return d
