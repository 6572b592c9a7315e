"""
Tests for movielens_olap/ingestion/loaders.py.

What we test
------------
Line parsers:
  - valid lines for each layout produce the right entity.
  - too few fields, non-numeric ids and non-finite scores raise MalformedRecord.
  - negative ages are rejected as malformed.

load_dataset():
  - pipe (ml-100k), double_colon (ml-10m) and csv (ml-25m) layouts load.
  - malformed lines are skipped and counted per file; blank lines are ignored.
  - quoted CSV titles keep their embedded commas.
  - latin-1 encoded titles decode correctly.
  - undecodable bytes are replaced; the load continues.
  - a missing required file raises DatasetLoadError.
  - a missing optional users.dat yields an empty rater table.

find_dataset_dir():
  - finds the dataset in data_dir itself or in data_dir/<name>.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from movielens_olap.config import DATASET_PRESETS, ML_100K_GENRES
from movielens_olap.ingestion.loaders import (
    DatasetLoadError,
    MalformedRecord,
    find_dataset_dir,
    load_dataset,
    make_pipe_item_parser,
    parse_colon_item_line,
    parse_colon_rating_line,
    parse_csv_item_row,
    parse_csv_rating_row,
    parse_rater_line,
    parse_tab_rating_line,
)
from movielens_olap.models.entities import Gender, Rating

ML_100K = DATASET_PRESETS["ml-100k"]
ML_10M = DATASET_PRESETS["ml-10m"]
ML_25M = DATASET_PRESETS["ml-25m"]


# ── Line parsers ──────────────────────────────────────────────────────────────

class TestRaterParser:
    def test_pipe_line(self):
        rater = parse_rater_line("7|57|M|administrator|91344")
        assert (rater.rater_id, rater.age, rater.normalized_gender) == (7, 57, Gender.MALE)

    def test_tab_line(self):
        rater = parse_rater_line("8\t36\tF")
        assert rater.normalized_gender == Gender.FEMALE

    @pytest.mark.parametrize("line", ["1|24", "x|24|M", "1|old|M", "1|-3|M"])
    def test_malformed(self, line):
        with pytest.raises(MalformedRecord):
            parse_rater_line(line)


class TestItemParsers:
    def test_pipe_item_flags(self):
        flags = ["0"] * len(ML_100K_GENRES)
        flags[ML_100K_GENRES.index("Action")] = "1"
        flags[ML_100K_GENRES.index("War")] = "1"
        line = "|".join(["5", "Copycat (1995)", "01-Jan-1995", "", "http://x"] + flags)
        item = make_pipe_item_parser(ML_100K_GENRES)(line)
        assert item.item_id == 5
        assert item.title == "Copycat (1995)"
        assert item.genres == frozenset({"Action", "War"})

    def test_pipe_item_too_few_fields(self):
        with pytest.raises(MalformedRecord):
            make_pipe_item_parser(ML_100K_GENRES)("5|Copycat (1995)")

    def test_colon_item(self):
        item = parse_colon_item_line("2::Jumanji (1995)::Adventure|Children|Fantasy")
        assert item.genres == frozenset({"Adventure", "Children", "Fantasy"})

    def test_colon_item_title_may_contain_commas(self):
        item = parse_colon_item_line("11::American President, The (1995)::Comedy")
        assert item.title == "American President, The (1995)"

    def test_csv_item_no_genres(self):
        item = parse_csv_item_row(["9", "Untitled", ""])
        assert item.genres == frozenset()


class TestRatingParsers:
    def test_tab_rating(self):
        assert parse_tab_rating_line("196\t242\t3\t881250949") == Rating(196, 242, 3.0)

    def test_colon_rating_half_star(self):
        assert parse_colon_rating_line("1::122::4.5::838985046") == Rating(1, 122, 4.5)

    def test_csv_rating(self):
        assert parse_csv_rating_row(["1", "296", "5.0", "1147880044"]) == Rating(1, 296, 5.0)

    @pytest.mark.parametrize("score", ["nan", "inf", "-inf", "five"])
    def test_bad_scores(self, score):
        with pytest.raises(MalformedRecord):
            parse_tab_rating_line(f"1\t2\t{score}\t0")

    def test_too_few_fields(self):
        with pytest.raises(MalformedRecord):
            parse_colon_rating_line("1::2")


# ── load_dataset ──────────────────────────────────────────────────────────────

class TestLoadMl100k:
    def test_counts(self, ml100k_dir):
        store, stats = load_dataset(ML_100K, ml100k_dir)
        assert store.summary() == {"raters": 3, "items": 3, "ratings": 4}
        assert stats.loaded == {"u.user": 3, "u.item": 3, "u.data": 4}
        assert stats.skipped == {"u.user": 2, "u.item": 2, "u.data": 3}
        assert stats.total_skipped == 7

    def test_entities(self, ml100k_dir):
        store, _ = load_dataset(ML_100K, ml100k_dir)
        assert store.raters[3].normalized_gender == Gender.MALE
        assert store.items[1].genres == frozenset({"Animation", "Comedy"})
        assert store.items[3].title == "Café, The (1996)"
        assert store.ratings[0] == Rating(1, 1, 5.0)

    def test_skips_are_logged(self, ml100k_dir, caplog):
        with caplog.at_level(logging.WARNING, logger="movielens_olap.ingestion.loaders"):
            load_dataset(ML_100K, ml100k_dir)
        assert "Skipped 3 malformed line(s) in u.data" in caplog.text

    @pytest.mark.parametrize("missing", ["u.user", "u.item", "u.data"])
    def test_missing_required_file(self, ml100k_dir, missing):
        (ml100k_dir / missing).unlink()
        with pytest.raises(DatasetLoadError) as excinfo:
            load_dataset(ML_100K, ml100k_dir)
        assert excinfo.value.path.name == missing

    def test_missing_directory(self, tmp_path):
        with pytest.raises(DatasetLoadError):
            load_dataset(ML_100K, tmp_path / "nowhere")

    def test_load_error_is_a_file_not_found_error(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_dataset(ML_100K, tmp_path)


class TestLoadMl10m:
    def test_counts_without_users_file(self, ml10m_dir):
        store, stats = load_dataset(ML_10M, ml10m_dir)
        assert store.summary() == {"raters": 0, "items": 3, "ratings": 3}
        assert stats.skipped == {"movies.dat": 1, "ratings.dat": 2}
        assert store.ratings[1] == Rating(1, 2, 3.5)

    def test_optional_users_file_is_read_when_present(self, ml10m_dir):
        (ml10m_dir / "users.dat").write_text("1|20|F\n2\t40\tM\n", encoding="utf-8")
        store, _ = load_dataset(ML_10M, ml10m_dir)
        assert set(store.raters) == {1, 2}

    def test_undecodable_bytes_do_not_abort_load(self, ml10m_dir):
        (ml10m_dir / "movies.dat").write_bytes(
            b"1::Toy Story (1995)::Comedy\n2::Caf\xe9 (1996)::Drama\n"
        )
        with (ml10m_dir / "ratings.dat").open("ab") as f:
            f.write(b"1::\xff::4::838985046\n")

        store, stats = load_dataset(ML_10M, ml10m_dir)
        assert set(store.items) == {1, 2}
        assert store.items[2].title == "Caf\ufffd (1996)"
        assert store.items[2].genres == frozenset({"Drama"})
        assert stats.skipped == {"movies.dat": 0, "ratings.dat": 3}
        assert len(store.ratings) == 3

    def test_missing_ratings_file(self, ml10m_dir):
        (ml10m_dir / "ratings.dat").unlink()
        with pytest.raises(DatasetLoadError):
            load_dataset(ML_10M, ml10m_dir)


class TestLoadMl25m:
    def test_counts(self, ml25m_dir):
        store, stats = load_dataset(ML_25M, ml25m_dir)
        assert store.summary() == {"raters": 0, "items": 3, "ratings": 3}
        assert stats.skipped == {"movies.csv": 1, "ratings.csv": 2}

    def test_quoted_title_keeps_comma(self, ml25m_dir):
        store, _ = load_dataset(ML_25M, ml25m_dir)
        assert store.items[11].title == "American President, The (1995)"
        assert store.items[11].genres == frozenset({"Comedy", "Drama", "Romance"})
        assert store.items[12].genres == frozenset({"(no genres listed)"})

    def test_header_only_file(self, ml25m_dir):
        (ml25m_dir / "ratings.csv").write_text("userId,movieId,rating,timestamp\n")
        store, stats = load_dataset(ML_25M, ml25m_dir)
        assert store.ratings == []
        assert stats.loaded["ratings.csv"] == 0

    def test_empty_file(self, ml25m_dir):
        (ml25m_dir / "ratings.csv").write_text("")
        store, _ = load_dataset(ML_25M, ml25m_dir)
        assert store.ratings == []


# ── find_dataset_dir ──────────────────────────────────────────────────────────

class TestFindDatasetDir:
    def test_nested_by_name(self, ml100k_dir):
        assert find_dataset_dir(ml100k_dir.parent, ML_100K) == ml100k_dir

    def test_directly_in_data_dir(self, ml100k_dir):
        assert find_dataset_dir(ml100k_dir, ML_100K) == ml100k_dir

    def test_not_found(self, tmp_path: Path):
        assert find_dataset_dir(tmp_path, ML_25M) is None
