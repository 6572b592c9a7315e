"""
Stratum Classifier: which reports does one rating contribute to?

A stratum is identified by a string key:

    overall               every rating
    gender=male           rater resolves and gender normalizes to male
    gender=female         rater resolves and gender normalizes to female
    age=<band label>      rater resolves; exactly one band per rater
    genre=<genre>         item resolves and carries a reportable genre

The rater join and the item join are independent.  A rating whose item id
is dangling still lands in its rater's gender and age strata, and a rating
whose rater id is dangling still lands in its item's genre strata.

``StratumClassifier.classify`` only reads its arguments and the frozen
configuration captured at construction, so one instance is shared by every
worker thread.  It is also picklable for process pools.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from movielens_olap.config import AgeBand, AppConfig, StrataConfig
from movielens_olap.models.entities import Gender, Item, Rater, Rating
from movielens_olap.store import RecordStore

OVERALL = "overall"

_DEFAULT_STRATA = StrataConfig()


@dataclass(frozen=True)
class Stratum:
    """A configured stratum.

    Attributes:
        key:   Identifier used by the engine, e.g. ``"genre=Action"``.
        label: Short name used in report names, e.g. ``"Action"``.
    """

    key: str
    label: str


def gender_key(gender: Gender) -> str:
    return f"gender={gender.value}"


def age_key(band: AgeBand) -> str:
    return f"age={band.label}"


def genre_key(genre: str) -> str:
    return f"genre={genre}"


class StratumClassifier:
    """Maps a rating (plus resolved rater / item) to its stratum keys.

    Args:
        reportable_genres:    Genres that get their own report.  Genres an
                              item carries outside this list are ignored.
        age_bands:            Exhaustive, non-overlapping bands (validated by
                              ``StrataConfig``).
        include_rater_strata: ``False`` when no rater metadata is available;
                              gender and age strata are then not configured.
    """

    def __init__(
        self,
        reportable_genres: Sequence[str] = tuple(_DEFAULT_STRATA.reportable_genres),
        age_bands: Sequence[AgeBand] = tuple(_DEFAULT_STRATA.age_bands),
        include_rater_strata: bool = True,
    ) -> None:
        # dict.fromkeys keeps order while dropping duplicates
        self.reportable_genres: tuple[str, ...] = tuple(dict.fromkeys(reportable_genres))
        self.age_bands: tuple[AgeBand, ...] = tuple(age_bands)
        self.include_rater_strata = include_rater_strata
        self._genre_keys = {g: genre_key(g) for g in self.reportable_genres}

    @classmethod
    def from_config(
        cls, config: AppConfig, store: Optional[RecordStore] = None
    ) -> "StratumClassifier":
        """Build the classifier for the active dataset.

        Rater strata are reported when the preset declares rater metadata,
        or when ``store`` holds raters loaded from an optional rater file
        (``users.dat`` next to an ml-10m release).
        """
        loaded_raters = store is not None and bool(store.raters)
        return cls(
            reportable_genres=config.strata.reportable_genres,
            age_bands=config.strata.age_bands,
            include_rater_strata=config.active_dataset.has_rater_metadata or loaded_raters,
        )

    @property
    def strata(self) -> list[Stratum]:
        """Every configured stratum, in report order."""
        result = [Stratum(OVERALL, "General")]
        if self.include_rater_strata:
            result.append(Stratum(gender_key(Gender.MALE), "Male"))
            result.append(Stratum(gender_key(Gender.FEMALE), "Female"))
            result.extend(Stratum(age_key(b), f"Age_{b.label}") for b in self.age_bands)
        result.extend(Stratum(key, genre) for genre, key in self._genre_keys.items())
        return result

    @property
    def keys(self) -> list[str]:
        return [s.key for s in self.strata]

    def age_band_for(self, age: int) -> Optional[AgeBand]:
        for band in self.age_bands:
            if band.contains(age):
                return band
        return None

    def classify(
        self,
        rating: Rating,
        rater: Optional[Rater] = None,
        item: Optional[Item] = None,
    ) -> list[str]:
        """Return the stratum keys ``rating`` contributes to.

        Args:
            rating: The rating being folded.
            rater:  Resolved rater, or ``None`` for a dangling / absent rater.
            item:   Resolved item, or ``None`` for a dangling item id.

        Returns:
            Stratum keys; always starts with ``"overall"``.
        """
        keys = [OVERALL]

        if rater is not None and self.include_rater_strata:
            gender = rater.normalized_gender
            if gender is not None:
                keys.append(gender_key(gender))
            band = self.age_band_for(rater.age)
            if band is not None:
                keys.append(age_key(band))

        if item is not None and item.genres:
            for genre, key in self._genre_keys.items():
                if genre in item.genres:
                    keys.append(key)

        return keys
