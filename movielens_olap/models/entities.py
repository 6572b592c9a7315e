"""
Record Store entities: raters, items and ratings.

``Rater`` and ``Item`` are frozen pydantic models; there are at most a few
hundred thousand of them and validation at load time is worth the cost.

``Rating`` is a frozen dataclass: datasets hold up to tens of millions of
ratings, and each one is only ever read after loading.

Dangling references are legal: a ``Rating`` may name a ``rater_id`` or
``item_id`` with no matching record.  Consumers resolve through
``RecordStore`` lookups and treat a miss as "join unavailable".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Gender(StrEnum):
    """Recognized rater genders; anything else is unclassified."""

    MALE = "male"
    FEMALE = "female"


# Accepted spellings, compared after strip() + lower().
GENDER_ALIASES: dict[str, Gender] = {
    "m": Gender.MALE,
    "male": Gender.MALE,
    "f": Gender.FEMALE,
    "female": Gender.FEMALE,
}


def normalize_gender(code: str | None) -> Optional[Gender]:
    """Map a free-form gender code to a ``Gender``, or ``None`` if unrecognized."""
    if code is None:
        return None
    return GENDER_ALIASES.get(code.strip().lower())


class Rater(BaseModel):
    """A user who rates items.

    Attributes:
        rater_id: Dataset user id (unique).
        age: Age in years; ``>= 0``.
        gender: Gender code as it appears in the source file (``"M"``, ``"F"`` …).
    """

    model_config = ConfigDict(frozen=True)

    rater_id: int
    age: int
    gender: str

    @field_validator("age")
    @classmethod
    def validate_age(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"age must be >= 0, got {v}.")
        return v

    @property
    def normalized_gender(self) -> Optional[Gender]:
        return normalize_gender(self.gender)


class Item(BaseModel):
    """A rated item (movie).

    Attributes:
        item_id: Dataset movie id (unique).
        title: Display title; may contain commas and quotes.
        genres: Genre labels from the dataset's vocabulary (possibly empty).
    """

    model_config = ConfigDict(frozen=True)

    item_id: int
    title: str
    genres: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Rating:
    """One (rater, item, score) observation."""

    rater_id: int
    item_id: int
    score: float
