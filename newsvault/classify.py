"""Topic categories and the classification hook used before persistence.

The actual title classifier (an ML model) lives outside this package; the
crawl pipeline only needs something with ``classify(title) -> Category``.
:class:`LabelClassifier` adapts any ``title -> label`` predictor whose labels
follow the ``news_*`` / BBC naming used by the training datasets.
"""

from __future__ import annotations

from enum import IntFlag
from typing import Callable, Protocol


class Category(IntFlag):
    NONE = 0
    EDU = 1 << 0
    ENTERTAINMENT = 1 << 1
    HOUSE = 1 << 2
    TECH = 1 << 3
    SPORTS = 1 << 4
    CAR = 1 << 5
    CULTURE = 1 << 6
    GAME = 1 << 7
    TRAVEL = 1 << 8
    MILITARY = 1 << 9
    WORLD = 1 << 10
    FINANCE = 1 << 11
    AGRICULTURE = 1 << 12
    STORY = 1 << 13
    STOCK = 1 << 14
    DOMESTIC_POLITICS = 1 << 15
    POLITICS = 1 << 16  # BBC "politics"
    SPORT = 1 << 17  # BBC "sport"
    BUSINESS = 1 << 18  # BBC "business"

    ALL = (
        EDU | ENTERTAINMENT | HOUSE | TECH | SPORTS | CAR | CULTURE | GAME
        | TRAVEL | MILITARY | WORLD | FINANCE | AGRICULTURE | STORY | STOCK
        | DOMESTIC_POLITICS | POLITICS | SPORT | BUSINESS
    )


_LABELS = {
    "news_edu": Category.EDU,
    "news_entertainment": Category.ENTERTAINMENT,
    "news_house": Category.HOUSE,
    "news_tech": Category.TECH,
    "news_sports": Category.SPORTS,
    "news_car": Category.CAR,
    "news_culture": Category.CULTURE,
    "news_game": Category.GAME,
    "news_travel": Category.TRAVEL,
    "news_military": Category.MILITARY,
    "news_world": Category.WORLD,
    "news_finance": Category.FINANCE,
    "news_agriculture": Category.AGRICULTURE,
    "news_story": Category.STORY,
    "stock": Category.STOCK,
    "news_domestic_politics": Category.DOMESTIC_POLITICS,
    "tech": Category.TECH,
    "entertainment": Category.ENTERTAINMENT,
    "politics": Category.POLITICS,
    "sport": Category.SPORT,
    "business": Category.BUSINESS,
}

# Single flags in declaration order, used for text serialisation.
_FLAGS = [c for c in Category if c not in (Category.NONE, Category.ALL)]


def category_from_label(label: str) -> Category:
    """Map a classifier label (case-insensitive) to a :class:`Category`.

    Raises:
        ValueError: If the label is unknown.
    """
    try:
        return _LABELS[label.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown category label: {label!r}") from None


def category_to_text(category: Category) -> str:
    """Serialise to the ``"TECH, SPORTS"`` form stored in the database."""
    names = [flag.name for flag in _FLAGS if flag in category]
    return ", ".join(names) if names else Category.NONE.name


def category_from_text(value: str | None) -> Category:
    """Inverse of :func:`category_to_text`; unknown names become ``NONE``."""
    result = Category.NONE
    for part in (value or "").split(","):
        name = part.strip().upper()
        if name in Category.__members__:
            result |= Category[name]
    return result


class Classifier(Protocol):
    def classify(self, title: str) -> Category: ...


class NullClassifier:
    """Leaves every article uncategorised."""

    def classify(self, title: str) -> Category:
        return Category.NONE


class LabelClassifier:
    """Wraps a ``title -> label`` predictor (e.g. a trained text model)."""

    def __init__(self, predict: Callable[[str], str]) -> None:
        self._predict = predict

    def classify(self, title: str) -> Category:
        if not title or not title.strip():
            return Category.NONE
        return category_from_label(self._predict(title))
