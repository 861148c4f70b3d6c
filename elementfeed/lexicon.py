"""Keyword lexicon for the local analysis heuristics.

The word lists live in ``lexicon.yaml`` next to this module. Matching is done
on whole words so that, for example, "hope" does not fire on "hopeless".
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from importlib import resources

import yaml
from pydantic import BaseModel, Field

from .models import Category

_WORD_RE = re.compile(r"[a-z]+")


def tokenize(text: str) -> list[str]:
    """Lower-cased alphabetic words of *text*."""
    return _WORD_RE.findall(text.lower())


def keyword_matches(keyword: str, word: str) -> bool:
    """Whether *keyword* hits *word* (exact, plural, or ``stem*`` prefix)."""
    if keyword.endswith("*"):
        return word.startswith(keyword[:-1])
    return word in (keyword, f"{keyword}s", f"{keyword}es")


def matched_keywords(keywords: Iterable[str], words: Iterable[str]) -> set[str]:
    """Distinct keywords that hit at least one word."""
    words = list(words)
    return {kw for kw in keywords if any(keyword_matches(kw, w) for w in words)}


class Lexicon(BaseModel):
    categories: dict[Category, list[str]]
    positive: list[str]
    negative: list[str]
    high_risk_safety_categories: list[str] = Field(default_factory=list)

    def category_hits(self, text: str) -> dict[Category, int]:
        """Number of distinct keywords hit per category, in taxonomy order."""
        words = tokenize(text)
        return {
            category: len(matched_keywords(self.categories.get(category, []), words))
            for category in Category
        }

    def sentiment_hits(self, text: str) -> tuple[int, int]:
        """Return ``(positive_hits, negative_hits)``.

        Words hit by a negative keyword are not offered to the positive list.
        """
        words = tokenize(text)
        negative = matched_keywords(self.negative, words)
        unclaimed = [
            w for w in words if not any(keyword_matches(kw, w) for kw in negative)
        ]
        positive = matched_keywords(self.positive, unclaimed)
        return len(positive), len(negative)


@lru_cache(maxsize=1)
def load_lexicon() -> Lexicon:
    """Load the packaged lexicon (cached)."""
    raw = resources.files("elementfeed").joinpath("lexicon.yaml").read_text("utf-8")
    return Lexicon.model_validate(yaml.safe_load(raw))
