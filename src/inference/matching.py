"""Pure keyword matching helpers shared by the text classifiers."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from functools import lru_cache


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Keywords must start a word, so "cu" never fires inside "document"; suffixes
    # such as plurals ("podcasts", "economics") still match
    return re.compile(rf"(?<!\w){re.escape(keyword.casefold())}")


def contains_keyword(text: str, keyword: str) -> bool:
    """True if ``keyword`` occurs in ``text`` at the start of a word."""
    if not keyword:
        return False
    return _keyword_pattern(keyword).search(text.casefold()) is not None


def count_keywords(text: str, keywords: Iterable[str]) -> int:
    """Number of distinct keywords from ``keywords`` present in ``text``."""
    return sum(1 for kw in keywords if contains_keyword(text, kw))


def first_keyword_match(
    text: str, table: Sequence[tuple[str, Sequence[str]]]
) -> str | None:
    """Return the first label in ``table`` whose keywords appear in ``text``."""
    for label, keywords in table:
        if any(contains_keyword(text, kw) for kw in keywords):
            return label
    return None
