"""Keyword extraction for shortening slugs.

The registry only needs the significant words of a text, in their original
order. ``KeywordExtractor`` is the seam; ``StopwordExtractor`` is the
default implementation, dropping words found in a per-language stopword
list.

Custom lists::

    extractor = StopwordExtractor.from_words(["its", "a"])
    extractor.keywords("It's a beautiful day.")  # ["beautiful", "day"]
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

# Words, keeping inner apostrophes: "It's" is one word.
_WORD = re.compile(r"[^\W_]+(?:['’][^\W_]+)*")

ENGLISH = frozenset(
    """
    a about above after again against all am an and any are as at be because been
    before being below between both but by can could did do does doing down during
    each few for from further had has have having he her here hers herself him
    himself his how i if in into is it its itself just me more most my myself no
    nor not of off on once only or other our ours ourselves out over own same she
    should so some such than that the their theirs them themselves then there
    these they this those through to too under until up very was we were what
    when where which while who whom why will with would you your yours yourself
    yourselves
    """.split()
)

GERMAN = frozenset(
    """
    aber alle allem allen aller als also am an ander andere auch auf aus bei bin
    bis bist da damit dann das dass dein deine dem den der des dessen dich die
    dies diese dieser dir doch dort du durch ein eine einem einen einer eines er
    es euer eure fur gegen hab habe haben hat hatte ich ihm ihn ihr im in ist
    jede jedem jeden jeder kann kein man mein meine mich mir mit nach nicht noch
    nun nur ob oder ohne sein seine sich sie sind so solche um und uns unser
    unter vom von vor war waren was weil welche wenn wer wie wir wird zu zum zur
    """.split()
)

STOPWORDS: Mapping[str, frozenset[str]] = {"en": ENGLISH, "de": GERMAN}


def fold(word: str) -> str:
    """Comparison form of a word: lowercase, apostrophes removed."""
    return word.replace("'", "").replace("’", "").lower()


class KeywordExtractor(Protocol):
    """Returns the significant words of a text in their original order."""

    def keywords(self, text: str, limit: int = 10, *, language: str = "en") -> list[str]: ...


@dataclass(frozen=True, slots=True)
class StopwordExtractor:
    """Keyword extractor backed by per-language stopword lists.

    Lists are compared against folded words, so ``"It's"`` matches the
    stopword ``"its"``. Unknown languages have no stopwords.
    """

    stopwords: Mapping[str, frozenset[str]] = field(default_factory=lambda: dict(STOPWORDS))

    @classmethod
    def from_words(cls, words: Iterable[str], language: str = "en") -> StopwordExtractor:
        """Build an extractor with a single custom list for ``language``."""
        return cls(stopwords={language: frozenset(fold(w) for w in words)})

    def keywords(self, text: str, limit: int = 10, *, language: str = "en") -> list[str]:
        stop = self.stopwords.get(language, frozenset())
        words: list[str] = []
        for match in _WORD.finditer(text):
            word = match.group()
            if fold(word) in stop:
                continue
            words.append(word)
            if len(words) >= limit:
                break
        return words
