"""Free text to URL-safe slugs.

Pure functions, no storage access. Transliteration and separator handling
are delegated to ``python-slugify``; stopword removal to a
``KeywordExtractor``.

The collision-aware choice between the shortened and the full slug needs
the store and lives in ``PermalinkRegistry``.
"""

from slugify import slugify as _slugify

from permalinks.keywords import KeywordExtractor, StopwordExtractor

_DEFAULT_EXTRACTOR = StopwordExtractor()


def is_blank(text: str | None) -> bool:
    return text is None or not str(text).strip()


def to_slug(text: str) -> str:
    """Lowercase, transliterate, collapse non-alphanumerics into single hyphens.

    ::

        to_slug("Hey Joe!")        # "hey-joe"
        to_slug("It's a...")       # "it-s-a"
        to_slug("Café München")    # "cafe-munchen"
    """
    return _slugify(text)


def remove_stopwords(
    text: str,
    extractor: KeywordExtractor | None = None,
    *,
    language: str = "en",
    limit: int = 10,
) -> str:
    """Keep the first ``limit`` significant words of ``text``, joined by spaces.

    Falls back to the original text when nothing significant is left.
    """
    extractor = extractor or _DEFAULT_EXTRACTOR
    clean = " ".join(extractor.keywords(text, limit, language=language))
    return text if is_blank(clean) else clean


def sanitize(
    text: str | None,
    keep_stopwords: bool = False,
    *,
    extractor: KeywordExtractor | None = None,
    language: str = "en",
    limit: int = 10,
) -> str | None:
    """Turn free text into a slug, dropping stopwords unless asked to keep them.

    Returns ``None`` for blank input or text without a single slug-able
    character.
    """
    if text is None or is_blank(text):
        return None
    if not keep_stopwords:
        text = remove_stopwords(text, extractor, language=language, limit=limit)
    return to_slug(text) or None
