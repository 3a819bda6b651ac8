"""Registry configuration.

PermalinkConfig is a frozen dataclass and cannot change after creation.
"""

from dataclasses import dataclass

from permalinks.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class PermalinkConfig:
    """Registry configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = PermalinkConfig(language="de", max_retries=5)
    """

    # Stopword list handed to the keyword extractor
    language: str = "en"

    # Significant words kept when shortening a slug
    keyword_limit: int = 10

    # Increment recomputations after a uniqueness conflict before ConflictError
    max_retries: int = 3

    def __post_init__(self) -> None:
        if self.keyword_limit < 1:
            msg = f"keyword_limit must be at least 1, got {self.keyword_limit}"
            raise ConfigurationError(msg)
        if self.max_retries < 0:
            msg = f"max_retries must not be negative, got {self.max_retries}"
            raise ConfigurationError(msg)
