"""
Settings for django_blog_search.

All settings live in a single ``BLOG_SEARCH`` dict in the Django settings
module, for example::

    BLOG_SEARCH = {
        "MODEL": "blog.Post",
        "EMBEDDING_MODEL": "text-embedding-3-small",
        "DIMENSIONS": 1536,
    }

Missing keys fall back to ``DEFAULTS``.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

SETTINGS_NAME = "BLOG_SEARCH"

DEFAULTS: dict[str, Any] = {
    "MODEL": None,
    "TITLE_FIELD": "title",
    "CONTENT_FIELD": "content",
    "PUBLISHED_FILTER": {"published": True},
    "AUTO_INDEX": True,
    "STORAGE": "pgvector",
    "OPENAI_API_KEY": None,
    "OPENAI_BASE_URL": None,
    "EMBEDDING_MODEL": "text-embedding-3-small",
    "DIMENSIONS": 1536,
    "MAX_TOKENS": 8191,
    "CHUNK_SIZE": 500,
    "CHUNK_OVERLAP": 50,
    "BATCH_SIZE": 100,
    "SEARCH_LIMIT": 10,
    "MIN_SIMILARITY": 0.5,
    "SNIPPET_LENGTH": 200,
    "QUEUE": "embeddings",
}

STORAGE_BACKENDS = ("pgvector", "inmemory")


@dataclass(frozen=True)
class SearchConfig:
    model: str | None = DEFAULTS["MODEL"]
    title_field: str = DEFAULTS["TITLE_FIELD"]
    content_field: str = DEFAULTS["CONTENT_FIELD"]
    published_filter: dict[str, Any] = field(
        default_factory=lambda: dict(DEFAULTS["PUBLISHED_FILTER"])
    )
    auto_index: bool = DEFAULTS["AUTO_INDEX"]
    storage: str = DEFAULTS["STORAGE"]
    openai_api_key: str | None = DEFAULTS["OPENAI_API_KEY"]
    openai_base_url: str | None = DEFAULTS["OPENAI_BASE_URL"]
    embedding_model: str = DEFAULTS["EMBEDDING_MODEL"]
    dimensions: int = DEFAULTS["DIMENSIONS"]
    max_tokens: int = DEFAULTS["MAX_TOKENS"]
    chunk_size: int = DEFAULTS["CHUNK_SIZE"]
    chunk_overlap: int = DEFAULTS["CHUNK_OVERLAP"]
    batch_size: int = DEFAULTS["BATCH_SIZE"]
    search_limit: int = DEFAULTS["SEARCH_LIMIT"]
    min_similarity: float = DEFAULTS["MIN_SIMILARITY"]
    snippet_length: int = DEFAULTS["SNIPPET_LENGTH"]
    queue: str = DEFAULTS["QUEUE"]

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "SearchConfig":
        """Build a config from a ``BLOG_SEARCH``-style dict, applying defaults."""
        unknown = set(values) - set(DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown {SETTINGS_NAME} keys: {sorted(unknown)}")

        merged = {**DEFAULTS, **values}
        merged["PUBLISHED_FILTER"] = dict(merged["PUBLISHED_FILTER"])
        if merged["STORAGE"] not in STORAGE_BACKENDS:
            raise ValueError(
                f"{SETTINGS_NAME}['STORAGE'] must be one of {STORAGE_BACKENDS}, "
                f"got {merged['STORAGE']!r}"
            )

        return cls(**{key.lower(): value for key, value in merged.items()})


@lru_cache
def get_config() -> SearchConfig:
    """Get the cached config built from Django settings."""
    return SearchConfig.from_dict(getattr(settings, SETTINGS_NAME, {}))


@receiver(setting_changed)
def reload_config(sender, setting, **kwargs):
    if setting == SETTINGS_NAME:
        get_config.cache_clear()

        from .base import get_index

        get_index.cache_clear()
