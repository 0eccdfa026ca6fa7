from .exceptions import (
    BlogSearchError,
    DocumentNotFound,
    StoreError,
    UpstreamAPIError,
    ValidationError,
)
from .schema import ContentType, EmbeddingRecord, SimilarEmbedding, SourceDocument


def search_documents(query: str, **options):
    """Search the configured posts by meaning.

    Accepts the options of ``QueryHandler.search_documents``: ``limit``,
    ``min_similarity``, ``page`` and ``only_published``.
    """
    from .base import get_index

    return get_index().search_documents(query, **options)


__all__ = [
    "BlogSearchError",
    "ContentType",
    "DocumentNotFound",
    "EmbeddingRecord",
    "SimilarEmbedding",
    "SourceDocument",
    "StoreError",
    "UpstreamAPIError",
    "ValidationError",
    "search_documents",
]
