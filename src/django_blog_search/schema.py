"""
Schema definitions for semantic search.

This module contains the core data structures passed between the chunker,
the embedding generator, the storage providers and the query handler.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from django.db import models


class ContentType(models.TextChoices):
    """What part of a document an embedding represents."""

    TITLE = "title", "Title"
    CONTENT = "content", "Content"
    CHUNK = "chunk", "Chunk"


@dataclass(frozen=True)
class SourceDocument:
    """The fields of a post that get embedded."""

    id: str
    title: str
    content: str


@dataclass
class EmbeddingRecord:
    """
    One stored vector.

    A document has one ``title`` record, plus either one ``content`` record or a
    numbered run of ``chunk`` records.
    """

    document_id: str
    content_type: ContentType
    text_chunk: str
    embedding: list[float]
    chunk_index: int | None = None
    token_count: int | None = None
    embedding_model: str | None = None
    dimensions: int | None = None
    id: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class SimilarEmbedding:
    """A stored record matched by a similarity search."""

    id: UUID | None
    document_id: str
    content_type: ContentType
    text_chunk: str
    chunk_index: int | None
    similarity: float
