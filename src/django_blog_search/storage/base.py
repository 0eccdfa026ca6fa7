import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Sequence

from ..exceptions import ValidationError
from ..schema import ContentType, EmbeddingRecord, SimilarEmbedding
from ..vectors import validate_vector

logger = logging.getLogger(__name__)

MAX_SEARCH_LIMIT = 100
MIN_SIMILARITY_THRESHOLD = 0.0
MAX_SIMILARITY_THRESHOLD = 1.0


def record_order(record: EmbeddingRecord) -> tuple[int, int]:
    """Sort key putting the title record first, then chunks in order."""
    return (0 if record.content_type == ContentType.TITLE else 1, record.chunk_index or 0)


class StorageProvider(ABC):
    """
    Base class for vector storage backends.

    The public methods validate their input and fill in provenance defaults, then
    hand over to the backend hooks. Nothing reaches a backend unvalidated.
    """

    def __init__(
        self,
        *,
        embedding_model: str = "text-embedding-3-small",
        dimensions: int | None = 1536,
    ):
        self.embedding_model = embedding_model
        self.dimensions = dimensions

    def prepare_record(
        self, record: EmbeddingRecord, *, position: int | None = None
    ) -> EmbeddingRecord:
        """Validate a record and return a copy with defaults filled in."""
        where = "" if position is None else f" at index {position}"

        if not isinstance(record.document_id, str) or not record.document_id:
            raise ValidationError(f"Invalid document_id{where}")

        if not isinstance(record.text_chunk, str) or not record.text_chunk:
            raise ValidationError(f"Invalid text_chunk{where}")

        try:
            content_type = ContentType(record.content_type)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid content_type{where}: {record.content_type!r}"
            ) from exc

        embedding = validate_vector(record.embedding, name=f"Embedding{where}")

        dimensions = self.dimensions or record.dimensions or len(embedding)
        if record.dimensions is not None and record.dimensions != dimensions:
            raise ValidationError(
                f"Record{where} declares {record.dimensions} dimensions, "
                f"expected {dimensions}"
            )
        if len(embedding) != dimensions:
            raise ValidationError(
                f"Embedding{where} has {len(embedding)} dimensions, expected {dimensions}"
            )

        if content_type == ContentType.CHUNK:
            if record.chunk_index is None or record.chunk_index < 0:
                raise ValidationError(f"Chunk records need a chunk_index{where}")
        elif record.chunk_index is not None:
            raise ValidationError(
                f"{content_type.label} records cannot have a chunk_index{where}"
            )

        return replace(
            record,
            content_type=content_type,
            embedding=embedding,
            embedding_model=record.embedding_model or self.embedding_model,
            dimensions=dimensions,
        )

    def insert_embedding(self, record: EmbeddingRecord) -> None:
        """Store a single record."""
        self._insert([self.prepare_record(record)])

    def batch_insert_embeddings(self, records: Sequence[EmbeddingRecord]) -> None:
        """Store many records atomically. One invalid record rejects the whole batch."""
        if not records:
            return

        prepared = [
            self.prepare_record(record, position=position)
            for position, record in enumerate(records)
        ]
        self._insert(prepared)
        logger.info(f"Inserted {len(prepared)} embeddings")

    def replace_document_embeddings(
        self, document_id: str, records: Sequence[EmbeddingRecord]
    ) -> None:
        """Atomically swap all records of a document for ``records``."""
        self._check_document_id(document_id)

        prepared = [
            self.prepare_record(record, position=position)
            for position, record in enumerate(records)
        ]
        if any(record.document_id != document_id for record in prepared):
            raise ValidationError(
                f"All replacement records must belong to document {document_id}"
            )

        self._replace(document_id, prepared)
        logger.info(
            f"Replaced embeddings for document {document_id} with {len(prepared)} records"
        )

    def delete_embeddings_by_document_id(self, document_id: str) -> int:
        """Remove every record of a document. Returns the number removed."""
        self._check_document_id(document_id)
        deleted = self._delete(document_id)
        logger.debug(f"Deleted {deleted} embeddings for document {document_id}")
        return deleted

    def has_embeddings(self, document_id: str) -> bool:
        self._check_document_id(document_id)
        return bool(self.get_embeddings(document_id))

    def search_similar_embeddings(
        self,
        query_vector: Sequence[float],
        *,
        limit: int = 10,
        min_similarity: float = 0.7,
        content_type: ContentType | str | None = None,
    ) -> list[SimilarEmbedding]:
        """
        Find the stored records closest to ``query_vector``.

        Args:
            query_vector: Embedding of the query
            limit: Maximum number of results, 1 to 100
            min_similarity: Lowest cosine similarity to return, 0 to 1
            content_type: Only match records of this type

        Returns:
            Matches ordered by descending similarity
        """
        query_vector = validate_vector(query_vector, name="Query vector")
        if self.dimensions and len(query_vector) != self.dimensions:
            raise ValidationError(
                f"Query vector has {len(query_vector)} dimensions, "
                f"expected {self.dimensions}"
            )

        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError(f"Limit must be an integer, got {limit!r}")
        if limit < 1 or limit > MAX_SEARCH_LIMIT:
            raise ValidationError(f"Limit must be between 1 and {MAX_SEARCH_LIMIT}")

        if not (
            MIN_SIMILARITY_THRESHOLD <= min_similarity <= MAX_SIMILARITY_THRESHOLD
        ):
            raise ValidationError(
                f"MinSimilarity must be between {MIN_SIMILARITY_THRESHOLD} "
                f"and {MAX_SIMILARITY_THRESHOLD}"
            )

        if content_type is not None:
            try:
                content_type = ContentType(content_type)
            except ValueError as exc:
                raise ValidationError(
                    f"Invalid content_type: {content_type!r}"
                ) from exc

        return self._search(
            query_vector,
            limit=limit,
            min_similarity=min_similarity,
            content_type=content_type,
        )

    def _check_document_id(self, document_id: str) -> None:
        if not isinstance(document_id, str) or not document_id:
            raise ValidationError("Invalid document_id")

    @abstractmethod
    def get_embeddings(self, document_id: str) -> list[EmbeddingRecord]:
        """Get all records of a document, titles first then chunks in order."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every stored record."""
        pass

    @abstractmethod
    def _insert(self, records: list[EmbeddingRecord]) -> None:
        """Write validated records in one transaction."""
        pass

    @abstractmethod
    def _replace(self, document_id: str, records: list[EmbeddingRecord]) -> None:
        """Delete a document's records and write new ones in one transaction."""
        pass

    @abstractmethod
    def _delete(self, document_id: str) -> int:
        pass

    @abstractmethod
    def _search(
        self,
        query_vector: list[float],
        *,
        limit: int,
        min_similarity: float,
        content_type: ContentType | None,
    ) -> list[SimilarEmbedding]:
        pass
