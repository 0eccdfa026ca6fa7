import logging
from typing import TYPE_CHECKING, Type

from django.db import DatabaseError, transaction

from ..exceptions import StoreError
from ..schema import ContentType, EmbeddingRecord, SimilarEmbedding
from .base import StorageProvider, record_order

if TYPE_CHECKING:
    from ..models import BasePostEmbedding

logger = logging.getLogger(__name__)


class PgVectorProvider(StorageProvider):
    """
    Vector storage using PostgreSQL with the pgvector extension.

    Writes go through the Django ORM, so they join any transaction already
    open on the connection.
    """

    def __init__(self, *, model: Type["BasePostEmbedding"] | None = None, **kwargs):
        """
        Initialize the PgVectorProvider.

        Args:
            model: A Django model class that subclasses BasePostEmbedding.
        """
        super().__init__(**kwargs)
        if model:
            self.model = model
        else:
            from ..models import PostEmbedding

            self.model = PostEmbedding

        required_fields = [
            "document_id",
            "content_type",
            "text_chunk",
            "chunk_index",
            "embedding",
        ]

        field_names = {field.name for field in self.model._meta.get_fields()}
        for field in required_fields:
            if field not in field_names:
                raise ValueError(
                    f"Model class {self.model.__name__} must include '{field}' field"
                )

    def _to_instance(self, record: EmbeddingRecord) -> "BasePostEmbedding":
        instance = self.model(
            document_id=record.document_id,
            content_type=record.content_type,
            text_chunk=record.text_chunk,
            embedding=record.embedding,
            chunk_index=record.chunk_index,
            token_count=record.token_count,
            embedding_model=record.embedding_model,
            dimensions=record.dimensions,
        )
        if record.id is not None:
            instance.id = record.id
        return instance

    def _to_record(self, instance: "BasePostEmbedding") -> EmbeddingRecord:
        return EmbeddingRecord(
            id=instance.id,
            document_id=instance.document_id,
            content_type=ContentType(instance.content_type),
            text_chunk=instance.text_chunk,
            embedding=[float(value) for value in instance.embedding],
            chunk_index=instance.chunk_index,
            token_count=instance.token_count,
            embedding_model=instance.embedding_model,
            dimensions=instance.dimensions,
            created_at=instance.created_at,
        )

    def _insert(self, records):
        instances = [self._to_instance(record) for record in records]
        try:
            with transaction.atomic():
                self.model.objects.bulk_create(instances)
        except DatabaseError as exc:
            logger.error(f"Failed to insert {len(instances)} embeddings: {exc}")
            raise StoreError(f"Failed to insert embeddings: {exc}") from exc

    def _replace(self, document_id, records):
        instances = [self._to_instance(record) for record in records]
        try:
            with transaction.atomic():
                self.model.objects.for_document(document_id).delete()
                if instances:
                    self.model.objects.bulk_create(instances)
        except DatabaseError as exc:
            logger.error(f"Failed to replace embeddings for document {document_id}: {exc}")
            raise StoreError(
                f"Failed to replace embeddings for document {document_id}: {exc}"
            ) from exc

    def _delete(self, document_id):
        try:
            with transaction.atomic():
                deleted, _ = self.model.objects.for_document(document_id).delete()
        except DatabaseError as exc:
            raise StoreError(
                f"Failed to delete embeddings for document {document_id}: {exc}"
            ) from exc
        return deleted

    def get_embeddings(self, document_id):
        try:
            instances = list(self.model.objects.for_document(document_id))
        except DatabaseError as exc:
            raise StoreError(
                f"Failed to load embeddings for document {document_id}: {exc}"
            ) from exc

        records = [self._to_record(instance) for instance in instances]
        return sorted(records, key=record_order)

    def clear(self) -> None:
        """Clear all embeddings from the database."""
        try:
            self.model.objects.all().delete()
        except DatabaseError as exc:
            raise StoreError(f"Failed to clear embeddings: {exc}") from exc

    def _search(self, query_vector, *, limit, min_similarity, content_type):
        queryset = self.model.objects.annotate_with_distance(query_vector).filter(
            distance__lte=1 - min_similarity
        )
        if content_type is not None:
            queryset = queryset.filter(content_type=content_type)

        queryset = queryset.order_by("distance").only(
            "id", "document_id", "content_type", "text_chunk", "chunk_index"
        )[:limit]

        try:
            instances = list(queryset)
        except DatabaseError as exc:
            logger.error(f"Similarity search failed: {exc}")
            raise StoreError(f"Similarity search failed: {exc}") from exc

        logger.debug(f"Similarity search returned {len(instances)} embeddings")
        return [
            SimilarEmbedding(
                id=instance.id,
                document_id=instance.document_id,
                content_type=ContentType(instance.content_type),
                text_chunk=instance.text_chunk,
                chunk_index=instance.chunk_index,
                similarity=1 - float(instance.distance),
            )
            for instance in instances
        ]
