import uuid
from typing import Self, Sequence

from django.db import models
from django.db.models import Value
from pgvector.django import CosineDistance, VectorField

from .schema import ContentType
from .vectors import vector_to_sql_literal


class PostEmbeddingQuerySet(models.QuerySet["BasePostEmbedding"]):
    def for_document(self, document_id: str) -> Self:
        return self.filter(document_id=document_id)

    def annotate_with_distance(self, query_vector: Sequence[float]) -> Self:
        # The literal is sent as a bound parameter.
        literal = Value(vector_to_sql_literal(query_vector))
        return self.annotate(distance=CosineDistance("embedding", literal))


class PostEmbeddingManager(models.Manager.from_queryset(PostEmbeddingQuerySet)):
    pass


class BasePostEmbedding(models.Model):
    """
    Django model to be used with PgVectorProvider.

    Subclasses add an ``embedding`` VectorField sized for their embedding model.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    document_id = models.CharField(max_length=255, db_index=True)
    content_type = models.CharField(max_length=16, choices=ContentType.choices)
    text_chunk = models.TextField()
    chunk_index = models.PositiveIntegerField(null=True, blank=True)
    token_count = models.PositiveIntegerField(null=True, blank=True)
    embedding_model = models.CharField(max_length=255)
    dimensions = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PostEmbeddingManager()

    class Meta:
        abstract = True

    def __str__(self):
        if self.content_type == ContentType.CHUNK:
            return f"{self.document_id}:{self.content_type}:{self.chunk_index}"
        return f"{self.document_id}:{self.content_type}"


class PostEmbedding(BasePostEmbedding):
    embedding = VectorField(dimensions=1536)

    class Meta:
        verbose_name = "post embedding"
