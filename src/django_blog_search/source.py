import logging
from typing import Any, Iterable, Iterator

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models
from django.db.models import QuerySet

from .schema import SourceDocument

logger = logging.getLogger(__name__)


class ModelSource:
    """Reads blog posts from a Django model and turns them into documents."""

    def __init__(
        self,
        model: type[models.Model],
        *,
        title_field: str = "title",
        content_field: str = "content",
        published_filter: dict[str, Any] | None = None,
    ):
        self.model = model
        self.title_field = title_field
        self.content_field = content_field
        self.published_filter = (
            {"published": True} if published_filter is None else dict(published_filter)
        )

    @property
    def source_id(self) -> str:
        """Use Django model label as source ID."""
        return self.model._meta.label

    def get_queryset(self, *, only_published: bool = False) -> QuerySet:
        queryset = self.model._default_manager.all()
        if only_published and self.published_filter:
            queryset = queryset.filter(**self.published_filter)
        return queryset

    def provides_object(self, obj: object) -> bool:
        """Check if the given object belongs to this source."""
        return isinstance(obj, self.model)

    def get_document_id(self, obj: models.Model) -> str:
        return str(obj.pk)

    def _get_field_value(self, obj: models.Model, field_name: str) -> str:
        value = getattr(obj, field_name)
        if callable(value):
            value = value()
        return "" if value is None else str(value)

    def object_to_document(self, obj: models.Model) -> SourceDocument:
        if not self.provides_object(obj):
            raise ValueError("Object does not belong to this source")

        return SourceDocument(
            id=self.get_document_id(obj),
            title=self._get_field_value(obj, self.title_field),
            content=self._get_field_value(obj, self.content_field),
        )

    def _to_pk(self, document_id: str) -> Any:
        try:
            return self.model._meta.pk.to_python(document_id)
        except DjangoValidationError:
            logger.warning(f"Ignoring malformed document id {document_id!r}")
            return None

    def fetch_document(self, document_id: str) -> SourceDocument | None:
        """Get the document with the given id, or None if it no longer exists."""
        pk = self._to_pk(document_id)
        if pk is None:
            return None

        try:
            obj = self.get_queryset().get(pk=pk)
        except self.model.DoesNotExist:
            return None
        return self.object_to_document(obj)

    def find_documents_by_ids(
        self, document_ids: Iterable[str], *, only_published: bool = True
    ) -> dict[str, models.Model]:
        """
        Load the posts for a set of document ids in one query.

        Args:
            document_ids: Ids as stored alongside the embeddings
            only_published: Apply the published filter

        Returns:
            Mapping of document id to model instance. Ids with no matching post
            are left out.
        """
        pks = [
            pk
            for pk in map(self._to_pk, dict.fromkeys(document_ids))
            if pk is not None
        ]

        if not pks:
            return {}

        queryset = self.get_queryset(only_published=only_published).filter(pk__in=pks)
        return {self.get_document_id(obj): obj for obj in queryset}

    def get_documents(
        self, document_ids: Iterable[str] | None = None
    ) -> Iterator[SourceDocument]:
        """Get documents for every post, or for the given ids."""
        queryset = self.get_queryset().order_by("pk")
        if document_ids is not None:
            pks = [pk for pk in map(self._to_pk, document_ids) if pk is not None]
            queryset = queryset.filter(pk__in=pks)

        for obj in queryset.iterator():
            yield self.object_to_document(obj)
