import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_delete, post_save

from .conf import SearchConfig
from .exceptions import BlogSearchError

logger = logging.getLogger(__name__)

DISPATCH_UID_PREFIX = "django_blog_search"


def enqueue_embedding_update(document_id: str, *, queue: str | None = None) -> None:
    """Schedule an embedding update once the current transaction commits."""
    from .tasks import generate_post_embeddings

    def send():
        logger.debug(f"Enqueuing embedding update for document {document_id}")
        generate_post_embeddings.apply_async(args=[document_id], queue=queue)

    transaction.on_commit(send)


def handle_post_save(
    sender, instance, update_fields=None, raw=False, *, config: SearchConfig, **kwargs
):
    """When a post is saved, regenerate its embeddings in the background."""
    if raw:
        # Fixture loading
        return

    if update_fields is not None and not (
        {config.title_field, config.content_field} & set(update_fields)
    ):
        return

    enqueue_embedding_update(str(instance.pk), queue=config.queue)


def handle_post_delete(sender, instance, **kwargs):
    """When a post is deleted, remove its embeddings.

    A failure here is logged and never blocks the delete itself.
    """
    from .base import get_index

    try:
        get_index().delete_document_embeddings(str(instance.pk))
    except (BlogSearchError, LookupError, ValueError):
        logger.exception(f"Failed to delete embeddings for document {instance.pk}")


def connect_signals(config: SearchConfig) -> bool:
    """Connect the handlers to the configured post model.

    Returns whether anything was connected.
    """
    if not config.auto_index or not config.model:
        return False

    post_save.connect(
        partial(handle_post_save, config=config),
        sender=config.model,
        weak=False,
        dispatch_uid=f"{DISPATCH_UID_PREFIX}_post_save",
    )
    post_delete.connect(
        handle_post_delete,
        sender=config.model,
        weak=False,
        dispatch_uid=f"{DISPATCH_UID_PREFIX}_post_delete",
    )
    return True


def disconnect_signals(config: SearchConfig) -> None:
    if not config.model:
        return

    post_save.disconnect(
        sender=config.model, dispatch_uid=f"{DISPATCH_UID_PREFIX}_post_save"
    )
    post_delete.disconnect(
        sender=config.model, dispatch_uid=f"{DISPATCH_UID_PREFIX}_post_delete"
    )
