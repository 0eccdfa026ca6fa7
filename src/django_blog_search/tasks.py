import logging

from celery import shared_task
from celery.utils.time import get_exponential_backoff_interval

from .base import get_index
from .exceptions import StoreError, UpstreamAPIError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = 60
RETRY_BACKOFF_MAX = 600


@shared_task(
    bind=True,
    name="django_blog_search.generate_post_embeddings",
    max_retries=MAX_RETRIES,
    autoretry_for=(StoreError,),
    retry_backoff=RETRY_BACKOFF,
    retry_backoff_max=RETRY_BACKOFF_MAX,
    acks_late=True,
)
def generate_post_embeddings(self, document_id: str):
    """
    Regenerate the embeddings of a post.

    Every run fully replaces the stored records, so running twice for the same
    post is harmless.

    Args:
        document_id: Primary key of the post, as a string

    Returns:
        dict: The document id and the number of records stored
    """
    document_id = str(document_id)
    logger.info(f"Generating embeddings for document {document_id}")

    try:
        count = get_index().update_document(document_id)
    except UpstreamAPIError as exc:
        if not exc.retryable:
            raise
        logger.warning(
            f"Embedding API error for document {document_id}, "
            f"retry {self.request.retries + 1} of {MAX_RETRIES}: {exc}"
        )
        raise self.retry(
            exc=exc,
            countdown=get_exponential_backoff_interval(
                RETRY_BACKOFF, self.request.retries, RETRY_BACKOFF_MAX, full_jitter=True
            ),
        )

    logger.info(f"Stored {count} embeddings for document {document_id}")
    return {"document_id": document_id, "records": count}
