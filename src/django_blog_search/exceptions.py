"""Exception hierarchy for semantic search."""

RETRYABLE_STATUS_CODES = frozenset({408, 409, 429})


class BlogSearchError(Exception):
    """Base exception for django_blog_search"""

    pass


class ValidationError(BlogSearchError, ValueError):
    """Malformed input caught before any network or database call"""

    pass


class UpstreamAPIError(BlogSearchError):
    """The embedding provider failed (rate limit, auth, transient 5xx)"""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        # No status code means the request never got a response.
        if self.status_code is None:
            return True
        return self.status_code in RETRYABLE_STATUS_CODES or self.status_code >= 500


class StoreError(BlogSearchError):
    """The vector store failed to read or write"""

    pass


class DocumentNotFound(BlogSearchError, LookupError):
    """The document to embed no longer exists"""

    pass
