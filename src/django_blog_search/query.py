import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError
from django.utils.text import Truncator

from .exceptions import BlogSearchError, ValidationError
from .schema import ContentType, SimilarEmbedding
from .storage.base import MAX_SEARCH_LIMIT

if TYPE_CHECKING:
    from .embedding import EmbeddingGenerator
    from .source import ModelSource
    from .storage import StorageProvider

logger = logging.getLogger(__name__)

SEARCH_FAILED_MESSAGE = "Search failed, please try again later"


@dataclass(frozen=True)
class SearchHit:
    """A post matched by a search, with the chunk that matched best."""

    post: Any
    document_id: str
    similarity: float
    snippet: str
    content_type: ContentType
    chunk_index: int | None = None


@dataclass
class SearchResults:
    success: bool
    search_query: str
    posts: list[SearchHit] = field(default_factory=list)
    total_count: int = 0
    current_page: int = 1
    total_pages: int = 0
    error: str | None = None

    @classmethod
    def failed(cls, query: str, *, page: int, error: str) -> "SearchResults":
        return cls(success=False, search_query=query, current_page=page, error=error)

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1


class QueryHandler:
    """Semantic search over the stored embeddings, one hit per post."""

    def __init__(
        self,
        *,
        storage_provider: "StorageProvider",
        source: "ModelSource",
        embedding_generator: "EmbeddingGenerator",
        default_limit: int = 10,
        default_min_similarity: float = 0.5,
        snippet_length: int = 200,
    ):
        self.storage_provider = storage_provider
        self.source = source
        self.embedding_generator = embedding_generator
        self.default_limit = default_limit
        self.default_min_similarity = default_min_similarity
        self.snippet_length = snippet_length

    def search_documents(
        self,
        query: str,
        *,
        limit: int | None = None,
        min_similarity: float | None = None,
        page: int = 1,
        only_published: bool = True,
    ) -> SearchResults:
        """Search posts by meaning and return one page of results.

        Errors never propagate out of here: they are logged and come back as a
        result with ``success=False``.

        Args:
            query: The search query string
            limit: Posts per page
            min_similarity: Lowest similarity a matching chunk may have
            page: 1-based page number
            only_published: Leave out posts that fail the published filter
        """
        limit = self.default_limit if limit is None else limit
        if min_similarity is None:
            min_similarity = self.default_min_similarity

        if not isinstance(query, str) or not query.strip():
            return SearchResults.failed(
                query or "", page=1, error="Search query cannot be empty"
            )

        try:
            return self._search(
                query,
                limit=limit,
                min_similarity=min_similarity,
                page=page,
                only_published=only_published,
            )
        except ValidationError as exc:
            logger.warning(f"Rejected search for {query!r}: {exc}")
            return SearchResults.failed(query, page=page, error=str(exc))
        except (BlogSearchError, DatabaseError):
            logger.exception(f"Search failed for query {query!r}")
            return SearchResults.failed(query, page=page, error=SEARCH_FAILED_MESSAGE)

    def _search(
        self,
        query: str,
        *,
        limit: int,
        min_similarity: float,
        page: int,
        only_published: bool,
    ) -> SearchResults:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(f"Limit must be a positive integer, got {limit!r}")
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError(f"Page must be a positive integer, got {page!r}")

        query_embedding = self.embedding_generator.generate_embedding(query)

        # Every page ranks the same window of chunks.
        matches = self.storage_provider.search_similar_embeddings(
            query_embedding, limit=MAX_SEARCH_LIMIT, min_similarity=min_similarity
        )

        best_matches = self._best_match_per_document(matches)
        posts = self.source.find_documents_by_ids(
            best_matches, only_published=only_published
        )

        dropped = len(best_matches) - len(posts)
        if dropped:
            logger.debug(f"{dropped} matched documents are missing or unpublished")

        hits = [
            SearchHit(
                post=posts[document_id],
                document_id=document_id,
                similarity=match.similarity,
                snippet=self.make_snippet(match.text_chunk),
                content_type=match.content_type,
                chunk_index=match.chunk_index,
            )
            for document_id, match in best_matches.items()
            if document_id in posts
        ]
        hits.sort(key=lambda hit: hit.similarity, reverse=True)

        total_count = len(hits)
        start = (page - 1) * limit

        logger.info(
            f"Search for {query!r} matched {len(matches)} embeddings "
            f"across {total_count} posts"
        )
        return SearchResults(
            success=True,
            search_query=query,
            posts=hits[start : start + limit],
            total_count=total_count,
            current_page=page,
            total_pages=math.ceil(total_count / limit),
        )

    def _best_match_per_document(
        self, matches: list[SimilarEmbedding]
    ) -> dict[str, SimilarEmbedding]:
        best: dict[str, SimilarEmbedding] = {}
        for match in matches:
            existing = best.get(match.document_id)
            if existing is None or match.similarity > existing.similarity:
                best[match.document_id] = match
        return best

    def make_snippet(self, text: str) -> str:
        return Truncator(text).chars(self.snippet_length)
