import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Callable, Iterable

from .chunking import ChunkTransformer, ParagraphTokenChunkTransformer
from .embedding import DEFAULT_BATCH_SIZE, MAX_TOKENS
from .exceptions import BlogSearchError, DocumentNotFound, ValidationError
from .query import QueryHandler
from .schema import ContentType, EmbeddingRecord, SourceDocument
from .tokenizer import DEFAULT_ENCODING_MODEL, Tokenizer, get_tokenizer

if TYPE_CHECKING:
    from .conf import SearchConfig
    from .embedding import EmbeddingGenerator
    from .query import SearchResults
    from .source import ModelSource
    from .storage import StorageProvider


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SourceDocument, int | None, BlogSearchError | None], None]


class EmbeddingIndex:
    """
    Keeps the stored embeddings of a post in step with its text and searches them.

    Each post gets one ``title`` record. Its body gets a single ``content``
    record when it fits in ``max_tokens``, otherwise one ``chunk`` record per
    chunk.
    """

    def __init__(
        self,
        *,
        source: "ModelSource",
        embedding_generator: "EmbeddingGenerator",
        storage_provider: "StorageProvider",
        chunk_transformer: ChunkTransformer | None = None,
        tokenizer: Tokenizer | None = None,
        max_tokens: int = MAX_TOKENS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        query_handler: QueryHandler | None = None,
    ):
        self.source = source
        self.embedding_generator = embedding_generator
        self.storage_provider = storage_provider
        self.tokenizer = tokenizer
        self.chunk_transformer = chunk_transformer or ParagraphTokenChunkTransformer(
            tokenizer=tokenizer
        )
        self.max_tokens = max_tokens
        self.batch_size = batch_size
        self.query_handler = query_handler or QueryHandler(
            storage_provider=storage_provider,
            source=source,
            embedding_generator=embedding_generator,
        )

    def count_tokens(self, text: str) -> int:
        return (self.tokenizer or get_tokenizer()).count_tokens(text)

    def build_document_records(self, document: SourceDocument) -> list[EmbeddingRecord]:
        """
        Embed a document without writing anything.

        Args:
            document: The post to embed

        Returns:
            The title record, then either one content record or the chunk
            records in order
        """
        if not document.title or not document.title.strip():
            raise ValidationError(f"Document {document.id} has an empty title")

        records = [
            EmbeddingRecord(
                document_id=document.id,
                content_type=ContentType.TITLE,
                text_chunk=document.title,
                embedding=self.embedding_generator.generate_embedding(document.title),
                token_count=self.count_tokens(document.title),
            )
        ]

        content = document.content or ""
        if not content.strip():
            logger.info(f"Document {document.id} has no body, embedding title only")
            return records

        content_tokens = self.count_tokens(content)
        if content_tokens <= self.max_tokens:
            records.append(
                EmbeddingRecord(
                    document_id=document.id,
                    content_type=ContentType.CONTENT,
                    text_chunk=content,
                    embedding=self.embedding_generator.generate_embedding(content),
                    token_count=content_tokens,
                )
            )
            return records

        logger.info(
            f"Document {document.id} is long ({content_tokens} tokens), chunking"
        )
        chunks = self.chunk_transformer.transform(content)
        embeddings = self.embedding_generator.batch_generate_embeddings(
            [chunk.text for chunk in chunks], batch_size=self.batch_size
        )
        records.extend(
            EmbeddingRecord(
                document_id=document.id,
                content_type=ContentType.CHUNK,
                text_chunk=chunk.text,
                embedding=embedding,
                chunk_index=chunk.index,
                token_count=chunk.token_count,
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        )
        logger.info(f"Generated {len(chunks)} chunks for document {document.id}")
        return records

    def generate_document_embeddings(self, document: SourceDocument) -> int:
        """Embed a document and store its records. Returns the number stored."""
        records = self.build_document_records(document)
        self.storage_provider.batch_insert_embeddings(records)
        return len(records)

    def update_document_embeddings(self, document: SourceDocument) -> int:
        """
        Replace every stored record of a document with freshly computed ones.

        The embeddings are computed first. The old records are only removed in
        the same transaction that writes the new ones, so a failure anywhere
        leaves the previous records in place.
        """
        logger.info(f"Updating embeddings for document {document.id}")
        records = self.build_document_records(document)
        self.storage_provider.replace_document_embeddings(document.id, records)
        logger.info(f"Updated embeddings for document {document.id}")
        return len(records)

    def update_document(self, document_id: str) -> int:
        """Fetch a document from the source and replace its embeddings."""
        document = self.source.fetch_document(document_id)
        if document is None:
            raise DocumentNotFound(f"Document {document_id} not found")
        return self.update_document_embeddings(document)

    def delete_document_embeddings(self, document_id: str) -> int:
        return self.storage_provider.delete_embeddings_by_document_id(document_id)

    def build(
        self,
        document_ids: Iterable[str] | None = None,
        *,
        documents: Iterable[SourceDocument] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[int, int]:
        """
        Build/rebuild embeddings for every document in the source.

        A failing document is logged and skipped so the rest still get embedded.

        Args:
            document_ids: Only rebuild these documents
            documents: Already fetched documents to rebuild instead of asking
                the source
            on_progress: Called after each document with the number of records
                stored, or with the error that made it fail

        Returns:
            Counts of documents that succeeded and failed
        """
        if documents is None:
            documents = self.source.get_documents(document_ids)

        succeeded = failed = 0
        for document in documents:
            try:
                count = self.update_document_embeddings(document)
            except BlogSearchError as exc:
                logger.exception(f"Failed to embed document {document.id}")
                failed += 1
                if on_progress:
                    on_progress(document, None, exc)
            else:
                succeeded += 1
                if on_progress:
                    on_progress(document, count, None)

        if not succeeded and not failed:
            logger.warning(f"No documents provided by source {self.source.source_id}")

        return succeeded, failed

    def search_documents(self, query: str, **options) -> "SearchResults":
        """Search posts. See QueryHandler.search_documents for the options."""
        return self.query_handler.search_documents(query, **options)


def build_index(config: "SearchConfig") -> EmbeddingIndex:
    """Build an index wired up from the given settings."""
    from django.apps import apps

    from .embedding import CoreEmbeddingGenerator
    from .llm import LLMService
    from .source import ModelSource
    from .storage import InMemoryProvider, PgVectorProvider

    if not config.model:
        raise ValueError("BLOG_SEARCH['MODEL'] must name the post model")

    if config.embedding_model == DEFAULT_ENCODING_MODEL:
        tokenizer = get_tokenizer()
    else:
        tokenizer = Tokenizer(config.embedding_model)
    source = ModelSource(
        apps.get_model(config.model),
        title_field=config.title_field,
        content_field=config.content_field,
        published_filter=config.published_filter,
    )
    embedding_generator = CoreEmbeddingGenerator(
        LLMService.create(
            model=config.embedding_model,
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
        ),
        tokenizer=tokenizer,
        max_tokens=config.max_tokens,
        dimensions=config.dimensions,
    )

    storage_cls = PgVectorProvider if config.storage == "pgvector" else InMemoryProvider
    storage_provider = storage_cls(
        embedding_model=config.embedding_model, dimensions=config.dimensions
    )

    return EmbeddingIndex(
        source=source,
        embedding_generator=embedding_generator,
        storage_provider=storage_provider,
        chunk_transformer=ParagraphTokenChunkTransformer(
            config.chunk_size, config.chunk_overlap, tokenizer=tokenizer
        ),
        tokenizer=tokenizer,
        max_tokens=config.max_tokens,
        batch_size=config.batch_size,
        query_handler=QueryHandler(
            storage_provider=storage_provider,
            source=source,
            embedding_generator=embedding_generator,
            default_limit=config.search_limit,
            default_min_similarity=config.min_similarity,
            snippet_length=config.snippet_length,
        ),
    )


@lru_cache
def get_index() -> EmbeddingIndex:
    """Get the process-wide index built from the ``BLOG_SEARCH`` setting."""
    from .conf import get_config

    return build_index(get_config())
