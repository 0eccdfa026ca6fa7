import logging
from abc import ABC, abstractmethod
from typing import Sequence

import openai

from .exceptions import UpstreamAPIError, ValidationError
from .llm import LLMService
from .tokenizer import Tokenizer, get_tokenizer

logger = logging.getLogger(__name__)

# Input limit of the OpenAI text-embedding-3 models
MAX_TOKENS = 8191
DEFAULT_BATCH_SIZE = 100


class EmbeddingGenerator(ABC):
    """Base class for embedding generators which turn strings into vectors."""

    @property
    def generator_id(self) -> str:
        """Get unique identifier for this generator."""
        return self.__class__.__name__

    @abstractmethod
    def generate_embedding(self, text: str) -> list[float]:
        """Embed a single string."""
        pass

    @abstractmethod
    def batch_generate_embeddings(
        self, texts: Sequence[str], *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> list[list[float]]:
        """Embed many strings, returning vectors in input order."""
        pass


class CoreEmbeddingGenerator(EmbeddingGenerator):
    """Embedding generator that uses an OpenAI-compatible embeddings API."""

    def __init__(
        self,
        llm_service: LLMService,
        *,
        tokenizer: Tokenizer | None = None,
        max_tokens: int = MAX_TOKENS,
        dimensions: int | None = None,
    ):
        """Initialize with an LLM Service instance.

        Args:
            llm_service: The LLM service
            tokenizer: Tokenizer used to enforce ``max_tokens``
            max_tokens: Largest input the model accepts
            dimensions: Requested vector length; the model default when None
        """
        self.llm_service = llm_service
        self.tokenizer = tokenizer
        self.max_tokens = max_tokens
        self.dimensions = dimensions

    @property
    def generator_id(self) -> str:
        return f"core_{self.llm_service.service_id}"

    def count_tokens(self, text: str) -> int:
        return (self.tokenizer or get_tokenizer()).count_tokens(text)

    def validate_text(self, text: str, *, position: int | None = None) -> None:
        label = "Text" if position is None else f"Text {position}"
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(f"{label} cannot be empty")

        token_count = self.count_tokens(text)
        if token_count > self.max_tokens:
            raise ValidationError(
                f"{label} too long: {token_count} tokens (max: {self.max_tokens})"
            )

    def generate_embedding(self, text: str) -> list[float]:
        """Embed a string using the embeddings API."""
        self.validate_text(text)

        data = self._request(text)
        if len(data) != 1:
            raise UpstreamAPIError(
                f"Expected 1 embedding from {self.llm_service.model}, got {len(data)}"
            )

        embedding = list(data[0].embedding)
        self._check_dimensions([embedding])
        logger.debug(f"Generated embedding for text of length {len(text)}")
        return embedding

    def batch_generate_embeddings(
        self, texts: Sequence[str], *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> list[list[float]]:
        """Embed multiple strings using the embeddings API.

        Every text is validated before any request is sent, so an oversized text
        never leaves a batch partly submitted.

        Args:
            texts: Strings to embed
            batch_size: Number of strings sent in each request

        Returns:
            One vector per input text, in input order
        """
        if not texts:
            return []

        for position, text in enumerate(texts):
            self.validate_text(text, position=position)

        embeddings: list[list[float]] = []

        for start in range(0, len(texts), batch_size):
            batch = list(texts[start : start + batch_size])
            data = self._request(batch)

            if len(data) != len(batch):
                raise UpstreamAPIError(
                    f"Expected {len(batch)} embeddings from {self.llm_service.model}, "
                    f"got {len(data)}"
                )

            # The API tags each vector with its input position; order is not guaranteed.
            ordered = sorted(data, key=lambda item: item.index)
            embeddings.extend(list(item.embedding) for item in ordered)

        self._check_dimensions(embeddings)
        logger.info(f"Generated {len(embeddings)} embeddings in batch")
        return embeddings

    def _request(self, inputs: str | list[str]):
        kwargs = {"encoding_format": "float"}
        if self.dimensions is not None:
            kwargs["dimensions"] = self.dimensions

        try:
            return self.llm_service.embedding(inputs, **kwargs).data
        except openai.APIError as exc:
            status_code = getattr(exc, "status_code", None)
            logger.error(
                f"Embedding API error from {self.llm_service.model} "
                f"(status: {status_code}): {exc}"
            )
            raise UpstreamAPIError(
                f"Embedding request failed: {exc}", status_code=status_code
            ) from exc

    def _check_dimensions(self, embeddings: list[list[float]]) -> None:
        expected = self.dimensions or len(embeddings[0])
        for embedding in embeddings:
            if len(embedding) != expected:
                raise UpstreamAPIError(
                    f"Embedding has {len(embedding)} dimensions, expected {expected}"
                )
