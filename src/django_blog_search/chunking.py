import logging
import re
from dataclasses import dataclass
from typing import Protocol

from .exceptions import ValidationError
from .tokenizer import Tokenizer, get_tokenizer

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500
DEFAULT_CHUNK_OVERLAP = 50

PARAGRAPH_SEPARATOR = "\n\n"
PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class TextChunk:
    """A token-bounded slice of a longer text."""

    text: str
    token_count: int
    index: int


class ChunkTransformer(Protocol):
    """Base class for chunking transformers which break a string into a list of chunks."""

    def transform(self, text: str) -> list[TextChunk]:
        """Transform a string into chunks."""
        ...


class ParagraphTokenChunkTransformer(ChunkTransformer):
    """Chunks strings by paragraphs, bounded by a token budget, with token overlap."""

    def __init__(
        self,
        max_tokens: int = DEFAULT_CHUNK_SIZE,
        overlap_tokens: int = DEFAULT_CHUNK_OVERLAP,
        *,
        tokenizer: Tokenizer | None = None,
    ):
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.tokenizer = tokenizer

    def transform(self, text: str) -> list[TextChunk]:
        return chunk_text(
            text,
            max_tokens=self.max_tokens,
            overlap_tokens=self.overlap_tokens,
            tokenizer=self.tokenizer,
        )


def split_paragraphs(text: str) -> list[str]:
    """Split text on blank lines, dropping empty paragraphs."""
    paragraphs = (p.strip() for p in PARAGRAPH_SPLIT_RE.split(text))
    return [p for p in paragraphs if p]


def chunk_text(
    text: str,
    *,
    max_tokens: int = DEFAULT_CHUNK_SIZE,
    overlap_tokens: int = DEFAULT_CHUNK_OVERLAP,
    tokenizer: Tokenizer | None = None,
) -> list[TextChunk]:
    """
    Split text into overlapping chunks of at most ``max_tokens`` tokens.

    Paragraphs (separated by blank lines) are packed together until the next one
    would overflow the budget. Each new chunk then starts with the last
    ``overlap_tokens`` tokens of the previous chunk. A paragraph that alone
    exceeds the budget is cut at raw token boundaries into its own chunks.

    Args:
        text: Text to chunk
        max_tokens: Upper bound on the tokens in each chunk
        overlap_tokens: Tokens carried over from the end of one chunk to the next,
            clamped to ``max_tokens - 1``
        tokenizer: Tokenizer to measure with (default: the process-wide one)

    Returns:
        Chunks with indices numbered 0..N-1. Blank input gives an empty list.
    """
    if max_tokens < 1:
        raise ValidationError(f"max_tokens must be at least 1, got {max_tokens}")

    overlap_tokens = max(0, min(overlap_tokens, max_tokens - 1))
    tokenizer = tokenizer or get_tokenizer()

    pieces: list[tuple[str, int]] = []
    buffer = ""

    for paragraph in split_paragraphs(text):
        paragraph_tokens = tokenizer.encode(paragraph)

        if len(paragraph_tokens) > max_tokens:
            if buffer:
                pieces.append((buffer, tokenizer.count_tokens(buffer)))
                buffer = ""
            pieces.extend(_force_split(paragraph_tokens, max_tokens, tokenizer))
            continue

        if not buffer:
            buffer = paragraph
            continue

        candidate = f"{buffer}{PARAGRAPH_SEPARATOR}{paragraph}"
        if tokenizer.count_tokens(candidate) <= max_tokens:
            buffer = candidate
            continue

        pieces.append((buffer, tokenizer.count_tokens(buffer)))
        buffer = _start_with_overlap(
            buffer, paragraph, overlap_tokens, max_tokens, tokenizer
        )

    if buffer:
        pieces.append((buffer, tokenizer.count_tokens(buffer)))

    chunks = [
        TextChunk(text=piece, token_count=count, index=index)
        for index, (piece, count) in enumerate(pieces)
    ]
    logger.debug(
        f"Split text into {len(chunks)} chunks "
        f"(max_tokens: {max_tokens}, overlap: {overlap_tokens})"
    )
    return chunks


def _force_split(
    tokens: list[int], max_tokens: int, tokenizer: Tokenizer
) -> list[tuple[str, int]]:
    """Cut a token sequence into pieces of ``max_tokens``; may cut mid-word."""
    pieces = []
    for start in range(0, len(tokens), max_tokens):
        piece_tokens = tokens[start : start + max_tokens]
        pieces.append((tokenizer.decode(piece_tokens), len(piece_tokens)))
    return pieces


def _start_with_overlap(
    previous: str,
    paragraph: str,
    overlap_tokens: int,
    max_tokens: int,
    tokenizer: Tokenizer,
) -> str:
    """Start a new buffer with the tail of ``previous`` followed by ``paragraph``.

    The tail shrinks until the new buffer fits in ``max_tokens``.
    """
    previous_tokens = tokenizer.encode(previous)
    overlap = min(overlap_tokens, len(previous_tokens))

    while overlap > 0:
        tail = tokenizer.decode(previous_tokens[-overlap:]).strip()
        candidate = f"{tail}{PARAGRAPH_SEPARATOR}{paragraph}" if tail else paragraph
        excess = tokenizer.count_tokens(candidate) - max_tokens
        if excess <= 0:
            return candidate
        overlap -= excess

    return paragraph
