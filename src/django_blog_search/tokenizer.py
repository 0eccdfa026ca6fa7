"""
Token counting for the embedding model.

A single tiktoken encoding is built lazily and shared by the whole process.
``cleanup()`` drops it; the next call rebuilds it.
"""

import atexit
import logging
import threading
from typing import Protocol, Sequence

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_ENCODING_MODEL = "text-embedding-3-small"


class Encoding(Protocol):
    """The subset of ``tiktoken.Encoding`` used here."""

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: Sequence[int]) -> str: ...


class Tokenizer:
    """Wraps a byte-pair encoding for counting, encoding and decoding tokens."""

    def __init__(
        self,
        model_name: str = DEFAULT_ENCODING_MODEL,
        *,
        encoding: Encoding | None = None,
    ):
        self.model_name = model_name
        self._encoding = encoding
        self._lock = threading.Lock()

    @property
    def encoding(self) -> Encoding:
        if self._encoding is None:
            with self._lock:
                if self._encoding is None:
                    logger.debug(f"Loading tiktoken encoding for {self.model_name}")
                    self._encoding = tiktoken.encoding_for_model(self.model_name)
        return self._encoding

    def encode(self, text: str) -> list[int]:
        # Special-token text in user content is encoded as ordinary text.
        if isinstance(self.encoding, tiktoken.Encoding):
            return self.encoding.encode(text, disallowed_special=())
        return self.encoding.encode(text)

    def decode(self, tokens: Sequence[int]) -> str:
        return self.encoding.decode(list(tokens))

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encode(text))

    def cleanup(self) -> None:
        """Release the encoding. It is rebuilt on next use."""
        with self._lock:
            self._encoding = None


_tokenizer: Tokenizer | None = None
_tokenizer_lock = threading.Lock()


def get_tokenizer() -> Tokenizer:
    """Get the process-wide tokenizer."""
    global _tokenizer
    if _tokenizer is None:
        with _tokenizer_lock:
            if _tokenizer is None:
                _tokenizer = Tokenizer()
    return _tokenizer


def count_tokens(text: str) -> int:
    return get_tokenizer().count_tokens(text)


def decode_tokens(tokens: Sequence[int]) -> str:
    return get_tokenizer().decode(tokens)


def cleanup() -> None:
    if _tokenizer is not None:
        _tokenizer.cleanup()


atexit.register(cleanup)
