import re
from unittest import mock

import pytest

from django_blog_search.base import EmbeddingIndex, get_index
from django_blog_search.chunking import ParagraphTokenChunkTransformer
from django_blog_search.conf import get_config
from django_blog_search.embedding import EmbeddingGenerator
from django_blog_search.source import ModelSource
from django_blog_search.storage import InMemoryProvider
from django_blog_search.tokenizer import Tokenizer

VOCABULARY = [
    "python",
    "generators",
    "django",
    "search",
    "bread",
    "baking",
    "dough",
    "vectors",
]


class CharEncoding:
    """One token per character, so token counts are easy to reason about."""

    def encode(self, text):
        return [ord(char) for char in text]

    def decode(self, tokens):
        return "".join(chr(token) for token in tokens)


class KeywordEmbeddingGenerator(EmbeddingGenerator):
    """Bag-of-words embeddings over a fixed vocabulary.

    Unknown words count towards a final catch-all dimension.
    """

    def __init__(self, vocabulary=VOCABULARY):
        self.vocabulary = list(vocabulary)
        self.dimensions = len(self.vocabulary) + 1
        self.calls = []
        self.batch_calls = []

    def embed(self, text):
        vector = [0.0] * self.dimensions
        for word in re.findall(r"\w+", text.lower()):
            if word in self.vocabulary:
                vector[self.vocabulary.index(word)] += 1.0
            else:
                vector[-1] += 1.0
        return vector

    def generate_embedding(self, text):
        self.calls.append(text)
        return self.embed(text)

    def batch_generate_embeddings(self, texts, *, batch_size=100):
        self.batch_calls.append(list(texts))
        return [self.embed(text) for text in texts]


@pytest.fixture(autouse=True)
def clear_cached_config():
    get_config.cache_clear()
    get_index.cache_clear()
    yield
    get_config.cache_clear()
    get_index.cache_clear()


@pytest.fixture
def char_tokenizer():
    return Tokenizer("test-model", encoding=CharEncoding())


@pytest.fixture
def embedding_generator():
    return KeywordEmbeddingGenerator()


@pytest.fixture
def storage_provider(embedding_generator):
    return InMemoryProvider(
        embedding_model="test-embedding-model",
        dimensions=embedding_generator.dimensions,
    )


@pytest.fixture
def post_source():
    from testapp.models import Post

    return ModelSource(Post)


@pytest.fixture
def blog_index(post_source, embedding_generator, storage_provider, char_tokenizer):
    """An index over testapp posts with no network access.

    Bodies over 60 characters are split into chunks of at most 30.
    """
    index = EmbeddingIndex(
        source=post_source,
        embedding_generator=embedding_generator,
        storage_provider=storage_provider,
        chunk_transformer=ParagraphTokenChunkTransformer(
            30, 5, tokenizer=char_tokenizer
        ),
        tokenizer=char_tokenizer,
        max_tokens=60,
    )
    targets = [
        "django_blog_search.base.get_index",
        "django_blog_search.tasks.get_index",
        "django_blog_search.management.commands.rebuild_post_embeddings.get_index",
    ]
    patchers = [mock.patch(target, return_value=index) for target in targets]
    for patcher in patchers:
        patcher.start()
    yield index
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def make_post(db):
    from testapp.models import Post

    def factory(title="A post", content="Some content", published=True, **kwargs):
        return Post.objects.create(
            title=title, content=content, published=published, **kwargs
        )

    return factory
