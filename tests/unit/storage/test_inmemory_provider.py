import pytest

from django_blog_search.exceptions import StoreError, ValidationError
from django_blog_search.schema import ContentType, EmbeddingRecord
from django_blog_search.storage import InMemoryProvider


def make_record(
    document_id="1",
    content_type=ContentType.TITLE,
    embedding=(1.0, 0.0, 0.0),
    chunk_index=None,
    text="Some text",
    **kwargs,
):
    return EmbeddingRecord(
        document_id=document_id,
        content_type=content_type,
        text_chunk=text,
        embedding=list(embedding),
        chunk_index=chunk_index,
        **kwargs,
    )


@pytest.fixture
def provider():
    return InMemoryProvider(embedding_model="test-model", dimensions=3)


class TestInMemoryProviderWrites:
    def test_insert_fills_defaults(self, provider):
        provider.insert_embedding(make_record())

        [stored] = provider.get_embeddings("1")
        assert stored.embedding_model == "test-model"
        assert stored.dimensions == 3
        assert stored.id is not None
        assert stored.created_at is not None

    def test_insert_keeps_explicit_model(self, provider):
        provider.insert_embedding(make_record(embedding_model="other-model"))

        assert provider.get_embeddings("1")[0].embedding_model == "other-model"

    def test_get_embeddings_orders_title_then_chunks(self, provider):
        provider.batch_insert_embeddings(
            [
                make_record(content_type=ContentType.CHUNK, chunk_index=1),
                make_record(content_type=ContentType.CHUNK, chunk_index=0),
                make_record(content_type=ContentType.TITLE),
            ]
        )

        records = provider.get_embeddings("1")
        assert [(r.content_type, r.chunk_index) for r in records] == [
            (ContentType.TITLE, None),
            (ContentType.CHUNK, 0),
            (ContentType.CHUNK, 1),
        ]

    def test_batch_with_one_invalid_record_stores_nothing(self, provider):
        with pytest.raises(ValidationError) as excinfo:
            provider.batch_insert_embeddings(
                [make_record(), make_record(embedding=[1.0, float("nan"), 0.0])]
            )

        assert "index 1" in str(excinfo.value)
        assert not provider.has_embeddings("1")

    def test_empty_batch_is_a_no_op(self, provider):
        provider.batch_insert_embeddings([])

        assert provider.records == {}

    def test_dimension_mismatch_is_rejected(self, provider):
        with pytest.raises(ValidationError):
            provider.insert_embedding(make_record(embedding=[1.0, 0.0]))

    def test_record_cannot_override_configured_dimensions(self, provider):
        with pytest.raises(ValidationError):
            provider.insert_embedding(
                make_record(embedding=[1.0, 0.0, 0.0, 0.0], dimensions=4)
            )

        assert not provider.has_embeddings("1")

    def test_chunk_record_requires_chunk_index(self, provider):
        with pytest.raises(ValidationError):
            provider.insert_embedding(make_record(content_type=ContentType.CHUNK))

    def test_title_record_cannot_have_chunk_index(self, provider):
        with pytest.raises(ValidationError):
            provider.insert_embedding(make_record(chunk_index=0))

    @pytest.mark.parametrize(
        "kwargs",
        [{"document_id": ""}, {"text": ""}, {"content_type": "summary"}],
    )
    def test_invalid_fields_are_rejected(self, provider, kwargs):
        with pytest.raises(ValidationError):
            provider.insert_embedding(make_record(**kwargs))

    def test_plain_string_content_type_is_accepted(self, provider):
        provider.insert_embedding(make_record(content_type="content"))

        assert provider.get_embeddings("1")[0].content_type == ContentType.CONTENT

    def test_delete_returns_number_removed(self, provider):
        provider.batch_insert_embeddings(
            [make_record(), make_record(content_type=ContentType.CONTENT)]
        )

        assert provider.delete_embeddings_by_document_id("1") == 2
        assert provider.delete_embeddings_by_document_id("1") == 0
        assert not provider.has_embeddings("1")

    def test_replace_swaps_all_records(self, provider):
        provider.batch_insert_embeddings(
            [
                make_record(),
                make_record(content_type=ContentType.CHUNK, chunk_index=0),
                make_record(content_type=ContentType.CHUNK, chunk_index=1),
            ]
        )

        provider.replace_document_embeddings(
            "1",
            [
                make_record(text="New title"),
                make_record(content_type=ContentType.CONTENT),
            ],
        )

        records = provider.get_embeddings("1")
        assert [r.content_type for r in records] == [
            ContentType.TITLE,
            ContentType.CONTENT,
        ]
        assert records[0].text_chunk == "New title"

    def test_replace_rejects_records_of_other_documents(self, provider):
        provider.insert_embedding(make_record())

        with pytest.raises(ValidationError):
            provider.replace_document_embeddings("1", [make_record(document_id="2")])

        assert len(provider.get_embeddings("1")) == 1

    def test_replace_with_no_records_deletes(self, provider):
        provider.insert_embedding(make_record())

        provider.replace_document_embeddings("1", [])

        assert not provider.has_embeddings("1")

    def test_clear(self, provider):
        provider.insert_embedding(make_record(document_id="1"))
        provider.insert_embedding(make_record(document_id="2"))

        provider.clear()

        assert not provider.has_embeddings("1")
        assert not provider.has_embeddings("2")


class TestInMemoryProviderSearch:
    @pytest.fixture
    def populated(self, provider):
        provider.batch_insert_embeddings(
            [
                make_record(document_id="1", embedding=[1.0, 0.0, 0.0]),
                make_record(document_id="2", embedding=[1.0, 1.0, 0.0]),
                make_record(
                    document_id="3",
                    content_type=ContentType.CHUNK,
                    chunk_index=0,
                    embedding=[0.0, 1.0, 0.0],
                ),
                make_record(document_id="4", embedding=[-1.0, 0.0, 0.0]),
            ]
        )
        return provider

    def test_results_ordered_by_similarity(self, populated):
        results = populated.search_similar_embeddings(
            [1.0, 0.0, 0.0], min_similarity=0
        )

        assert [r.document_id for r in results] == ["1", "2", "3"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[1].similarity == pytest.approx(0.7071, abs=1e-4)
        assert results[2].similarity == pytest.approx(0.0)

    def test_min_similarity_filters(self, populated):
        results = populated.search_similar_embeddings(
            [1.0, 0.0, 0.0], min_similarity=0.7
        )

        assert [r.document_id for r in results] == ["1", "2"]

    def test_limit_caps_results(self, populated):
        results = populated.search_similar_embeddings(
            [1.0, 0.0, 0.0], limit=1, min_similarity=0
        )

        assert [r.document_id for r in results] == ["1"]

    def test_content_type_filter(self, populated):
        results = populated.search_similar_embeddings(
            [1.0, 0.0, 0.0], min_similarity=0, content_type=ContentType.CHUNK
        )

        assert [(r.document_id, r.chunk_index) for r in results] == [("3", 0)]

    def test_search_on_empty_store(self, provider):
        assert provider.search_similar_embeddings([1.0, 0.0, 0.0]) == []

    @pytest.mark.parametrize("limit", [0, 101, 2.5, True])
    def test_invalid_limit(self, populated, limit):
        with pytest.raises(ValidationError):
            populated.search_similar_embeddings([1.0, 0.0, 0.0], limit=limit)

    @pytest.mark.parametrize("min_similarity", [-0.1, 1.5])
    def test_invalid_min_similarity(self, populated, min_similarity):
        with pytest.raises(ValidationError):
            populated.search_similar_embeddings(
                [1.0, 0.0, 0.0], min_similarity=min_similarity
            )

    def test_invalid_query_vector(self, populated):
        with pytest.raises(ValidationError):
            populated.search_similar_embeddings([])

    def test_query_vector_of_wrong_dimensions(self, populated):
        with pytest.raises(ValidationError):
            populated.search_similar_embeddings([1.0, 0.0])

    def test_stored_embeddings_of_other_dimensions(self):
        provider = InMemoryProvider(embedding_model="test-model", dimensions=None)
        provider.insert_embedding(make_record(document_id="1"))
        provider.insert_embedding(
            make_record(document_id="2", embedding=[1.0, 0.0, 0.0, 0.0])
        )

        with pytest.raises(StoreError):
            provider.search_similar_embeddings([1.0, 0.0, 0.0], min_similarity=0)
