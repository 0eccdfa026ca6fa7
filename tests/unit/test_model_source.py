import pytest

from django_blog_search.schema import SourceDocument
from django_blog_search.source import ModelSource
from testapp.models import Post

pytestmark = pytest.mark.django_db


def test_source_id(post_source):
    assert post_source.source_id == "testapp.Post"


def test_fetch_document(post_source, make_post):
    post = make_post(title="Hello", content="World")

    assert post_source.fetch_document(str(post.pk)) == SourceDocument(
        id=str(post.pk), title="Hello", content="World"
    )


def test_fetch_document_includes_unpublished_posts(post_source, make_post):
    post = make_post(published=False)

    assert post_source.fetch_document(str(post.pk)) is not None


@pytest.mark.parametrize("document_id", ["999999", "not-a-number"])
def test_fetch_missing_document_returns_none(post_source, document_id):
    assert post_source.fetch_document(document_id) is None


def test_custom_fields():
    source = ModelSource(Post, title_field="slug", content_field="brief")
    post = Post(pk=7, title="Title", slug="the-slug", brief="Short", content="Long")

    assert source.object_to_document(post) == SourceDocument(
        id="7", title="the-slug", content="Short"
    )


def test_object_from_another_model_is_rejected(post_source):
    with pytest.raises(ValueError):
        post_source.object_to_document(object())


def test_find_documents_by_ids_applies_published_filter(post_source, make_post):
    published = make_post(title="Published")
    draft = make_post(title="Draft", published=False)

    found = post_source.find_documents_by_ids([str(published.pk), str(draft.pk)])

    assert found == {str(published.pk): published}


def test_find_documents_by_ids_without_published_filter(post_source, make_post):
    published = make_post(title="Published")
    draft = make_post(title="Draft", published=False)

    found = post_source.find_documents_by_ids(
        [str(published.pk), str(draft.pk)], only_published=False
    )

    assert set(found) == {str(published.pk), str(draft.pk)}


def test_find_documents_by_ids_skips_missing_and_malformed(post_source, make_post):
    post = make_post()

    found = post_source.find_documents_by_ids([str(post.pk), "424242", "bad-id"])

    assert list(found) == [str(post.pk)]


def test_find_documents_by_ids_with_no_ids(post_source, django_assert_num_queries):
    with django_assert_num_queries(0):
        assert post_source.find_documents_by_ids([]) == {}


def test_custom_published_filter(make_post):
    source = ModelSource(Post, published_filter={"title__startswith": "Visible"})
    visible = make_post(title="Visible post", published=False)
    hidden = make_post(title="Hidden post")

    found = source.find_documents_by_ids([str(visible.pk), str(hidden.pk)])

    assert list(found) == [str(visible.pk)]


def test_get_documents(post_source, make_post):
    first = make_post(title="First")
    second = make_post(title="Second", published=False)

    assert [doc.id for doc in post_source.get_documents()] == [
        str(first.pk),
        str(second.pk),
    ]
    assert [doc.title for doc in post_source.get_documents([str(second.pk)])] == [
        "Second"
    ]


def test_provides_object(post_source):
    assert post_source.provides_object(Post(title="x"))
    assert not post_source.provides_object(object())


def test_published_filter_is_copied():
    published_filter = {"published": True}
    source = ModelSource(Post, published_filter=published_filter)
    source.published_filter["title"] = "x"

    assert published_filter == {"published": True}
