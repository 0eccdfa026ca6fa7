from django.db import migrations

INDEX_NAME = "django_blog_search_postembedding_hnsw_idx"


def create_hnsw_index(apps, schema_editor):
    # Only PostgreSQL has the vector extension.
    if schema_editor.connection.vendor != "postgresql":
        return

    table = apps.get_model("django_blog_search", "PostEmbedding")._meta.db_table
    schema_editor.execute(
        f"CREATE INDEX IF NOT EXISTS {INDEX_NAME} ON {table} "
        "USING hnsw (embedding vector_cosine_ops) WITH (m = 16, ef_construction = 64)"
    )


def drop_hnsw_index(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return

    schema_editor.execute(f"DROP INDEX IF EXISTS {INDEX_NAME}")


class Migration(migrations.Migration):
    dependencies = [
        ("django_blog_search", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(create_hnsw_index, drop_hnsw_index),
    ]
