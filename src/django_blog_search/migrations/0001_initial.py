import uuid

import pgvector.django
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        pgvector.django.VectorExtension(),
        migrations.CreateModel(
            name="PostEmbedding",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("document_id", models.CharField(db_index=True, max_length=255)),
                (
                    "content_type",
                    models.CharField(
                        choices=[
                            ("title", "Title"),
                            ("content", "Content"),
                            ("chunk", "Chunk"),
                        ],
                        max_length=16,
                    ),
                ),
                ("text_chunk", models.TextField()),
                ("chunk_index", models.PositiveIntegerField(blank=True, null=True)),
                ("token_count", models.PositiveIntegerField(blank=True, null=True)),
                ("embedding_model", models.CharField(max_length=255)),
                ("dimensions", models.PositiveIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("embedding", pgvector.django.VectorField(dimensions=1536)),
            ],
            options={
                "verbose_name": "post embedding",
            },
        ),
    ]
