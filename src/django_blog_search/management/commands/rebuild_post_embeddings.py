"""
Django management command to rebuild post embeddings.

This command re-embeds every post of the configured model, or only the posts
whose ids are given.
"""

import logging
import time

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from django_blog_search.base import get_index
from django_blog_search.conf import get_config
from django_blog_search.signals import enqueue_embedding_update


class Command(BaseCommand):
    help = "Regenerate the semantic search embeddings of blog posts"

    def add_arguments(self, parser):
        parser.add_argument(
            "document_ids",
            nargs="*",
            help="Ids of the posts to re-embed (if not specified, re-embeds all)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be re-embedded without calling the embedding API",
        )
        parser.add_argument(
            "--async",
            action="store_true",
            dest="use_async",
            help="Enqueue a background task per post instead of embedding inline",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Enable verbose output",
        )

    def handle(self, *args, **options):
        document_ids = options.get("document_ids") or None
        dry_run = options["dry_run"]
        use_async = options["use_async"]
        verbose = options["verbose"]

        if verbose:
            logging.getLogger("django_blog_search").setLevel(logging.DEBUG)

        try:
            index = get_index()
        except (LookupError, ValueError) as e:
            raise CommandError(f"Semantic search is not configured: {e}") from e

        documents = list(index.source.get_documents(document_ids))
        if document_ids:
            missing = set(document_ids) - {document.id for document in documents}
            if missing:
                raise CommandError(f"Unknown post ids: {sorted(missing)}")

        if not documents:
            self.stdout.write(self.style.WARNING("No posts to embed"))
            return

        self.stdout.write(f"Found {len(documents)} post(s) to embed")

        if dry_run:
            for document in documents:
                self.stdout.write(f"  - {document.id}: {document.title}")
            self.stdout.write(
                self.style.WARNING("DRY RUN: Would re-embed the above posts")
            )
            return

        if use_async:
            queue = get_config().queue
            for document in documents:
                enqueue_embedding_update(document.id, queue=queue)
            self.stdout.write(
                self.style.SUCCESS(
                    f"Enqueued {len(documents)} embedding task(s) on '{queue}'"
                )
            )
            return

        start_time = time.time()
        self.stdout.write(f"Started at: {timezone.now()}")

        success_count, failure_count = index.build(
            documents=documents, on_progress=self._progress_reporter(len(documents))
        )

        elapsed_time = time.time() - start_time
        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS("=== Rebuild Summary ==="))
        self.stdout.write(f"Total posts processed: {len(documents)}")
        self.stdout.write(f"Successful: {success_count}")

        if failure_count > 0:
            self.stdout.write(self.style.ERROR(f"Failed: {failure_count}"))

        self.stdout.write(f"Total time: {elapsed_time:.2f} seconds")

        if failure_count > 0:
            raise CommandError(f"Failed to embed {failure_count} post(s)")

    def _progress_reporter(self, total: int):
        position = 0

        def report(document, count, error):
            nonlocal position
            position += 1
            if error is not None:
                self.stdout.write(
                    self.style.ERROR(
                        f"  [{position}/{total}] Failed post {document.id}: {error}"
                    )
                )
            else:
                self.stdout.write(
                    self.style.SUCCESS(
                        f"  [{position}/{total}] Embedded post {document.id} "
                        f"({count} records)"
                    )
                )

        return report
