import threading
import uuid
from dataclasses import replace

import numpy as np
from django.utils import timezone

from ..exceptions import StoreError
from ..schema import EmbeddingRecord, SimilarEmbedding
from .base import StorageProvider, record_order


class InMemoryProvider(StorageProvider):
    """Simple in-memory storage for testing and small sites."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.records: dict[str, list[EmbeddingRecord]] = {}
        self._lock = threading.Lock()

    def _stamp(self, record: EmbeddingRecord) -> EmbeddingRecord:
        return replace(
            record,
            id=record.id or uuid.uuid4(),
            created_at=record.created_at or timezone.now(),
        )

    def _insert(self, records):
        stamped = [self._stamp(record) for record in records]
        with self._lock:
            for record in stamped:
                self.records.setdefault(record.document_id, []).append(record)

    def _replace(self, document_id, records):
        stamped = [self._stamp(record) for record in records]
        with self._lock:
            if stamped:
                self.records[document_id] = stamped
            else:
                self.records.pop(document_id, None)

    def _delete(self, document_id):
        with self._lock:
            return len(self.records.pop(document_id, []))

    def get_embeddings(self, document_id):
        with self._lock:
            records = list(self.records.get(document_id, []))
        return sorted(records, key=record_order)

    def clear(self):
        """Clear all stored records."""
        with self._lock:
            self.records.clear()

    def _search(self, query_vector, *, limit, min_similarity, content_type):
        with self._lock:
            candidates = [
                record
                for records in self.records.values()
                for record in records
                if content_type is None or record.content_type == content_type
            ]

        if not candidates:
            return []

        mismatched = [
            record for record in candidates if len(record.embedding) != len(query_vector)
        ]
        if mismatched:
            raise StoreError(
                f"{len(mismatched)} stored embeddings do not have "
                f"{len(query_vector)} dimensions"
            )

        query = np.asarray(query_vector, dtype=np.float64)
        matrix = np.asarray([record.embedding for record in candidates], dtype=np.float64)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(norms > 0, matrix @ query / norms, 0.0)
        similarities = np.clip(similarities, -1.0, 1.0)

        # Stable sort keeps insertion order among equal scores.
        order = np.argsort(-similarities, kind="stable")

        results = []
        for position in order:
            similarity = float(similarities[position])
            if similarity < min_similarity:
                break
            record = candidates[position]
            results.append(
                SimilarEmbedding(
                    id=record.id,
                    document_id=record.document_id,
                    content_type=record.content_type,
                    text_chunk=record.text_chunk,
                    chunk_index=record.chunk_index,
                    similarity=similarity,
                )
            )
            if len(results) == limit:
                break

        return results
