"""SQLite-backed vector index used for approximate feedback lookup."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .models import VectorDocument, json_value
from .utils import (
    EMBEDDING_SIZE,
    cosine_similarity,
    deserialize_vector,
    hashed_bag_of_words,
    serialize_vector,
)


class VectorIndex:
    """Store text documents with hashed bag-of-words embeddings.

    Similarity is cosine over term-count buckets, so this is a lexical
    approximation of semantic search. ``similarity_search`` is the only
    contract callers rely on; the embedding can be swapped for a real
    embedding service without touching them.
    """

    def __init__(self, db_path: str | Path = ":memory:", *, embedding_size: int = EMBEDDING_SIZE) -> None:
        self.db_path = str(db_path)
        self.embedding_size = embedding_size
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with closing(self.conn.cursor()) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS vector_documents (
                    doc_id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    metadata TEXT NOT NULL,
                    embedding TEXT NOT NULL
                )
                """
            )
            self.conn.commit()

    def embed(self, text: str) -> List[float]:
        return hashed_bag_of_words(text, length=self.embedding_size)

    def add_document(self, doc_id: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> VectorDocument:
        """Insert or replace a document, re-embedding its content."""

        document = VectorDocument(
            doc_id=doc_id,
            content=content,
            metadata=json_value(metadata or {}),
            embedding=self.embed(content),
        )
        payload = (
            document.doc_id,
            document.content,
            json.dumps(document.metadata, ensure_ascii=False),
            serialize_vector(document.embedding),
        )
        with closing(self.conn.cursor()) as cur:
            cur.execute(
                """
                INSERT INTO vector_documents (doc_id, content, metadata, embedding)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(doc_id) DO UPDATE SET
                    content=excluded.content,
                    metadata=excluded.metadata,
                    embedding=excluded.embedding
                """,
                payload,
            )
            self.conn.commit()
        return document

    update_document = add_document

    def remove(self, doc_id: str) -> None:
        with closing(self.conn.cursor()) as cur:
            cur.execute("DELETE FROM vector_documents WHERE doc_id = ?", (doc_id,))
            self.conn.commit()

    def clear(self) -> None:
        with closing(self.conn.cursor()) as cur:
            cur.execute("DELETE FROM vector_documents")
            self.conn.commit()

    def fetch(self, doc_id: str) -> VectorDocument | None:
        with closing(self.conn.cursor()) as cur:
            cur.execute("SELECT * FROM vector_documents WHERE doc_id = ?", (doc_id,))
            row = cur.fetchone()
        if not row:
            return None
        return self._row_to_document(row)

    def __len__(self) -> int:
        with closing(self.conn.cursor()) as cur:
            cur.execute("SELECT COUNT(*) FROM vector_documents")
            (count,) = cur.fetchone()
        return int(count)

    def similarity_search(
        self,
        query: str,
        *,
        limit: int = 5,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[Tuple[VectorDocument, float]]:
        """Rank stored documents by cosine similarity to ``query``, best first."""

        if limit <= 0:
            return []
        query_vector = self.embed(query)
        with closing(self.conn.cursor()) as cur:
            cur.execute("SELECT * FROM vector_documents ORDER BY doc_id")
            rows = cur.fetchall()
        scored: list[tuple[float, VectorDocument]] = []
        for row in rows:
            document = self._row_to_document(row)
            if metadata_filter and any(document.metadata.get(k) != v for k, v in metadata_filter.items()):
                continue
            scored.append((cosine_similarity(query_vector, document.embedding), document))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [(document, score) for score, document in scored[:limit]]

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> VectorDocument:
        return VectorDocument(
            doc_id=row["doc_id"],
            content=row["content"],
            metadata=json.loads(row["metadata"]),
            embedding=deserialize_vector(row["embedding"]),
        )

    def close(self) -> None:
        self.conn.close()
