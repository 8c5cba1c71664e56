import time

from docsync.application.embedding_index import EmbeddingIndex
from docsync.domain.constants import SEARCH_LIMIT_DEFAULT, SEARCH_LIMIT_MAX
from docsync.domain.models import Document, SearchHit
from docsync.infrastructure.qdrant_store import ContentStore
from docsync.logging_config import get_logger

logger = get_logger(__name__)


class SearchService:
    """Orchestrate semantic search: embed query → score chunks → join documents."""

    def __init__(self, index: EmbeddingIndex, store: ContentStore) -> None:
        self._index = index
        self._store = store

    async def search(
        self, query: str, limit: int = SEARCH_LIMIT_DEFAULT
    ) -> list[SearchHit]:
        """Return the `limit` best-matching chunks, best first.

        Raises ServiceUnavailableError when no embedding provider is available.
        """
        if not query.strip():
            raise ValueError("Query must not be empty")
        limit = max(1, min(limit, SEARCH_LIMIT_MAX))
        start = time.time()

        ranked = await self._index.search(query, limit)

        documents: dict[str, Document | None] = {}
        hits: list[SearchHit] = []
        for chunk, similarity in ranked:
            if chunk.document_id not in documents:
                documents[chunk.document_id] = await self._store.get_document(
                    chunk.document_id
                )
            document = documents[chunk.document_id]
            if document is None:
                logger.debug("Dropping hit for vanished document %s", chunk.document_id)
                continue
            hits.append(
                SearchHit(
                    document=document,
                    chunk_index=chunk.index,
                    chunk_text=chunk.text,
                    similarity=similarity,
                )
            )

        elapsed_ms = (time.time() - start) * 1000
        logger.info("Search '%s': %d results in %.1fms", query, len(hits), elapsed_ms)
        return hits
