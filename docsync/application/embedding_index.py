import numpy as np

from docsync.domain.errors import DocSyncError, EmbeddingError, ServiceUnavailableError
from docsync.domain.models import Chunk
from docsync.infrastructure.chunker import Chunker
from docsync.infrastructure.embedding import EmbeddingProvider
from docsync.infrastructure.qdrant_store import ContentStore
from docsync.logging_config import get_logger

logger = get_logger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero length."""
    return float(EmbeddingIndex._score(a, [b])[0])


class EmbeddingIndex:
    """Chunk-to-vector storage and brute-force nearest-neighbor search."""

    def __init__(
        self,
        store: ContentStore,
        chunker: Chunker,
        provider: EmbeddingProvider | None,
    ) -> None:
        self._store = store
        self._chunker = chunker
        self._provider = provider

    @property
    def is_configured(self) -> bool:
        return self._provider is not None

    def _require_provider(self) -> EmbeddingProvider:
        if self._provider is None:
            raise ServiceUnavailableError("No embedding provider is configured")
        return self._provider

    async def reindex(self, document_id: str, text: str) -> int:
        """Re-chunk and re-embed a document, then swap in the new chunk set.

        Every chunk is vectorized before anything is written. If the provider
        fails on any chunk the previous chunk set stays in place and the error
        propagates. Returns the number of chunks stored.
        """
        provider = self._require_provider()
        texts = self._chunker.chunk(text)

        chunks: list[Chunk] = []
        for index, chunk_text in enumerate(texts):
            try:
                vector = await provider.embed(chunk_text)
            except DocSyncError:
                raise
            except Exception as exc:
                raise EmbeddingError(document_id, index, exc) from exc
            chunks.append(
                Chunk(
                    id=ContentStore.chunk_id(document_id, index),
                    document_id=document_id,
                    index=index,
                    text=chunk_text,
                    vector=vector,
                )
            )

        await self._store.replace_chunks(document_id, chunks)
        logger.info("Reindexed document %s: %d chunks", document_id, len(chunks))
        return len(chunks)

    async def search(self, query: str, limit: int) -> list[tuple[Chunk, float]]:
        """Score every stored chunk against the query and return the top `limit`.

        Ties keep insertion order.
        """
        provider = self._require_provider()
        try:
            query_vector = await provider.embed(query)
        except DocSyncError:
            raise
        except Exception as exc:
            raise ServiceUnavailableError(f"Embedding provider failed: {exc}") from exc

        chunks = [
            c
            for c in await self._store.get_all_chunks_with_vectors()
            if c.vector is not None and len(c.vector) == len(query_vector)
        ]
        if not chunks or limit <= 0:
            return []

        scores = self._score(query_vector, [c.vector for c in chunks])
        order = np.argsort(-scores, kind="stable")[:limit]
        return [(chunks[i], float(scores[i])) for i in order]

    @staticmethod
    def _score(query_vector: list[float], vectors: list[list[float]]) -> np.ndarray:
        """Cosine similarity of each row against the query."""
        matrix = np.asarray(vectors, dtype=np.float64)
        query = np.asarray(query_vector, dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, dots / norms, 0.0)
        return scores
