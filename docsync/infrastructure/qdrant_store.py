import os
import time
import uuid
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PointIdsList,
    PointStruct,
    Range,
    Record,
    VectorParams,
)

from docsync.domain.constants import (
    EMBEDDING_DIM,
    QDRANT_CHUNK_COLLECTION_NAME,
    QDRANT_DOCUMENT_COLLECTION_NAME,
    QDRANT_LINK_COLLECTION_NAME,
    SCROLL_PAGE_SIZE,
)
from docsync.domain.models import Chunk, Document, Link
from docsync.logging_config import get_logger

logger = get_logger(__name__)

_DEFAULT_URL = "http://localhost:6333"


def build_client(url: str | None = None) -> AsyncQdrantClient:
    """Create a client for a Qdrant server, or local in-memory mode for ':memory:'."""
    resolved_url = url or os.getenv("QDRANT_URL", _DEFAULT_URL)
    if resolved_url == ":memory:":
        return AsyncQdrantClient(location=":memory:")
    return AsyncQdrantClient(url=resolved_url)


class ContentStore:
    """Documents, links and chunks persisted as Qdrant collections.

    Documents and links live in payload-only collections; chunks carry a
    single dense cosine vector.
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        embedding_dim: int = EMBEDDING_DIM,
    ) -> None:
        self.client = client
        self._embedding_dim = embedding_dim

    async def ensure_collections(self) -> None:
        """Create collections if they don't exist."""
        for name in (QDRANT_DOCUMENT_COLLECTION_NAME, QDRANT_LINK_COLLECTION_NAME):
            if not await self.client.collection_exists(name):
                await self.client.create_collection(
                    collection_name=name, vectors_config={}
                )
                logger.info("Created collection: %s", name)

        if not await self.client.collection_exists(QDRANT_CHUNK_COLLECTION_NAME):
            await self.client.create_collection(
                collection_name=QDRANT_CHUNK_COLLECTION_NAME,
                vectors_config=VectorParams(
                    size=self._embedding_dim,
                    distance=Distance.COSINE,
                ),
            )
            logger.info("Created collection: %s", QDRANT_CHUNK_COLLECTION_NAME)

    # --- Documents ---

    async def get_document(self, document_id: str) -> Document | None:
        records = await self.client.retrieve(
            collection_name=QDRANT_DOCUMENT_COLLECTION_NAME,
            ids=[document_id],
            with_payload=True,
        )
        if not records:
            return None
        return Document.model_validate(records[0].payload)

    async def get_document_by_path(self, path: str) -> Document | None:
        """Return the document stored under a repository-relative path."""
        records, _ = await self.client.scroll(
            collection_name=QDRANT_DOCUMENT_COLLECTION_NAME,
            scroll_filter=_match("path", path),
            limit=1,
            with_payload=True,
            with_vectors=False,
        )
        if not records:
            return None
        return Document.model_validate(records[0].payload)

    async def list_documents(self) -> list[Document]:
        """Return every document, sorted by path."""
        records = await self._scroll_all(QDRANT_DOCUMENT_COLLECTION_NAME)
        documents = [Document.model_validate(r.payload) for r in records]
        return sorted(documents, key=lambda d: d.path)

    async def upsert_document(self, document: Document) -> None:
        await self.client.upsert(
            collection_name=QDRANT_DOCUMENT_COLLECTION_NAME,
            points=[
                PointStruct(
                    id=document.id,
                    vector={},
                    payload=document.model_dump(mode="json"),
                )
            ],
        )

    async def delete_document(self, document_id: str) -> None:
        """Remove a document with its outgoing links and its chunks.

        Links owned by other documents that target it are left untouched.
        """
        await self.client.delete(
            collection_name=QDRANT_DOCUMENT_COLLECTION_NAME,
            points_selector=PointIdsList(points=[document_id]),
        )
        await self.client.delete(
            collection_name=QDRANT_LINK_COLLECTION_NAME,
            points_selector=FilterSelector(filter=_match("source_id", document_id)),
        )
        await self.client.delete(
            collection_name=QDRANT_CHUNK_COLLECTION_NAME,
            points_selector=FilterSelector(filter=_match("document_id", document_id)),
        )
        logger.info("Deleted document and its links/chunks: %s", document_id)

    async def count_documents(self) -> int:
        return await self._count(QDRANT_DOCUMENT_COLLECTION_NAME)

    # --- Links ---

    async def replace_links(self, source_id: str, links: list[Link]) -> None:
        """Delete all outgoing links of a document, then insert the new set."""
        await self.client.delete(
            collection_name=QDRANT_LINK_COLLECTION_NAME,
            points_selector=FilterSelector(filter=_match("source_id", source_id)),
        )
        if not links:
            return
        await self.client.upsert(
            collection_name=QDRANT_LINK_COLLECTION_NAME,
            points=[
                PointStruct(
                    id=link.id,
                    vector={},
                    payload=link.model_dump(mode="json"),
                )
                for link in links
            ],
        )
        logger.debug("Stored %d links for %s", len(links), source_id)

    async def get_links_for_document(self, source_id: str) -> list[Link]:
        """Return outgoing links in the order they appear in the source text."""
        records = await self._scroll_all(
            QDRANT_LINK_COLLECTION_NAME, _match("source_id", source_id)
        )
        links = [Link.model_validate(r.payload) for r in records]
        return sorted(links, key=lambda link: link.position)

    async def get_backlinks(self, target_id: str) -> list[Link]:
        """Return links from any document whose resolved target is `target_id`."""
        records = await self._scroll_all(
            QDRANT_LINK_COLLECTION_NAME, _match("target_id", target_id)
        )
        links = [Link.model_validate(r.payload) for r in records]
        return sorted(links, key=lambda link: (link.source_id, link.position))

    # --- Chunks ---

    async def replace_chunks(self, document_id: str, chunks: list[Chunk]) -> None:
        """Swap in a document's full chunk set.

        New rows overwrite old ones index by index, then rows past the new
        length are dropped, so readers never observe an empty set mid-swap.
        """
        inserted_at = time.time_ns()
        if chunks:
            await self.client.upsert(
                collection_name=QDRANT_CHUNK_COLLECTION_NAME,
                points=[
                    PointStruct(
                        id=self.chunk_id(document_id, chunk.index),
                        vector=chunk.vector,
                        payload={
                            "document_id": document_id,
                            "index": chunk.index,
                            "text": chunk.text,
                            "inserted_at": inserted_at,
                        },
                    )
                    for chunk in chunks
                ],
            )
        await self.client.delete(
            collection_name=QDRANT_CHUNK_COLLECTION_NAME,
            points_selector=FilterSelector(
                filter=Filter(
                    must=[
                        FieldCondition(
                            key="document_id", match=MatchValue(value=document_id)
                        ),
                        FieldCondition(key="index", range=Range(gte=len(chunks))),
                    ]
                )
            ),
        )
        logger.info("Stored %d chunks for document %s", len(chunks), document_id)

    async def get_chunks_for_document(self, document_id: str) -> list[Chunk]:
        records = await self._scroll_all(
            QDRANT_CHUNK_COLLECTION_NAME,
            _match("document_id", document_id),
            with_vectors=True,
        )
        return sorted((_to_chunk(r) for r in records), key=lambda c: c.index)

    async def get_all_chunks_with_vectors(self) -> list[Chunk]:
        """Return every embedded chunk in insertion order."""
        records = await self._scroll_all(QDRANT_CHUNK_COLLECTION_NAME, with_vectors=True)
        chunks = [c for c in (_to_chunk(r) for r in records) if c.vector is not None]
        return sorted(chunks, key=lambda c: (c.inserted_at, c.document_id, c.index))

    async def count_chunks(self, document_id: str | None = None) -> int:
        count_filter = _match("document_id", document_id) if document_id else None
        return await self._count(QDRANT_CHUNK_COLLECTION_NAME, count_filter)

    # --- Health ---

    async def is_healthy(self) -> bool:
        """Check if Qdrant is reachable."""
        try:
            await self.client.get_collections()
            return True
        except Exception:
            logger.warning("Qdrant health check failed", exc_info=True)
            return False

    async def close(self) -> None:
        await self.client.close()

    # --- Helpers ---

    async def _scroll_all(
        self,
        collection_name: str,
        scroll_filter: Filter | None = None,
        with_vectors: bool = False,
    ) -> list[Record]:
        """Scroll a collection to the end and return all records."""
        results: list[Record] = []
        offset = None

        while True:
            points, next_offset = await self.client.scroll(
                collection_name=collection_name,
                scroll_filter=scroll_filter,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=with_vectors,
            )
            results.extend(points)

            if next_offset is None:
                break
            offset = next_offset

        return results

    async def _count(self, collection_name: str, count_filter: Filter | None = None) -> int:
        result = await self.client.count(
            collection_name=collection_name,
            count_filter=count_filter,
            exact=True,
        )
        return result.count

    @staticmethod
    def chunk_id(document_id: str, index: int) -> str:
        """Generate a deterministic point id for a document's chunk slot."""
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{document_id}#{index}"))


def _match(key: str, value: Any) -> Filter:
    return Filter(must=[FieldCondition(key=key, match=MatchValue(value=value))])


def _to_chunk(record: Record) -> Chunk:
    payload = record.payload or {}
    vector = record.vector
    if isinstance(vector, dict):
        vector = next(iter(vector.values()), None) if vector else None
    return Chunk(
        id=str(record.id),
        document_id=payload.get("document_id", ""),
        index=payload.get("index", 0),
        text=payload.get("text", ""),
        vector=vector,
        inserted_at=payload.get("inserted_at", 0),
    )
