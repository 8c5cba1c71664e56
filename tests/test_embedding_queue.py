import pytest

from docsync.application.embedding_index import EmbeddingIndex
from docsync.application.embedding_queue import EmbeddingQueue
from docsync.domain.models import Document, JobStatus
from docsync.infrastructure.chunker import Chunker
from docsync.infrastructure.qdrant_store import ContentStore

_DOC_A = "00000000-0000-0000-0000-00000000000a"
_DOC_B = "00000000-0000-0000-0000-00000000000b"


async def _add_document(store: ContentStore, doc_id: str) -> None:
    await store.upsert_document(Document(id=doc_id, path=f"{doc_id}.md", title=doc_id))


class TestEmbeddingQueue:
    @pytest.mark.asyncio
    async def test_submitted_job_should_complete(
        self, store: ContentStore, fake_provider
    ) -> None:
        await _add_document(store, _DOC_A)
        queue = EmbeddingQueue(EmbeddingIndex(store, Chunker(), fake_provider), store)

        job = queue.submit(_DOC_A, "some text to embed")
        assert job.status == JobStatus.PENDING
        await queue.wait_idle()

        assert job.status == JobStatus.COMPLETE
        assert job.chunk_count == 1
        assert job.finished_at is not None
        assert await store.count_chunks(_DOC_A) == 1
        assert queue.pending_count == 0
        await queue.stop()

    @pytest.mark.asyncio
    async def test_job_without_provider_should_fail_with_message(
        self, store: ContentStore
    ) -> None:
        await _add_document(store, _DOC_A)
        queue = EmbeddingQueue(EmbeddingIndex(store, Chunker(), None), store)

        job = queue.submit(_DOC_A, "text")
        await queue.wait_idle()

        assert job.status == JobStatus.FAILED
        assert "provider" in job.error
        await queue.stop()

    @pytest.mark.asyncio
    async def test_worker_should_survive_failed_job(
        self, store: ContentStore, make_provider
    ) -> None:
        await _add_document(store, _DOC_A)
        await _add_document(store, _DOC_B)
        provider = make_provider(fail_on={"broken text"})
        queue = EmbeddingQueue(EmbeddingIndex(store, Chunker(), provider), store)

        failed = queue.submit(_DOC_A, "broken text")
        succeeded = queue.submit(_DOC_B, "healthy text")
        await queue.wait_idle()

        assert failed.status == JobStatus.FAILED
        assert succeeded.status == JobStatus.COMPLETE
        assert queue.is_running
        await queue.stop()
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_job_for_deleted_document_should_store_nothing(
        self, store: ContentStore, fake_provider
    ) -> None:
        queue = EmbeddingQueue(EmbeddingIndex(store, Chunker(), fake_provider), store)

        job = queue.submit(_DOC_A, "orphan text")
        await queue.wait_idle()

        assert job.status == JobStatus.COMPLETE
        assert job.chunk_count == 0
        assert await store.count_chunks(_DOC_A) == 0
        await queue.stop()

    @pytest.mark.asyncio
    async def test_latest_for_should_return_most_recent_job(
        self, store: ContentStore, fake_provider
    ) -> None:
        await _add_document(store, _DOC_A)
        queue = EmbeddingQueue(EmbeddingIndex(store, Chunker(), fake_provider), store)

        first = queue.submit(_DOC_A, "first")
        second = queue.submit(_DOC_A, "second")
        await queue.wait_idle()

        assert queue.latest_for(_DOC_A) is second
        assert queue.get_job(first.id) is first
        assert queue.latest_for(_DOC_B) is None
        await queue.stop()

    @pytest.mark.asyncio
    async def test_wait_idle_should_return_immediately_without_jobs(
        self, store: ContentStore, fake_provider
    ) -> None:
        queue = EmbeddingQueue(EmbeddingIndex(store, Chunker(), fake_provider), store)

        await queue.wait_idle()

        assert not queue.is_running
