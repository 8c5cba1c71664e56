"""Background re-embedding worker with per-job status."""

import asyncio
import uuid
from collections import OrderedDict

from docsync.application.embedding_index import EmbeddingIndex
from docsync.domain.errors import ServiceUnavailableError
from docsync.domain.models import EmbeddingJob, JobStatus, utc_now
from docsync.infrastructure.qdrant_store import ContentStore
from docsync.logging_config import get_logger

logger = get_logger(__name__)

JOB_HISTORY_LIMIT = 1000


class EmbeddingQueue:
    """Run `EmbeddingIndex.reindex` calls one at a time on a worker task.

    Sync code hands work off with `submit()` and moves on; callers that need
    the chunks to be current (tests, status endpoints) can inspect the
    returned job or `await wait_idle()`.
    """

    def __init__(self, index: EmbeddingIndex, store: ContentStore) -> None:
        self._index = index
        self._store = store
        self._queue: asyncio.Queue[tuple[EmbeddingJob, str]] = asyncio.Queue()
        self._jobs: OrderedDict[str, EmbeddingJob] = OrderedDict()
        self._latest: dict[str, EmbeddingJob] = {}
        self._worker: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending_count(self) -> int:
        """Jobs submitted but not yet finished."""
        return sum(1 for job in self._jobs.values() if not job.is_done)

    def start(self) -> None:
        """Start the worker task on the running loop (no-op if running)."""
        if self.is_running:
            return
        self._worker = asyncio.get_running_loop().create_task(self._run())
        logger.info("Embedding worker started")

    async def stop(self) -> None:
        """Cancel the worker. Queued jobs stay pending."""
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Embedding worker stopped")

    def submit(self, document_id: str, text: str) -> EmbeddingJob:
        """Queue a re-embedding of `text` for `document_id`."""
        job = EmbeddingJob(id=str(uuid.uuid4()), document_id=document_id)
        self._remember(job)
        self._queue.put_nowait((job, text))
        self.start()
        logger.debug("Queued embedding job %s for %s", job.id, document_id)
        return job

    def get_job(self, job_id: str) -> EmbeddingJob | None:
        return self._jobs.get(job_id)

    def latest_for(self, document_id: str) -> EmbeddingJob | None:
        """Return the most recently submitted job for a document."""
        return self._latest.get(document_id)

    async def wait_idle(self) -> None:
        """Block until every submitted job has finished."""
        if self._queue.empty() and self.pending_count == 0:
            return
        self.start()
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            job, text = await self._queue.get()
            try:
                await self._process(job, text)
            finally:
                self._queue.task_done()

    async def _process(self, job: EmbeddingJob, text: str) -> None:
        job.status = JobStatus.RUNNING
        try:
            if await self._store.get_document(job.document_id) is None:
                logger.info("Skipping embedding for deleted document %s", job.document_id)
                job.chunk_count = 0
            else:
                job.chunk_count = await self._index.reindex(job.document_id, text)
                # The document may have been deleted while we were embedding.
                if await self._store.get_document(job.document_id) is None:
                    await self._store.replace_chunks(job.document_id, [])
                    job.chunk_count = 0
        except ServiceUnavailableError as exc:
            job.status = JobStatus.FAILED
            job.error = str(exc)
            logger.warning("Embedding skipped for %s: %s", job.document_id, exc)
        except Exception as exc:
            job.status = JobStatus.FAILED
            job.error = str(exc)
            logger.exception("Embedding job %s failed for %s", job.id, job.document_id)
        else:
            job.status = JobStatus.COMPLETE
        finally:
            job.finished_at = utc_now()

    def _remember(self, job: EmbeddingJob) -> None:
        self._jobs[job.id] = job
        self._latest[job.document_id] = job
        while len(self._jobs) > JOB_HISTORY_LIMIT:
            oldest_id, oldest = next(iter(self._jobs.items()))
            if not oldest.is_done:
                break
            del self._jobs[oldest_id]
