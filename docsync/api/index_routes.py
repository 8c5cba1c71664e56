from fastapi import APIRouter, HTTPException

from docsync.api.dependencies import get_sync_engine, get_watch_pipeline
from docsync.domain.models import EmbeddingJob, IndexStatus

router = APIRouter(prefix="/index", tags=["index"])


@router.get(
    "/status",
    response_model=IndexStatus,
    summary="Get store health and sync statistics",
)
async def get_index_status() -> IndexStatus:
    """Return current index statistics."""
    engine = get_sync_engine()
    return await engine.status(watcher_running=get_watch_pipeline().is_running)


@router.get(
    "/jobs/{document_id}",
    response_model=EmbeddingJob,
    summary="Get the latest embedding job for a document",
    responses={404: {"description": "No embedding job recorded for this document"}},
)
def get_embedding_job(document_id: str) -> EmbeddingJob:
    job = get_sync_engine().embedding_queue.latest_for(document_id)
    if job is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error_code": "JOB_NOT_FOUND",
                "detail": f"No embedding job recorded for: {document_id}",
            },
        )
    return job
