import time

from fastapi import APIRouter, HTTPException

from docsync.api.dependencies import get_sync_engine
from docsync.domain.models import SyncResponse

router = APIRouter(tags=["sync"])


@router.post(
    "/sync",
    response_model=SyncResponse,
    summary="Run a full two-phase sync of the repository",
    responses={409: {"description": "A full sync is already in progress"}},
)
async def sync_repository() -> SyncResponse:
    """Re-read every markdown file and resolve links across the whole repository."""
    engine = get_sync_engine()

    if engine.is_syncing_all:
        raise HTTPException(
            status_code=409,
            detail={
                "error_code": "SYNC_IN_PROGRESS",
                "detail": "A full sync is already running.",
            },
        )

    start = time.time()
    synced = await engine.sync_all()
    return SyncResponse(synced=synced, time_taken_seconds=round(time.time() - start, 3))
