from datetime import datetime, timezone

from fastapi import APIRouter

from docsync.api.dependencies import get_watch_pipeline
from docsync.domain.models import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
def health_check() -> HealthResponse:
    """Report that the process is up and whether the watcher is running."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(tz=timezone.utc).isoformat(),
        watcher_running=get_watch_pipeline().is_running,
    )
