import time

from fastapi import APIRouter, HTTPException, Query

from docsync.api.dependencies import get_search_service
from docsync.domain.constants import SEARCH_LIMIT_DEFAULT, SEARCH_LIMIT_MAX
from docsync.domain.errors import ServiceUnavailableError
from docsync.domain.models import SearchResponse, SearchResultItem
from docsync.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


@router.get(
    "",
    response_model=SearchResponse,
    summary="Semantic search over document chunks",
    responses={
        400: {"description": "Blank query"},
        503: {"description": "Embedding provider not configured or unreachable"},
    },
)
async def search_documents(
    q: str = Query(min_length=1),
    limit: int = Query(default=SEARCH_LIMIT_DEFAULT, ge=1, le=SEARCH_LIMIT_MAX),
) -> SearchResponse:
    """Return the best-matching chunks for a natural language query."""
    service = get_search_service()
    start = time.time()

    try:
        hits = await service.search(q, limit)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "INVALID_QUERY", "detail": str(exc)},
        )
    except ServiceUnavailableError:
        logger.exception("Search unavailable for query: %s", q)
        raise HTTPException(
            status_code=503,
            detail={
                "error_code": "SEARCH_UNAVAILABLE",
                "detail": "Search is temporarily unavailable. "
                "Ensure an embedding model is configured.",
            },
        )

    results = [
        SearchResultItem(
            document_id=hit.document.id,
            path=hit.document.path,
            title=hit.document.title,
            chunk_index=hit.chunk_index,
            chunk_text=hit.chunk_text,
            similarity=round(hit.similarity, 6),
        )
        for hit in hits
    ]
    return SearchResponse(
        query=q,
        limit=limit,
        results=results,
        total_hits=len(results),
        search_time_ms=round((time.time() - start) * 1000, 1),
    )
