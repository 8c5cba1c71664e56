from fastapi import APIRouter, HTTPException

from docsync.api.dependencies import get_sync_engine
from docsync.domain.errors import DocumentNotFoundError, InvalidDocumentPathError
from docsync.domain.models import (
    DeleteResponse,
    DocumentListItem,
    DocumentListResponse,
    DocumentView,
    SaveDocumentRequest,
    UpdateDocumentRequest,
)

router = APIRouter(prefix="/documents", tags=["documents"])


def _not_found(document_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "error_code": "DOCUMENT_NOT_FOUND",
            "detail": f"Document not found: {document_id}",
        },
    )


def _invalid_path(exc: InvalidDocumentPathError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error_code": "INVALID_PATH", "detail": str(exc)},
    )


@router.get(
    "",
    response_model=DocumentListResponse,
    summary="List all synced documents",
)
async def list_documents() -> DocumentListResponse:
    """Return every document ordered by path."""
    documents = await get_sync_engine().list_documents()
    items = [
        DocumentListItem(
            id=doc.id,
            path=doc.path,
            title=doc.title,
            category=doc.category,
            subcategory=doc.subcategory,
            updated_at=doc.updated_at,
        )
        for doc in documents
    ]
    return DocumentListResponse(documents=items, total=len(items))


@router.get(
    "/{document_id}",
    response_model=DocumentView,
    summary="Get a document with its outgoing links and backlinks",
    responses={404: {"description": "Document not found"}},
)
async def get_document(document_id: str) -> DocumentView:
    try:
        return await get_sync_engine().get_document_view(document_id)
    except DocumentNotFoundError:
        raise _not_found(document_id)


@router.post(
    "",
    response_model=DocumentView,
    status_code=201,
    summary="Create or overwrite a document by path",
    responses={400: {"description": "Path outside the repository or not markdown"}},
)
async def save_document(request: SaveDocumentRequest) -> DocumentView:
    """Write the file, commit it and sync it immediately."""
    engine = get_sync_engine()
    try:
        document = await engine.save_document(
            request.path, request.content, request.frontmatter or None
        )
    except InvalidDocumentPathError as exc:
        raise _invalid_path(exc)
    return await engine.get_document_view(document.id)


@router.put(
    "/{document_id}",
    response_model=DocumentView,
    summary="Replace a document's content",
    responses={404: {"description": "Document not found"}},
)
async def update_document(
    document_id: str, request: UpdateDocumentRequest
) -> DocumentView:
    engine = get_sync_engine()
    try:
        existing = await engine.get_document(document_id)
    except DocumentNotFoundError:
        raise _not_found(document_id)

    document = await engine.save_document(
        existing.path, request.content, request.frontmatter or None
    )
    return await engine.get_document_view(document.id)


@router.delete(
    "/{document_id}",
    response_model=DeleteResponse,
    summary="Delete a document and its file",
    responses={404: {"description": "Document not found"}},
)
async def delete_document(document_id: str) -> DeleteResponse:
    """Backlinks held by other documents stay stale until they are resynced."""
    if not await get_sync_engine().delete_document(document_id):
        raise _not_found(document_id)
    return DeleteResponse(success=True)
