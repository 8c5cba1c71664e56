from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from docsync.domain.constants import SEARCH_LIMIT_DEFAULT, SEARCH_LIMIT_MAX


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


# --- Core Entities ---


class Document(BaseModel):
    """A markdown file tracked in the repository, keyed by its relative path."""

    id: str
    path: str
    title: str
    content: str = ""
    rendered: str = ""
    revision: str | None = None
    # Classification tags owned by an external categorizer; never rewritten by sync.
    category: str = "uncategorized"
    subcategory: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_synced_at: datetime | None = None


class Link(BaseModel):
    """A wiki-link occurrence from one document to another (possibly missing) one."""

    id: str
    source_id: str
    target_id: str | None = None
    target_path: str
    link_text: str
    position: int = 0

    @property
    def is_missing(self) -> bool:
        return self.target_id is None


class Chunk(BaseModel):
    """A retrieval-sized slice of a document's content and its embedding."""

    id: str
    document_id: str
    index: int
    text: str
    vector: list[float] | None = None
    inserted_at: int = 0


class ResolvedLink(BaseModel):
    """One `[[target|display]]` token and the document it resolved to, if any."""

    target_path: str
    link_text: str
    resolved: Document | None = None


class ParsedDocument(BaseModel):
    """Frontmatter-split view of a markdown file."""

    path: str
    title: str
    frontmatter: dict[str, Any] = {}
    body: str


class SearchHit(BaseModel):
    """A chunk ranked against a query, joined to its owning document."""

    document: Document
    chunk_index: int
    chunk_text: str
    similarity: float


# --- Embedding Jobs ---


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


class EmbeddingJob(BaseModel):
    """Observable state of one background re-embedding request."""

    id: str
    document_id: str
    status: JobStatus = JobStatus.PENDING
    chunk_count: int = 0
    error: str | None = None
    submitted_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = None

    @property
    def is_done(self) -> bool:
        return self.status in (JobStatus.COMPLETE, JobStatus.FAILED)


# --- Document API ---


class SaveDocumentRequest(BaseModel):
    """Request body for POST /documents."""

    path: str = Field(min_length=1)
    content: str
    frontmatter: dict[str, Any] = {}


class UpdateDocumentRequest(BaseModel):
    """Request body for PUT /documents/{id}."""

    content: str
    frontmatter: dict[str, Any] = {}


class DocumentListItem(BaseModel):
    id: str
    path: str
    title: str
    category: str
    subcategory: str
    updated_at: datetime


class DocumentListResponse(BaseModel):
    """Response from GET /documents."""

    documents: list[DocumentListItem]
    total: int


class OutgoingLink(BaseModel):
    id: str
    target_id: str | None
    target_path: str
    target_title: str | None = None
    link_text: str
    missing: bool


class IncomingLink(BaseModel):
    id: str
    source_id: str
    source_path: str
    source_title: str
    link_text: str


class DocumentLinks(BaseModel):
    outgoing: list[OutgoingLink] = []
    incoming: list[IncomingLink] = []


class DocumentView(BaseModel):
    """Response from GET /documents/{id}."""

    document: Document
    links: DocumentLinks


class DeleteResponse(BaseModel):
    success: bool


# --- Sync ---


class SyncResponse(BaseModel):
    """Response from POST /sync."""

    synced: int
    time_taken_seconds: float


# --- Search Models ---


class SearchResultItem(BaseModel):
    """A single search result."""

    document_id: str
    path: str
    title: str
    chunk_index: int
    chunk_text: str
    similarity: float


class SearchResponse(BaseModel):
    """Response from GET /search."""

    query: str
    limit: int = Field(default=SEARCH_LIMIT_DEFAULT, ge=1, le=SEARCH_LIMIT_MAX)
    results: list[SearchResultItem]
    total_hits: int
    search_time_ms: float


# --- Health ---


class HealthResponse(BaseModel):
    """Response from GET /health."""

    status: str
    timestamp: str
    watcher_running: bool = False


# --- Index Status ---


class IndexStatus(BaseModel):
    """Response from GET /index/status."""

    repo_path: str
    documents: int
    chunks: int
    last_full_sync: datetime | None = None
    watcher_running: bool
    pending_embeddings: int
    store_healthy: bool
