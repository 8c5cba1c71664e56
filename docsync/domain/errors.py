"""Exception hierarchy shared by the sync, embedding and search layers."""


class DocSyncError(Exception):
    """Base class for all docsync failures."""


class ServiceUnavailableError(DocSyncError):
    """The embedding provider is not configured or cannot be reached."""


class EmbeddingError(DocSyncError):
    """The embedding provider failed while vectorizing a chunk."""

    def __init__(self, document_id: str, chunk_index: int, cause: Exception) -> None:
        super().__init__(
            f"Embedding failed for document {document_id} at chunk {chunk_index}: {cause}"
        )
        self.document_id = document_id
        self.chunk_index = chunk_index
        self.cause = cause


class DocumentNotFoundError(DocSyncError):
    """No document (or backing file) exists for the given id or path."""


class InvalidDocumentPathError(DocSyncError):
    """A document path escapes the repository or is not a markdown file."""
