# Chunking
MAX_CHUNK_SIZE = 1000  # Characters per chunk before boundary snapping
CHUNK_OVERLAP = 100  # Characters shared by consecutive chunks
BOUNDARY_LOOKAHEAD = 200  # How far past the proposed end a break may be snapped to

# Search
SEARCH_LIMIT_DEFAULT = 10
SEARCH_LIMIT_MAX = 50

# Repository
DEFAULT_REPO_PATH = "./docs"
WATCH_EXTENSIONS = [".md"]  # File types to sync and monitor
FALLBACK_TITLE = "Untitled"

# File Watcher
DEBOUNCE_SECONDS = 1.0  # Wait time before syncing after a file change

# Rendering
DOCUMENT_URL_PREFIX = "/docs/"
MISSING_DOCUMENT_URL = "/docs/new?title="
WIKI_LINK_CLASS = "wiki-link"
MISSING_LINK_CLASS = "wiki-link missing"

# Qdrant
QDRANT_DOCUMENT_COLLECTION_NAME = "docsync_documents"
QDRANT_LINK_COLLECTION_NAME = "docsync_links"
QDRANT_CHUNK_COLLECTION_NAME = "docsync_chunks"
EMBEDDING_DIM = 384  # Dimension of all-MiniLM-L6-v2
SCROLL_PAGE_SIZE = 256
