import asyncio
import os
import uuid
from contextlib import AsyncExitStack
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from docsync.application.embedding_queue import EmbeddingQueue
from docsync.domain.constants import WATCH_EXTENSIONS
from docsync.domain.errors import DocumentNotFoundError, InvalidDocumentPathError
from docsync.domain.models import (
    Document,
    DocumentLinks,
    DocumentView,
    IncomingLink,
    IndexStatus,
    JobStatus,
    Link,
    OutgoingLink,
    utc_now,
)
from docsync.infrastructure.file_watcher import is_hidden_dir, is_tracked
from docsync.infrastructure.git_client import GitClient
from docsync.infrastructure.link_resolver import DocumentLookup, LinkResolver
from docsync.infrastructure.markdown_parser import MarkdownParser
from docsync.infrastructure.qdrant_store import ContentStore
from docsync.logging_config import get_logger

logger = get_logger(__name__)


def normalize_path(path: str) -> str:
    """Validate a repo-relative markdown path and return it in posix form."""
    candidate = PurePosixPath(path.replace("\\", "/"))
    if candidate.is_absolute() or ".." in candidate.parts:
        raise InvalidDocumentPathError(f"Path must stay inside the repository: {path}")
    if candidate.suffix not in WATCH_EXTENSIONS:
        raise InvalidDocumentPathError(f"Not a markdown document: {path}")
    normalized = str(candidate)
    if normalized in ("", "."):
        raise InvalidDocumentPathError("Path is empty")
    return normalized


class SyncEngine:
    """Keep the content store in step with the markdown files under one root.

    An engine is bound to a single repository root for its whole life;
    pointing at a different root means building a new engine.
    """

    def __init__(
        self,
        repo_path: str,
        store: ContentStore,
        parser: MarkdownParser,
        resolver: LinkResolver,
        embedding_queue: EmbeddingQueue,
        git: GitClient | None = None,
    ) -> None:
        self._repo_path = repo_path
        self._store = store
        self._parser = parser
        self._resolver = resolver
        self._embedding_queue = embedding_queue
        self._git = git
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_full_sync: datetime | None = None
        self._syncing_all = False

    @property
    def repo_path(self) -> str:
        return self._repo_path

    @property
    def embedding_queue(self) -> EmbeddingQueue:
        return self._embedding_queue

    async def initialize(self) -> None:
        """Create the repository directory, git repo and store collections."""
        await asyncio.to_thread(os.makedirs, self._repo_path, exist_ok=True)
        if self._git is not None:
            await self._git.ensure_repository()
        await self._store.ensure_collections()

    # --- Full sync ---

    async def sync_all(self) -> int:
        """Two-phase sync of every markdown file. Returns documents synced.

        Phase 1 makes sure every file has a document row so the lookup table
        is complete; phase 2 resolves links against it, which lets forward
        references (to files not visited yet) resolve.
        """
        self._syncing_all = True
        try:
            files = await asyncio.to_thread(self._collect_files)
            logger.info("Starting full sync of %d files in %s", len(files), self._repo_path)

            lookup = DocumentLookup()
            staged: list[tuple[str, str]] = []
            for path in files:
                try:
                    raw = await self._read(path)
                    parsed = self._parser.parse(path, raw)
                    async with self._lock_for(path):
                        stub = await self._ensure_document(path, parsed.title)
                except Exception:
                    logger.exception("Skipping %s: failed to stage for sync", path)
                    continue
                lookup.add(stub.model_copy(update={"title": parsed.title}))
                staged.append((path, raw))

            synced = 0
            for path, raw in staged:
                try:
                    async with self._lock_for(path):
                        await self._sync_locked(path, raw, lookup)
                except Exception:
                    logger.exception("Skipping %s: sync failed", path)
                    continue
                synced += 1

            self._last_full_sync = utc_now()
            logger.info("Full sync complete: %d of %d documents", synced, len(files))
            return synced
        finally:
            self._syncing_all = False

    # --- Incremental sync ---

    async def sync_one(
        self,
        path: str,
        content: str | None = None,
        lookup: DocumentLookup | None = None,
    ) -> Document:
        """Sync a single file, reading it from disk when `content` is None.

        Without a caller-supplied lookup, links only resolve to the document
        itself; links to other documents stay missing until the next full sync.
        """
        path = normalize_path(path)
        async with self._lock_for(path):
            raw = content if content is not None else await self._read_required(path)
            return await self._sync_locked(path, raw, lookup)

    async def save_document(
        self,
        path: str,
        content: str,
        frontmatter: dict[str, Any] | None = None,
    ) -> Document:
        """Write a document to disk, commit it, and sync it."""
        path = normalize_path(path)
        text = self._parser.compose(content, frontmatter)

        async with self._lock_for(path):
            await asyncio.to_thread(self._write_file, path, text)
            if self._git is not None:
                await self._git.commit(path, f"Update {path}")

            parsed = self._parser.parse(path, text)
            document = await self._ensure_document(path, parsed.title)
            lookup = DocumentLookup([document.model_copy(update={"title": parsed.title})])
            return await self._sync_locked(path, text, lookup)

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document's file and rows. Returns False for unknown ids.

        Links from other documents keep pointing at the deleted id until those
        documents are synced again.
        """
        document = await self._store.get_document(document_id)
        if document is None:
            return False

        async with self._lock_for(document.path):
            removed = await asyncio.to_thread(self._remove_file, document.path)
            if removed and self._git is not None:
                await self._git.remove(document.path, f"Delete {document.path}")
            await self._store.delete_document(document.id)

        logger.info("Deleted document %s (%s)", document.id, document.path)
        return True

    async def delete_path(self, path: str) -> bool:
        """Drop the document stored for a file that vanished from disk."""
        async with self._lock_for(path):
            document = await self._store.get_document_by_path(path)
            if document is None:
                return False
            await self._store.delete_document(document.id)
        logger.info("Removed document for deleted file: %s", path)
        return True

    async def rename_path(self, old_path: str, new_path: str) -> Document | None:
        """Move a document to a new path, keeping its id, then resync it.

        A document already stored under `new_path` was overwritten on disk by
        the move, so it is deleted along with its links and chunks.
        """
        new_path = normalize_path(new_path)
        async with AsyncExitStack() as stack:
            for path in sorted({old_path, new_path}):
                await stack.enter_async_context(self._lock_for(path))
            document = await self._store.get_document_by_path(old_path)
            if document is not None and old_path != new_path:
                displaced = await self._store.get_document_by_path(new_path)
                if displaced is not None and displaced.id != document.id:
                    await self._store.delete_document(displaced.id)
                    logger.info("Move onto %s replaced document %s", new_path, displaced.id)
                await self._store.upsert_document(
                    document.model_copy(update={"path": new_path})
                )
        try:
            return await self.sync_one(new_path)
        except DocumentNotFoundError:
            logger.warning("Renamed file disappeared before sync: %s", new_path)
            return None

    # --- Reads ---

    async def get_document(self, document_id: str) -> Document:
        document = await self._store.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        return document

    async def list_documents(self) -> list[Document]:
        return await self._store.list_documents()

    async def get_document_view(self, document_id: str) -> DocumentView:
        """Return a document with its outgoing links and backlinks."""
        document = await self.get_document(document_id)

        outgoing: list[OutgoingLink] = []
        titles: dict[str, str | None] = {}
        for link in await self._store.get_links_for_document(document.id):
            if link.target_id is not None and link.target_id not in titles:
                target = await self._store.get_document(link.target_id)
                titles[link.target_id] = target.title if target else None
            outgoing.append(
                OutgoingLink(
                    id=link.id,
                    target_id=link.target_id,
                    target_path=link.target_path,
                    target_title=titles.get(link.target_id) if link.target_id else None,
                    link_text=link.link_text,
                    missing=link.is_missing,
                )
            )

        incoming: list[IncomingLink] = []
        for link in await self._store.get_backlinks(document.id):
            source = await self._store.get_document(link.source_id)
            if source is None:
                continue
            incoming.append(
                IncomingLink(
                    id=link.id,
                    source_id=source.id,
                    source_path=source.path,
                    source_title=source.title,
                    link_text=link.link_text,
                )
            )

        return DocumentView(
            document=document,
            links=DocumentLinks(outgoing=outgoing, incoming=incoming),
        )

    async def status(self, watcher_running: bool = False) -> IndexStatus:
        """Return current store statistics."""
        return IndexStatus(
            repo_path=self._repo_path,
            documents=await self._store.count_documents(),
            chunks=await self._store.count_chunks(),
            last_full_sync=self._last_full_sync,
            watcher_running=watcher_running,
            pending_embeddings=self._embedding_queue.pending_count,
            store_healthy=await self._store.is_healthy(),
        )

    @property
    def is_syncing_all(self) -> bool:
        return self._syncing_all

    # --- Internals ---

    async def _sync_locked(
        self, path: str, raw: str, lookup: DocumentLookup | None
    ) -> Document:
        """Parse, resolve, persist and schedule embedding. Caller holds the lock."""
        parsed = self._parser.parse(path, raw)
        existing = await self._store.get_document_by_path(path)
        now = utc_now()
        document = existing or Document(id=str(uuid.uuid4()), path=path, title=parsed.title)
        document = document.model_copy(update={"title": parsed.title})

        if lookup is None:
            lookup = DocumentLookup([document])
        resolved, rewritten = self._resolver.resolve(parsed.body, lookup)

        revision = await self._git.revision(path) if self._git is not None else None
        content_changed = existing is None or existing.content != parsed.body
        document = document.model_copy(
            update={
                "content": parsed.body,
                "rendered": self._parser.render(rewritten),
                "revision": revision,
                "updated_at": now,
                "last_synced_at": now,
            }
        )
        await self._store.upsert_document(document)

        links = [
            Link(
                id=str(uuid.uuid4()),
                source_id=document.id,
                target_id=item.resolved.id if item.resolved is not None else None,
                target_path=item.target_path,
                link_text=item.link_text,
                position=position,
            )
            for position, item in enumerate(resolved)
        ]
        await self._store.replace_links(document.id, links)

        if content_changed or await self._needs_embedding(document.id):
            self._embedding_queue.submit(document.id, document.content)

        logger.info(
            "Synced %s (%d links, %d missing)",
            path,
            len(links),
            sum(1 for link in links if link.is_missing),
        )
        return document

    async def _needs_embedding(self, document_id: str) -> bool:
        """True when unchanged content still lacks a current chunk set.

        A failed job leaves the previous revision's chunks in place, so their
        presence alone does not mean the stored content was embedded.
        """
        latest = self._embedding_queue.latest_for(document_id)
        if latest is not None and latest.status == JobStatus.FAILED:
            return True
        return await self._store.count_chunks(document_id) == 0

    async def _ensure_document(self, path: str, title: str) -> Document:
        """Return the document for `path`, creating an empty stub if absent."""
        document = await self._store.get_document_by_path(path)
        if document is not None:
            return document
        document = Document(id=str(uuid.uuid4()), path=path, title=title)
        await self._store.upsert_document(document)
        logger.debug("Created stub document for %s", path)
        return document

    def _lock_for(self, path: str) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[path] = lock
        return lock

    def _abs_path(self, path: str) -> Path:
        return Path(self._repo_path) / path

    async def _read(self, path: str) -> str:
        return await asyncio.to_thread(self._abs_path(path).read_text, encoding="utf-8")

    async def _read_required(self, path: str) -> str:
        try:
            return await self._read(path)
        except FileNotFoundError as exc:
            raise DocumentNotFoundError(f"File not found: {path}") from exc

    def _write_file(self, path: str, text: str) -> None:
        abs_path = self._abs_path(path)
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        abs_path.write_text(text, encoding="utf-8")

    def _remove_file(self, path: str) -> bool:
        try:
            self._abs_path(path).unlink()
        except FileNotFoundError:
            return False
        return True

    def _collect_files(self) -> list[str]:
        """Walk the repository and collect the tracked markdown paths."""
        md_files: list[str] = []
        for root, dirs, files in os.walk(self._repo_path):
            dirs[:] = [d for d in dirs if not is_hidden_dir(d)]
            for filename in files:
                rel_path = os.path.relpath(os.path.join(root, filename), self._repo_path)
                rel_path = rel_path.replace(os.sep, "/")
                if is_tracked(rel_path):
                    md_files.append(rel_path)
        return sorted(md_files)
