"""watchdog front end: markdown events under the repository as relative paths."""

import os
from collections.abc import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from docsync.domain.constants import WATCH_EXTENSIONS
from docsync.logging_config import get_logger

logger = get_logger(__name__)


def is_watched(path: str) -> bool:
    """Check if the file has a watched extension."""
    return any(path.endswith(ext) for ext in WATCH_EXTENSIONS)


def is_hidden_dir(name: str) -> bool:
    return name.startswith(".")


def is_tracked(rel_path: str) -> bool:
    """Whether a repo-relative path belongs to the synced corpus.

    Markdown files count unless some parent directory is hidden (or the path
    escapes the root, whose `..` part counts as hidden).
    """
    *dirs, _ = rel_path.split("/")
    return is_watched(rel_path) and not any(is_hidden_dir(d) for d in dirs)


class _RepoEventHandler(FileSystemEventHandler):
    """Runs on the observer thread; callbacks receive repo-relative paths."""

    def __init__(
        self,
        repo_path: str,
        on_changed: Callable[[str], None],
        on_deleted: Callable[[str], None],
        on_moved: Callable[[str, str], None],
    ) -> None:
        self._repo_path = repo_path
        self._on_changed = on_changed
        self._on_deleted = on_deleted
        self._on_moved = on_moved

    def _tracked(self, abs_path: str | bytes) -> str | None:
        """Return the relative path if it is part of the corpus, else None."""
        rel = os.path.relpath(os.fsdecode(abs_path), self._repo_path).replace(os.sep, "/")
        return rel if is_tracked(rel) else None

    def on_created(self, event: FileSystemEvent) -> None:
        self._changed(event, "created")

    def on_modified(self, event: FileSystemEvent) -> None:
        self._changed(event, "modified")

    def _changed(self, event: FileSystemEvent, kind: str) -> None:
        rel = None if event.is_directory else self._tracked(event.src_path)
        if rel is not None:
            logger.debug("File %s: %s", kind, rel)
            self._on_changed(rel)

    def on_deleted(self, event: FileSystemEvent) -> None:
        rel = None if event.is_directory else self._tracked(event.src_path)
        if rel is not None:
            logger.info("File deleted: %s", rel)
            self._on_deleted(rel)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        if event.is_directory:
            return
        src = self._tracked(event.src_path)
        dest = self._tracked(event.dest_path)

        # A move across the corpus boundary is a plain create or delete.
        if src and dest:
            logger.info("File moved: %s -> %s", src, dest)
            self._on_moved(src, dest)
        elif src:
            logger.info("File left the corpus: %s", src)
            self._on_deleted(src)
        elif dest:
            logger.info("File entered the corpus: %s", dest)
            self._on_changed(dest)


class FileWatcher:
    """Recursive observer over one repository root."""

    def __init__(
        self,
        repo_path: str,
        on_changed: Callable[[str], None],
        on_deleted: Callable[[str], None],
        on_moved: Callable[[str, str], None],
    ) -> None:
        self._repo_path = repo_path
        self._handler = _RepoEventHandler(repo_path, on_changed, on_deleted, on_moved)
        self._observer: Observer | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(self._handler, self._repo_path, recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s", self._repo_path)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.info("Stopped watching %s", self._repo_path)
