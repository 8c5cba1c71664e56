import asyncio

from docsync.application.sync_engine import SyncEngine
from docsync.domain.constants import DEBOUNCE_SECONDS
from docsync.domain.errors import DocumentNotFoundError
from docsync.infrastructure.debouncer import Debouncer
from docsync.infrastructure.file_watcher import FileWatcher
from docsync.logging_config import get_logger

logger = get_logger(__name__)


class WatchPipeline:
    """Feed debounced file-system changes into incremental syncs.

    Lifecycle is `stopped -> running -> stopped`. The watched root is the
    engine's root; watching another root takes a new engine and pipeline.
    """

    def __init__(
        self,
        engine: SyncEngine,
        debounce_seconds: float = DEBOUNCE_SECONDS,
    ) -> None:
        self._engine = engine
        self._debounce_seconds = debounce_seconds
        self._loop: asyncio.AbstractEventLoop | None = None
        self._watcher: FileWatcher | None = None
        self._debouncer: Debouncer | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._watcher is not None and self._watcher.is_running

    def start(self) -> None:
        """Create and start the file watcher. Must run inside the event loop."""
        if self.is_running:
            return

        self._loop = asyncio.get_running_loop()
        self._debouncer = Debouncer(
            callback=self._on_file_changed, delay=self._debounce_seconds
        )
        self._watcher = FileWatcher(
            repo_path=self._engine.repo_path,
            on_changed=self._from_thread(self._debouncer.trigger),
            on_deleted=self._from_thread(self._schedule_delete),
            on_moved=self._from_thread(self._schedule_move),
        )
        self._watcher.start()
        logger.info("Watch pipeline started for: %s", self._engine.repo_path)

    async def stop(self) -> None:
        """Stop watching and cancel pending debounce timers."""
        if self._debouncer is not None:
            self._debouncer.cancel_all()
            await self._debouncer.drain()
        if self._watcher is not None:
            await asyncio.to_thread(self._watcher.stop)
        self._watcher = None
        self._debouncer = None
        logger.info("Watch pipeline stopped")

    @property
    def pending_count(self) -> int:
        return self._debouncer.pending_count if self._debouncer is not None else 0

    async def drain(self) -> None:
        """Wait for syncs and deletes that have already been triggered to finish."""
        if self._debouncer is not None:
            await self._debouncer.drain()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _from_thread(self, handler):
        """Wrap a loop-side handler so watchdog's thread can call it safely."""

        def _dispatch(*args: str) -> None:
            if self._loop is None or self._loop.is_closed():
                return
            self._loop.call_soon_threadsafe(handler, *args)

        return _dispatch

    async def _on_file_changed(self, path: str) -> None:
        """Handle a debounced file create/modify event."""
        try:
            await self._engine.sync_one(path)
        except DocumentNotFoundError:
            logger.info("File vanished before sync: %s", path)
            return
        logger.info("Watcher synced: %s", path)

    def _schedule_delete(self, path: str) -> None:
        if self._debouncer is not None:
            self._debouncer.cancel(path)
        self._spawn(self._engine.delete_path(path), f"delete {path}")

    def _schedule_move(self, old_path: str, new_path: str) -> None:
        self._spawn(self._engine.rename_path(old_path, new_path), f"move {old_path}")

    def _spawn(self, coro, label: str) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda t: self._log_failure(t, label))

    @staticmethod
    def _log_failure(task: asyncio.Task, label: str) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Watcher %s failed", label, exc_info=task.exception())
