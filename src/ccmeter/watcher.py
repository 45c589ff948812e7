import asyncio
import inspect
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog
from watchfiles import awatch

logger = structlog.get_logger()

OnChange = Callable[[], "Awaitable[None] | None"]


class ChangeWatcher:
    """
    ChangeWatcher delivers filesystem change notifications for a
    single path to a callback.

    Events are consumed by a background task, so the callback never
    runs on the caller of watch(). A path that can't be watched leaves
    the watcher idle instead of raising, letting callers watch several
    roots independently.
    """

    def __init__(self) -> "None":
        self._task: "asyncio.Task[None] | None" = None
        self._stop_event: "asyncio.Event | None" = None
        self._path: "Path | None" = None

    @property
    def is_watching(self) -> "bool":
        return self._task is not None and not self._task.done()

    @property
    def path(self) -> "Path | None":
        return self._path

    def watch(self, path: "Path", on_change: "OnChange") -> "bool":
        """
        starts watching path (recursively). Must be called from a
        running event loop. Returns whether the watcher is watching
        after the call; a second call while watching is a no-op.
        """
        if self.is_watching:
            return True

        path = Path(path)
        try:
            watchable = path.is_dir()
        except OSError:
            watchable = False
        if not watchable:
            logger.warning("watch_path_unavailable", path=str(path))
            return False

        self._path = path
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._run(path, on_change, self._stop_event),
            name=f"ccmeter-watch:{path}",
        )
        logger.debug("watch_started", path=str(path))
        return True

    async def stop(self) -> "None":
        """
        stops watching and waits for the background task to release
        its handle. Harmless when not watching.
        """
        task = self._task
        if task is None:
            return

        self._task = None
        if self._stop_event is not None:
            self._stop_event.set()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("watch_stopped", path=str(self._path))

    async def _run(
        self,
        path: "Path",
        on_change: "OnChange",
        stop_event: "asyncio.Event",
    ) -> "None":
        try:
            async for changes in awatch(path, stop_event=stop_event, recursive=True):
                logger.debug("watch_changes", path=str(path), count=len(changes))
                await self._dispatch(on_change)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("watch_failed", path=str(path))
        finally:
            if self._task is asyncio.current_task():
                self._task = None

    async def _dispatch(self, on_change: "OnChange") -> "None":
        try:
            result = on_change()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("watch_callback_error", path=str(self._path))
