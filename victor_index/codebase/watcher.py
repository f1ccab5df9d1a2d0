# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""File watching that keeps the index current.

watchdog delivers events on its own thread. Changes are debounced there and
handed to the indexer on the event loop, so the index store is only ever
touched from the loop.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from victor_index.codebase.indexer import WorkspaceIndexer

logger = logging.getLogger(__name__)

# Receives (path, deleted) once per debounced change
ChangeCallback = Callable[[str, bool], None]


class WorkspaceFileHandler(FileSystemEventHandler):
    """File system event handler for tracking workspace changes.

    Collapses bursts of events per path: only the last event for a path
    within the debounce window is reported.
    """

    def __init__(
        self,
        on_change: ChangeCallback,
        should_process: Optional[Callable[[str], bool]] = None,
        debounce_delay: float = 0.5,
    ):
        """Initialize file handler.

        Args:
            on_change: Callback receiving (path, deleted) for each change
            should_process: Filter applied to paths of non-deletion events
            debounce_delay: Seconds to wait for the burst to settle
        """
        super().__init__()
        self.on_change = on_change
        self.should_process = should_process or (lambda path: True)
        self._debounce_lock = threading.Lock()
        self._pending_changes: Dict[str, bool] = {}
        self._debounce_timer: Optional[threading.Timer] = None
        self._debounce_delay = debounce_delay

    def _debounced_notify(self) -> None:
        """Notify of changes after debounce period."""
        with self._debounce_lock:
            changes: List[Tuple[str, bool]] = list(self._pending_changes.items())
            self._pending_changes.clear()
            self._debounce_timer = None

        for path, deleted in changes:
            try:
                self.on_change(path, deleted)
            except Exception as e:
                logger.warning(f"Error in file change callback: {e}")

    def _schedule_notification(self, path: str, deleted: bool = False) -> None:
        with self._debounce_lock:
            self._pending_changes[path] = deleted
            if self._debounce_timer:
                self._debounce_timer.cancel()
            self._debounce_timer = threading.Timer(self._debounce_delay, self._debounced_notify)
            self._debounce_timer.daemon = True
            self._debounce_timer.start()

    def flush(self) -> None:
        """Deliver pending changes immediately."""
        with self._debounce_lock:
            if self._debounce_timer:
                self._debounce_timer.cancel()
                self._debounce_timer = None
        self._debounced_notify()

    def cancel(self) -> None:
        """Drop pending changes without delivering them."""
        with self._debounce_lock:
            if self._debounce_timer:
                self._debounce_timer.cancel()
                self._debounce_timer = None
            self._pending_changes.clear()

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self.should_process(str(event.src_path)):
            self._schedule_notification(str(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self.should_process(str(event.src_path)):
            self._schedule_notification(str(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        # Deletions are always reported so excluded-but-indexed entries still go away
        if not event.is_directory:
            self._schedule_notification(str(event.src_path), deleted=True)

    def on_moved(self, event: FileSystemEvent) -> None:
        """A move is a deletion of the source plus a creation of the destination."""
        if event.is_directory:
            return
        self._schedule_notification(str(event.src_path), deleted=True)
        dest_path = getattr(event, "dest_path", None)
        if dest_path and self.should_process(str(dest_path)):
            self._schedule_notification(str(dest_path))


class WorkspaceWatcher:
    """Watches workspace roots and applies changes through the indexer."""

    def __init__(
        self,
        indexer: "WorkspaceIndexer",
        loop: Optional[asyncio.AbstractEventLoop] = None,
        debounce_delay: Optional[float] = None,
    ):
        self.indexer = indexer
        self._loop = loop
        delay = debounce_delay if debounce_delay is not None else indexer.config.watch_debounce
        self.handler = WorkspaceFileHandler(
            on_change=self._dispatch,
            should_process=indexer.is_indexable,
            debounce_delay=delay,
        )
        self._observer: Optional[Observer] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start watching every workspace root. Must be called from the event loop."""
        if self._observer is not None:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        observer = Observer()
        for root in self.indexer.roots:
            observer.schedule(self.handler, str(root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {len(self.indexer.roots)} workspace root(s) for changes")

    def stop(self) -> None:
        """Stop watching and drop pending changes."""
        if self._observer is None:
            return
        self.handler.cancel()
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        logger.info("Stopped watching workspace")

    def _dispatch(self, path: str, deleted: bool) -> None:
        """Runs on the timer thread; hands the change to the event loop."""
        if self._loop is None or self._loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(self.apply_change(path, deleted), self._loop)
        future.add_done_callback(_log_failure)

    async def apply_change(self, path: str, deleted: bool) -> None:
        """Apply one change to the index."""
        try:
            if deleted or not Path(path).exists():
                self.indexer.remove_file(path)
            else:
                await self.indexer.attach_file(path)
        except Exception as e:
            logger.warning(f"Failed to update index for {path}: {e}")


def _log_failure(future: "Future[None]") -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning(f"File change handler failed: {error}")
