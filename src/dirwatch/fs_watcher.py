"""Notification service backed by the watchdog library."""

import logging
import os
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Dict, Iterable, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .config import WatcherConfig
from .exceptions import CloseError, RegistrationError, ServiceClosedError
from .handles import WatchHandle
from .models import EventKind

logger = logging.getLogger(__name__)


class FSEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events into events on a WatchHandle."""

    def __init__(self, handle: WatchHandle, config: WatcherConfig):
        super().__init__()
        self.handle = handle
        self.config = config

    def _entry_name(self, raw_path) -> Optional[Path]:
        """Name of ``raw_path`` relative to the watched directory, if directly inside it."""
        path = Path(os.fsdecode(raw_path))
        if path.parent != self.handle.path:
            return None
        if self.config.should_ignore(path):
            return None
        return Path(path.name)

    def _emit(self, kind: EventKind, raw_path) -> None:
        name = self._entry_name(raw_path)
        if name is not None:
            self.handle._signal_event(kind, name)

    def on_created(self, event):
        self._emit(EventKind.CREATE, event.src_path)

    def on_deleted(self, event):
        self._emit(EventKind.DELETE, event.src_path)

    def on_modified(self, event):
        self._emit(EventKind.MODIFY, event.src_path)

    def on_moved(self, event):
        # A rename is reported as the removal of the old name and the
        # creation of the new one, each only if inside the watched directory.
        self._emit(EventKind.DELETE, event.src_path)
        self._emit(EventKind.CREATE, event.dest_path)


class WatchdogNotificationService:
    """
    Notification service using one watchdog observer for all directories.

    Each registered directory gets a non-recursive schedule and a
    WatchHandle. Handles with new events are queued in a ready deque that
    ``poll()`` consumes without blocking.

    Thread Safety:
        ``_lock`` guards the registered handles and watches. ``_ready_lock``
        guards the ready deque and the listener, and is the only lock taken
        on the observer's dispatch path. No watchdog call is made while
        ``_ready_lock`` is held, so ``register()`` scheduling a directory
        cannot deadlock against the observer thread signalling a handle.
    """

    def __init__(self, config: Optional[WatcherConfig] = None):
        """
        Initialize the service.

        Args:
            config: Watcher configuration
        """
        self.config = config or WatcherConfig()
        self._observer = Observer()
        self._started = False
        self._handles: Dict[Path, WatchHandle] = {}
        self._watches: Dict[Path, object] = {}
        self._closed = False
        self._lock = threading.Lock()

        self._ready: Deque[WatchHandle] = deque()
        self._listener: Optional[Callable[[], None]] = None
        self._ready_closed = False
        self._ready_lock = threading.Lock()

    def set_ready_listener(self, listener: Optional[Callable[[], None]]) -> None:
        with self._ready_lock:
            self._listener = listener

    def register(self, path: Path, kinds: Optional[Iterable[EventKind]] = None) -> WatchHandle:
        """
        Start watching a directory.

        Registering an already watched directory returns its existing handle
        with the event kinds replaced.

        Args:
            path: Directory to watch
            kinds: Event kinds to report (defaults to config.event_kinds)

        Returns:
            The handle of the directory

        Raises:
            RegistrationError: If the path is missing, is not a directory,
                or the observer refuses it
        """
        try:
            resolved = Path(path).resolve(strict=True)
        except OSError as exc:
            raise RegistrationError(f"Cannot watch {path}: {exc}") from exc
        if not resolved.is_dir():
            raise RegistrationError(f"Not a directory: {resolved}")

        kinds = frozenset(kinds) if kinds is not None else self.config.event_kinds

        with self._lock:
            if self._closed:
                raise RegistrationError("Notification service is closed")

            handle = self._handles.get(resolved)
            if handle is not None:
                handle._set_kinds(kinds)
                return handle

            handle = WatchHandle(resolved, kinds, self, self.config.max_pending_events)
            try:
                if not self._started:
                    self._observer.start()
                    self._started = True
                watch = self._observer.schedule(
                    FSEventHandler(handle, self.config),
                    str(resolved),
                    recursive=False,
                )
            except OSError as exc:
                raise RegistrationError(f"Cannot watch {resolved}: {exc}") from exc

            self._handles[resolved] = handle
            self._watches[resolved] = watch

        logger.debug(f"Registered {resolved} for {sorted(k.value for k in kinds)}")
        return handle

    def poll(self) -> Optional[WatchHandle]:
        """
        Remove and return the next signalled handle.

        Returns:
            A handle, or None if no handle is ready

        Raises:
            ServiceClosedError: If the service was closed
        """
        with self._ready_lock:
            if self._ready_closed:
                raise ServiceClosedError("Notification service is closed")
            if self._ready:
                return self._ready.popleft()
            return None

    def close(self) -> None:
        """
        Stop the observer and invalidate every handle.

        Raises:
            CloseError: If the observer could not be stopped
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            handles = list(self._handles.values())
            self._handles.clear()
            self._watches.clear()

        with self._ready_lock:
            self._ready_closed = True
            self._ready.clear()
            self._listener = None

        for handle in handles:
            handle._invalidate()

        if self._started:
            try:
                self._observer.stop()
                self._observer.join(timeout=self.config.observer_timeout)
            except (OSError, RuntimeError) as exc:
                raise CloseError(f"Failed to stop observer: {exc}") from exc
            if self._observer.is_alive():
                raise CloseError(
                    f"Observer did not stop within {self.config.observer_timeout}s"
                )

        logger.info(f"Notification service closed, released {len(handles)} watch(es)")

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def get_watched_paths(self) -> List[Path]:
        """
        Get list of currently watched directories.

        Returns:
            List of watched paths
        """
        with self._lock:
            return list(self._handles.keys())

    def _enqueue_ready(self, handle: WatchHandle) -> None:
        """Queue a signalled handle and notify the listener outside the lock."""
        with self._ready_lock:
            if self._ready_closed:
                return
            self._ready.append(handle)
            listener = self._listener

        if listener is not None:
            listener()

    def _cancel(self, handle: WatchHandle) -> None:
        with self._lock:
            if self._handles.get(handle.path) is not handle:
                return
            del self._handles[handle.path]
            watch = self._watches.pop(handle.path)

        with self._ready_lock:
            try:
                self._ready.remove(handle)
            except ValueError:
                pass

        try:
            self._observer.unschedule(watch)
        except KeyError:
            logger.debug(f"Watch for {handle.path} was already unscheduled")
        logger.debug(f"Cancelled watch on {handle.path}")

    def __len__(self) -> int:
        """Return the number of watched directories."""
        with self._lock:
            return len(self._handles)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
