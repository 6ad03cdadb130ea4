"""
Directory watcher driven by a single IO thread.

The IO thread multiplexes two sources of work:
- handles signalled by the notification service, republished on the
  signalled-handles stream
- filesystem operations queued by callers, whose results are delivered
  through the caller-supplied execution context

Usage:
    executor = ThreadPoolExecutor(max_workers=1)
    watcher = DirectoryWatcher.create(executor)

    def on_handle(handle):
        for event in handle.poll_events():
            ...
        handle.reset()

    watcher.signalled_handles_stream().subscribe(on_handle)
    watcher.watch(root)

Handles must be reset after their events are consumed, otherwise they are
never signalled again.
"""

import logging
import os
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .channel import EventChannel, EventStream
from .config import WatcherConfig
from .exceptions import (
    CloseError,
    EnumerationError,
    MutationError,
    RegistrationError,
    UnhandledTaskError,
)
from .fs_watcher import WatchdogNotificationService
from .handles import WatchHandle
from .models import EventKind, Task, WatcherState
from .queue import TaskQueue
from .tree import PathElement, PathTreeBuilder
from .types import ExecutionContext, NotificationService, TreeBuilder

logger = logging.getLogger(__name__)


def _call(fn, arg) -> None:
    fn(arg)


class DirectoryWatcher:
    """
    Watches directories and runs file operations on a dedicated IO thread.

    Results, errors and signalled handles are never delivered on the IO
    thread: each one is submitted to the execution context given at
    construction. The one exception is the future returned by ``tree()``,
    which the IO thread completes directly. Shutting the watcher down does
    not shut that executor down.
    """

    def __init__(
        self,
        executor: ExecutionContext,
        config: Optional[WatcherConfig] = None,
        service: Optional[NotificationService] = None,
        tree_builder: Optional[TreeBuilder] = None,
    ):
        """
        Initialize the watcher and start its IO thread.

        Args:
            executor: Execution context used to deliver all results
            config: Watcher configuration
            service: Notification service (defaults to watchdog)
            tree_builder: Directory lister used by tree()
        """
        self.config = config or WatcherConfig()
        self._executor = executor
        self._service = service if service is not None else WatchdogNotificationService(self.config)
        self._tree_builder = tree_builder or PathTreeBuilder(self.config.follow_symlinks)

        self._tasks = TaskQueue()
        self._errors: EventChannel[Exception] = EventChannel("errors")
        self._signalled_handles: EventChannel[WatchHandle] = EventChannel("signalled_handles")
        self._state = WatcherState()
        self._cond = threading.Condition()

        self._service.set_ready_listener(self._wake)

        self._io_thread = threading.Thread(
            target=self._io_loop,
            name=self.config.thread_name,
            daemon=self.config.daemon,
        )
        self._io_thread.start()

    @classmethod
    def create(
        cls,
        executor: ExecutionContext,
        config: Optional[WatcherConfig] = None,
        service: Optional[NotificationService] = None,
        tree_builder: Optional[TreeBuilder] = None,
    ) -> "DirectoryWatcher":
        """Create a watcher whose results are delivered through ``executor``."""
        return cls(executor, config=config, service=service, tree_builder=tree_builder)

    # Registration

    def watch(self, path: Path, kinds: Optional[Iterable[EventKind]] = None) -> WatchHandle:
        """
        Watch a directory for entry create, delete and modify events.

        Args:
            path: Directory to watch
            kinds: Event kinds to report (defaults to config.event_kinds)

        Returns:
            The handle that will be published when events arrive

        Raises:
            RegistrationError: If the directory cannot be registered
        """
        kinds = frozenset(kinds) if kinds is not None else self.config.event_kinds
        return self._service.register(Path(path), kinds)

    def watch_or_emit_error(
        self,
        path: Path,
        kinds: Optional[Iterable[EventKind]] = None,
    ) -> Optional[WatchHandle]:
        """Like watch(), but a RegistrationError goes to the errors stream."""
        try:
            return self.watch(path, kinds)
        except RegistrationError as exc:
            logger.warning(f"Failed to watch {path}: {exc}")
            self._emit_error(exc)
            return None

    # File operations

    def create_file(
        self,
        path: Path,
        on_success: Callable[[float], None],
        on_error: Callable[[BaseException], None],
        mode: int = 0o666,
    ) -> None:
        """
        Create a new, empty file on the IO thread.

        Args:
            path: File to create; must not exist
            on_success: Called with the file's last-modified timestamp
            on_error: Called with a MutationError
            mode: Permission bits, subject to the process umask

        Raises:
            RejectedError: If the watcher is shut down
        """
        path = Path(path)

        def create():
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, mode)
            os.close(fd)
            return os.stat(path).st_mtime

        self._execute_mutation(path, "file", create, on_success, on_error)

    def create_directory(
        self,
        path: Path,
        on_success: Callable[[Path], None],
        on_error: Callable[[BaseException], None],
        mode: int = 0o777,
    ) -> None:
        """
        Create a single directory on the IO thread.

        The parent must exist; use create_directories() otherwise.

        Raises:
            RejectedError: If the watcher is shut down
        """
        path = Path(path)

        def create():
            os.mkdir(path, mode)
            return path

        self._execute_mutation(path, "directory", create, on_success, on_error)

    def create_directories(
        self,
        path: Path,
        on_success: Callable[[Path], None],
        on_error: Callable[[BaseException], None],
        mode: int = 0o777,
    ) -> None:
        """
        Create a directory and its missing parents on the IO thread.

        An existing directory is not an error.

        Raises:
            RejectedError: If the watcher is shut down
        """
        path = Path(path)

        def create():
            os.makedirs(path, mode, exist_ok=True)
            return path

        self._execute_mutation(path, "directories", create, on_success, on_error)

    def execute(
        self,
        operation: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        """
        Queue an arbitrary operation for the IO thread.

        Exactly one of ``on_success(result)`` or ``on_error(exc)`` is
        delivered through the execution context.

        Raises:
            RejectedError: If the watcher is shut down
        """
        self._execute_on_io_thread(Task(operation, on_success, on_error))

    def tree(self, root: Path) -> "Future[PathElement]":
        """
        List the tree rooted at ``root`` on the IO thread.

        The future is completed on the IO thread itself, so a continuation
        running in the execution context may block on ``result()``. Done
        callbacks added to the future also run on the IO thread.

        Returns:
            A future resolved with the root PathElement, or failed with an
            EnumerationError; partial trees are never returned

        Raises:
            RejectedError: If the watcher is shut down
        """
        root = Path(root)
        future: "Future[PathElement]" = Future()

        def build():
            if not future.set_running_or_notify_cancel():
                return None
            try:
                return self._tree_builder.build(root)
            except OSError as exc:
                raise EnumerationError(f"Failed to list {root}: {exc}", root) from exc

        def resolve(element):
            if not future.cancelled():
                future.set_result(element)

        self._execute_on_io_thread(Task(build, resolve, future.set_exception, inline=True))
        return future

    # Lifecycle

    def shutdown(self) -> None:
        """
        Stop accepting work and let the IO thread finish.

        Already queued tasks still run. Safe to call more than once. The
        execution context is left running.
        """
        with self._cond:
            if self._state.shutdown:
                return
            self._state.shutdown = True
            self._tasks.close()
        logger.info(f"Shutting down {self.config.thread_name}")
        self._wake()

    def is_shutdown(self) -> bool:
        """True once shutdown() was called; nothing more is published after the IO thread exits."""
        return self._state.shutdown

    def await_termination(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the IO thread to exit.

        Returns:
            True if the thread has exited
        """
        self._io_thread.join(timeout)
        return not self._io_thread.is_alive()

    # Streams

    def errors_stream(self) -> EventStream[Exception]:
        return EventStream(self._errors)

    def signalled_handles_stream(self) -> EventStream[WatchHandle]:
        return EventStream(self._signalled_handles)

    # Internals

    def _execute_mutation(self, path, what, create, on_success, on_error) -> None:
        def operation():
            try:
                return create()
            except OSError as exc:
                raise MutationError(f"Failed to create {what} {path}: {exc}", path) from exc

        self.execute(operation, on_success, on_error)

    def _execute_on_io_thread(self, task: Task) -> None:
        self._tasks.enqueue(task)
        self._wake()

    def _wake(self) -> None:
        """Wake the IO thread if parked, otherwise leave a pending wake-up."""
        with self._cond:
            if self._state.parked:
                self._cond.notify_all()
            else:
                self._state.wakeup_pending = True

    def _take(self) -> Optional[WatchHandle]:
        """
        Return a ready handle, or None when there is other work to do.

        Blocks only while no handle is ready, no wake-up is pending, no
        task is queued and shutdown was not requested.
        """
        with self._cond:
            while True:
                handle = self._poll_service()
                if handle is not None:
                    return handle
                if self._state.wakeup_pending:
                    self._state.wakeup_pending = False
                    return None
                if self._state.shutdown or self._tasks:
                    return None

                self._state.parked = True
                try:
                    self._cond.wait(self.config.poll_interval)
                finally:
                    self._state.parked = False

    def _poll_service(self) -> Optional[WatchHandle]:
        try:
            return self._service.poll()
        except Exception as exc:
            logger.error(f"Notification service poll failed: {exc}")
            self._emit_error(exc)
            return None

    def _io_loop(self) -> None:
        logger.info(f"{self.config.thread_name} started")

        while True:
            handle = self._take()
            if handle is not None:
                self._emit_handle(handle)
            elif self.is_shutdown():
                self._process_io_queue()
                self._close_service()
                break
            else:
                self._process_io_queue()

        logger.info(f"{self.config.thread_name} stopped")

    def _process_io_queue(self) -> None:
        count = 0
        while True:
            task = self._tasks.poll()
            if task is None:
                break
            count += 1
            deliver = _call if task.inline else self._executor.submit
            try:
                task.run(deliver)
            except (KeyboardInterrupt, SystemExit):
                raise
            except BaseException as exc:
                logger.error(f"Task raised outside its failure path: {exc!r}")
                error = UnhandledTaskError(f"Task raised outside its failure path: {exc!r}")
                error.__cause__ = exc
                self._emit_error(error)

        if count:
            logger.debug(f"Executed {count} queued task(s)")

    def _close_service(self) -> None:
        try:
            self._service.close()
        except CloseError as exc:
            logger.error(f"Failed to close notification service: {exc}")
            self._emit_error(exc)
        except Exception as exc:
            logger.error(f"Failed to close notification service: {exc}")
            error = CloseError(f"Failed to close notification service: {exc}")
            error.__cause__ = exc
            self._emit_error(error)

    def _emit_error(self, error: Exception) -> None:
        try:
            self._executor.submit(self._errors.push, error)
        except Exception as exc:
            logger.warning(f"Dropping error {error!r}, execution context rejected it: {exc}")

    def _emit_handle(self, handle: WatchHandle) -> None:
        try:
            self._executor.submit(self._signalled_handles.push, handle)
        except Exception as exc:
            logger.warning(f"Dropping signalled handle {handle!r}, execution context rejected it: {exc}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False
