"""
Directory Watcher Package

A directory watcher that owns one background IO thread, multiplexing
filesystem change notifications and a queue of file operations, and
delivering every result through a caller-supplied executor.

Features:
- Non-recursive directory watches with resettable handles
- Asynchronous file and directory creation with success/error callbacks
- Directory tree enumeration returning a future
- Separate streams for errors and signalled handles
- Idempotent shutdown with rejection of late submissions
"""

from .models import (
    EventKind,
    WatchEvent,
    Task,
    WatcherState,
    DEFAULT_EVENT_KINDS,
)

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    RegistrationError,
    MutationError,
    EnumerationError,
    RejectedError,
    CloseError,
    ServiceClosedError,
    UnhandledTaskError,
)

from .types import ExecutionContext, NotificationService, TreeBuilder
from .handles import HandleState, WatchHandle
from .channel import EventChannel, EventStream, Subscription
from .queue import TaskQueue
from .tree import PathElement, PathTreeBuilder
from .fs_watcher import WatchdogNotificationService, FSEventHandler
from .core import DirectoryWatcher


__all__ = [
    # Models
    "EventKind",
    "WatchEvent",
    "Task",
    "WatcherState",
    "DEFAULT_EVENT_KINDS",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "RegistrationError",
    "MutationError",
    "EnumerationError",
    "RejectedError",
    "CloseError",
    "ServiceClosedError",
    "UnhandledTaskError",
    # Interfaces
    "ExecutionContext",
    "NotificationService",
    "TreeBuilder",
    # Components
    "HandleState",
    "WatchHandle",
    "EventChannel",
    "EventStream",
    "Subscription",
    "TaskQueue",
    "PathElement",
    "PathTreeBuilder",
    "WatchdogNotificationService",
    "FSEventHandler",
    # Main
    "DirectoryWatcher",
]

__version__ = "0.1.0"
