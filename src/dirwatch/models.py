"""Data models for the directory watcher package."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional


class EventKind(Enum):
    """Kinds of directory entry events."""
    CREATE = "create"
    DELETE = "delete"
    MODIFY = "modify"
    OVERFLOW = "overflow"


DEFAULT_EVENT_KINDS = frozenset({EventKind.CREATE, EventKind.DELETE, EventKind.MODIFY})


@dataclass
class WatchEvent:
    """
    A change to an entry of a watched directory.

    Attributes:
        kind: The kind of change
        context: Entry name relative to the watched directory
            (None for OVERFLOW events)
        count: Number of identical consecutive occurrences
    """
    kind: EventKind
    context: Optional[Path] = None
    count: int = 1

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "context": str(self.context) if self.context is not None else None,
            "count": self.count,
        }


@dataclass
class Task:
    """
    A unit of work executed once on the IO thread.

    Attributes:
        operation: Zero-argument callable producing the result
        on_success: Called with the result
        on_error: Called with the exception raised by ``operation``
        inline: Run the continuation on the IO thread instead of handing
            it to the execution context
    """
    operation: Callable[[], Any]
    on_success: Callable[[Any], None]
    on_error: Callable[[BaseException], None]
    inline: bool = False

    def run(self, deliver: Callable[..., None]) -> None:
        """
        Run the operation and hand exactly one continuation to ``deliver``.

        ``deliver(fn, arg)`` schedules ``fn(arg)`` elsewhere. Exceptions
        raised by ``deliver`` itself propagate to the caller, as do
        KeyboardInterrupt and SystemExit raised by the operation.
        """
        try:
            result = self.operation()
        except (KeyboardInterrupt, SystemExit):
            raise
        except BaseException as exc:
            deliver(self.on_error, exc)
        else:
            deliver(self.on_success, result)


@dataclass
class WatcherState:
    """
    Mutable state of the IO loop, guarded by the watcher's condition lock.

    Attributes:
        shutdown: Set once, never cleared
        wakeup_pending: A wake-up arrived while the loop was not parked
        parked: The loop is waiting on the condition
    """
    shutdown: bool = False
    wakeup_pending: bool = False
    parked: bool = False
