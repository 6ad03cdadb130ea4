"""
Interfaces of the collaborators injected into the directory watcher.

- NotificationService: registers directories and reports ready handles
- ExecutionContext: runs result callbacks away from the IO thread
- TreeBuilder: lists a directory into a PathElement tree
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Protocol

if TYPE_CHECKING:
    from .handles import WatchHandle
    from .models import EventKind
    from .tree import PathElement


class NotificationService(Protocol):
    """
    Source of filesystem change notifications.

    Thread Safety:
    --------------
    ``register`` may be called from any thread, ``poll`` and ``close`` only
    from the IO thread. The ready listener must be invoked without holding
    any lock of the service.
    """

    def register(self, path: Path, kinds: Iterable["EventKind"]) -> "WatchHandle":
        """Register ``path``; raises RegistrationError on failure."""
        ...

    def poll(self) -> Optional["WatchHandle"]:
        """Return the next signalled handle, or None. Never blocks."""
        ...

    def close(self) -> None:
        """Release the service; raises CloseError on failure."""
        ...

    def set_ready_listener(self, listener: Optional[Callable[[], None]]) -> None:
        """Set the callable invoked whenever a handle becomes ready."""
        ...


class ExecutionContext(Protocol):
    """Anything with an executor-style ``submit``, e.g. ThreadPoolExecutor."""

    def submit(self, fn: Callable[..., Any], *args: Any) -> Any:
        ...


class TreeBuilder(Protocol):
    """Builds the PathElement tree of a directory; raises OSError on failure."""

    def build(self, root: Path) -> "PathElement":
        ...
