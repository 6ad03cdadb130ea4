"""Per-directory notification state handed out by notification services."""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, FrozenSet, List, Optional

from .models import EventKind, WatchEvent

if TYPE_CHECKING:
    from .fs_watcher import WatchdogNotificationService

logger = logging.getLogger(__name__)


class HandleState(Enum):
    READY = "ready"
    SIGNALLED = "signalled"


class WatchHandle:
    """
    Token for one registered directory and its pending events.

    A handle is signalled (queued on its service) when the first event
    arrives while it is READY. Further events accumulate until the consumer
    calls ``poll_events()`` and ``reset()``; a handle that is never reset is
    never signalled again.

    At most ``max_pending_events`` events are kept. Past that, one OVERFLOW
    marker is appended in addition to them and absorbs every later event,
    so a handle holds up to ``max_pending_events + 1`` entries.
    """

    def __init__(
        self,
        path: Path,
        kinds: FrozenSet[EventKind],
        service: "WatchdogNotificationService",
        max_pending_events: int = 512,
    ):
        self.path = path
        self.kinds = frozenset(kinds)
        self._service = service
        self._max_pending_events = max_pending_events
        self._events: List[WatchEvent] = []
        self._state = HandleState.READY
        self._valid = True
        self._lock = threading.Lock()

    @property
    def is_valid(self) -> bool:
        with self._lock:
            return self._valid

    @property
    def state(self) -> HandleState:
        with self._lock:
            return self._state

    def poll_events(self) -> List[WatchEvent]:
        """Return and clear the pending events."""
        with self._lock:
            events = self._events
            self._events = []
            return events

    def reset(self) -> bool:
        """
        Re-arm the handle so it can be signalled again.

        Returns:
            False if the handle is no longer valid
        """
        requeue = False
        with self._lock:
            if not self._valid:
                return False
            if self._state is HandleState.SIGNALLED:
                if self._events:
                    requeue = True
                else:
                    self._state = HandleState.READY

        if requeue:
            self._service._enqueue_ready(self)
        return True

    def cancel(self) -> None:
        """Stop watching the directory and invalidate the handle."""
        if self.is_valid:
            self._service._cancel(self)
            self._invalidate()

    def _set_kinds(self, kinds: FrozenSet[EventKind]) -> None:
        with self._lock:
            self.kinds = frozenset(kinds)

    def _invalidate(self) -> None:
        with self._lock:
            self._valid = False

    def _signal_event(self, kind: EventKind, context: Optional[Path]) -> None:
        """Record an event and queue the handle if it was READY."""
        signal = False
        with self._lock:
            if not self._valid:
                return
            if kind is not EventKind.OVERFLOW and kind not in self.kinds:
                return
            self._append(kind, context)
            if self._state is HandleState.READY:
                self._state = HandleState.SIGNALLED
                signal = True

        if signal:
            self._service._enqueue_ready(self)

    def _append(self, kind: EventKind, context: Optional[Path]) -> None:
        if self._events:
            last = self._events[-1]
            if last.kind is EventKind.OVERFLOW:
                last.count += 1
                return
            if last.kind is kind and last.context == context:
                last.count += 1
                return
            if len(self._events) >= self._max_pending_events:
                logger.warning(f"Too many pending events for {self.path}, overflowing")
                kind, context = EventKind.OVERFLOW, None

        self._events.append(WatchEvent(kind=kind, context=context))

    def __repr__(self) -> str:
        return f"WatchHandle(path={str(self.path)!r}, state={self._state.value}, valid={self._valid})"
