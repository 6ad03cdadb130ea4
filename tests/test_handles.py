"""Tests for watch handle module."""

import pytest
from pathlib import Path

from dirwatch.handles import HandleState, WatchHandle
from dirwatch.models import DEFAULT_EVENT_KINDS, EventKind


class RecordingService:
    """Collects the handles a WatchHandle queues or cancels."""

    def __init__(self):
        self.ready = []
        self.cancelled = []

    def _enqueue_ready(self, handle):
        self.ready.append(handle)

    def _cancel(self, handle):
        self.cancelled.append(handle)


def make_handle(service, kinds=DEFAULT_EVENT_KINDS, max_pending_events=512):
    return WatchHandle(Path("/watched"), kinds, service, max_pending_events)


class TestWatchHandle:
    """Tests for WatchHandle class."""

    def test_initial_state(self):
        handle = make_handle(RecordingService())
        assert handle.state is HandleState.READY
        assert handle.is_valid is True
        assert handle.poll_events() == []

    def test_first_event_signals(self):
        service = RecordingService()
        handle = make_handle(service)

        handle._signal_event(EventKind.CREATE, Path("a.txt"))

        assert service.ready == [handle]
        assert handle.state is HandleState.SIGNALLED

    def test_signalled_only_once_until_reset(self):
        service = RecordingService()
        handle = make_handle(service)

        handle._signal_event(EventKind.CREATE, Path("a.txt"))
        handle._signal_event(EventKind.DELETE, Path("b.txt"))

        assert service.ready == [handle]
        events = handle.poll_events()
        assert [(e.kind, e.context) for e in events] == [
            (EventKind.CREATE, Path("a.txt")),
            (EventKind.DELETE, Path("b.txt")),
        ]

    def test_reset_without_pending_events(self):
        service = RecordingService()
        handle = make_handle(service)
        handle._signal_event(EventKind.CREATE, Path("a.txt"))
        handle.poll_events()

        assert handle.reset() is True
        assert handle.state is HandleState.READY
        assert service.ready == [handle]

    def test_reset_with_pending_events_requeues(self):
        service = RecordingService()
        handle = make_handle(service)
        handle._signal_event(EventKind.CREATE, Path("a.txt"))
        handle.poll_events()
        handle._signal_event(EventKind.MODIFY, Path("a.txt"))

        assert handle.reset() is True
        assert service.ready == [handle, handle]
        assert handle.state is HandleState.SIGNALLED

    def test_unregistered_kind_is_dropped(self):
        service = RecordingService()
        handle = make_handle(service, kinds={EventKind.CREATE})

        handle._signal_event(EventKind.MODIFY, Path("a.txt"))

        assert service.ready == []
        assert handle.poll_events() == []

    def test_identical_events_coalesce(self):
        handle = make_handle(RecordingService())

        for _ in range(3):
            handle._signal_event(EventKind.MODIFY, Path("a.txt"))
        handle._signal_event(EventKind.MODIFY, Path("b.txt"))

        events = handle.poll_events()
        assert [(e.context, e.count) for e in events] == [(Path("a.txt"), 3), (Path("b.txt"), 1)]

    def test_overflow(self):
        handle = make_handle(RecordingService(), max_pending_events=2)

        for name in ("a", "b", "c", "d"):
            handle._signal_event(EventKind.CREATE, Path(name))

        events = handle.poll_events()
        assert [e.kind for e in events] == [EventKind.CREATE, EventKind.CREATE, EventKind.OVERFLOW]
        assert events[-1].context is None
        assert events[-1].count == 2

    def test_overflow_marker_is_extra_entry(self):
        handle = make_handle(RecordingService(), max_pending_events=5)

        for i in range(50):
            handle._signal_event(EventKind.CREATE, Path(f"f{i}"))

        events = handle.poll_events()
        assert len(events) == 6
        assert [e.kind for e in events[:5]] == [EventKind.CREATE] * 5
        assert events[-1].kind is EventKind.OVERFLOW
        assert events[-1].count == 45

    def test_set_kinds_filters_later_events(self):
        service = RecordingService()
        handle = make_handle(service)

        handle._set_kinds({EventKind.CREATE})
        handle._signal_event(EventKind.MODIFY, Path("a.txt"))
        handle._signal_event(EventKind.CREATE, Path("b.txt"))

        assert handle.kinds == frozenset({EventKind.CREATE})
        assert [(e.kind, e.context) for e in handle.poll_events()] == [(EventKind.CREATE, Path("b.txt"))]

    def test_cancel(self):
        service = RecordingService()
        handle = make_handle(service)

        handle.cancel()
        handle.cancel()

        assert service.cancelled == [handle]
        assert handle.is_valid is False
        assert handle.reset() is False

    def test_invalid_handle_ignores_events(self):
        service = RecordingService()
        handle = make_handle(service)
        handle._invalidate()

        handle._signal_event(EventKind.CREATE, Path("a.txt"))

        assert service.ready == []
        assert handle.poll_events() == []
