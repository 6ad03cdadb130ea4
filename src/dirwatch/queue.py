"""In-memory task queue consumed by the IO thread."""

import threading
from collections import deque
from typing import Deque, Optional

from .exceptions import RejectedError
from .models import Task


class TaskQueue:
    """
    Unbounded FIFO of tasks with close semantics.

    Features:
    - Many concurrent producers, one consumer
    - Enqueue after close() raises RejectedError
    - Tasks accepted before close() stay available to poll()
    """

    def __init__(self):
        self._items: Deque[Task] = deque()
        self._lock = threading.Lock()
        self._closed = False

    def enqueue(self, task: Task) -> None:
        """
        Add a task to the tail of the queue.

        Raises:
            RejectedError: If the queue is closed
        """
        with self._lock:
            if self._closed:
                raise RejectedError("Directory watcher is shut down")
            self._items.append(task)

    def poll(self) -> Optional[Task]:
        """Remove and return the head of the queue, or None if empty."""
        with self._lock:
            if self._items:
                return self._items.popleft()
            return None

    def close(self) -> bool:
        """
        Stop accepting tasks.

        Returns:
            True if this call closed the queue, False if already closed
        """
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            return True

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def __len__(self) -> int:
        """Return the number of queued tasks."""
        with self._lock:
            return len(self._items)

    def __bool__(self) -> bool:
        return len(self) > 0
