"""Configuration for the directory watcher package."""

import fnmatch
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List, Optional

from .models import DEFAULT_EVENT_KINDS, EventKind


ENV_PREFIX = "DIRWATCH_"


@dataclass
class WatcherConfig:
    """
    Configuration options for the directory watcher.

    Attributes:
        thread_name: Name of the IO thread
        daemon: Whether the IO thread is a daemon thread
        event_kinds: Event kinds registered by ``watch()``
        ignore_patterns: Glob patterns for entries whose events are dropped
        max_pending_events: Pending events kept per handle; later events
            collapse into one OVERFLOW event stored after them
        follow_symlinks: Whether tree enumeration descends into symlinked
            directories
        poll_interval: Upper bound in seconds on a single wait of the IO
            loop (None waits until woken)
        observer_timeout: Seconds to wait for the watchdog observer thread
            to stop on close
    """
    thread_name: str = "DirectoryWatcherIO"
    daemon: bool = True
    event_kinds: FrozenSet[EventKind] = field(default_factory=lambda: DEFAULT_EVENT_KINDS)
    ignore_patterns: List[str] = field(default_factory=list)
    max_pending_events: int = 512
    follow_symlinks: bool = False
    poll_interval: Optional[float] = None
    observer_timeout: float = 5.0

    def __post_init__(self):
        if self.max_pending_events < 1:
            raise ValueError(f"max_pending_events must be positive: {self.max_pending_events}")
        if self.poll_interval is not None and self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive: {self.poll_interval}")
        self.event_kinds = frozenset(self.event_kinds)

    def should_ignore(self, path: Path) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Args:
            path: Path to check

        Returns:
            True if the path should be ignored
        """
        path_str = str(path)
        name = path.name

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
            if fnmatch.fnmatch(path_str, pattern):
                return True

        return False

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "WatcherConfig":
        """
        Build a configuration from ``DIRWATCH_*`` environment variables.

        Recognized variables: ``DIRWATCH_THREAD_NAME``, ``DIRWATCH_DAEMON``,
        ``DIRWATCH_IGNORE`` (comma separated), ``DIRWATCH_MAX_PENDING_EVENTS``,
        ``DIRWATCH_FOLLOW_SYMLINKS``, ``DIRWATCH_POLL_INTERVAL`` and
        ``DIRWATCH_OBSERVER_TIMEOUT``. Unset variables keep the defaults.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value is not None and value.strip() else None

        def as_bool(value: str) -> bool:
            return value.lower() in ("1", "true", "yes", "on")

        kwargs = {}
        if get("THREAD_NAME"):
            kwargs["thread_name"] = get("THREAD_NAME")
        if get("DAEMON"):
            kwargs["daemon"] = as_bool(get("DAEMON"))
        if get("IGNORE"):
            kwargs["ignore_patterns"] = [p.strip() for p in get("IGNORE").split(",") if p.strip()]
        if get("MAX_PENDING_EVENTS"):
            kwargs["max_pending_events"] = int(get("MAX_PENDING_EVENTS"))
        if get("FOLLOW_SYMLINKS"):
            kwargs["follow_symlinks"] = as_bool(get("FOLLOW_SYMLINKS"))
        if get("POLL_INTERVAL"):
            kwargs["poll_interval"] = float(get("POLL_INTERVAL"))
        if get("OBSERVER_TIMEOUT"):
            kwargs["observer_timeout"] = float(get("OBSERVER_TIMEOUT"))
        return cls(**kwargs)
