"""Custom exceptions for the directory watcher package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class RegistrationError(WatcherError):
    """A directory could not be registered with the notification service."""
    pass


class MutationError(WatcherError):
    """A file or directory creation failed on the IO thread."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class EnumerationError(WatcherError):
    """Listing a directory tree failed."""

    def __init__(self, message: str, root=None):
        super().__init__(message)
        self.root = root


class RejectedError(WatcherError):
    """Work was submitted after the watcher was shut down."""
    pass


class CloseError(WatcherError):
    """The notification service failed to close."""
    pass


class ServiceClosedError(WatcherError):
    """The notification service was used after being closed."""
    pass


class UnhandledTaskError(WatcherError):
    """A queued task raised outside its own failure continuation."""
    pass
