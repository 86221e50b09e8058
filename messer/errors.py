"""Exception hierarchy for messer.

Everything user-facing derives from MesserError so the router can turn it
into a displayed message instead of a crash.
"""


class MesserError(Exception):
    """Base class for errors reported to the user."""
    pass


class InvalidCommandError(MesserError):
    """Raised when an input line does not resolve to any command."""

    def __init__(self, message: str = "Invalid command - check your syntax"):
        super().__init__(message)


class CommandError(MesserError):
    """Raised by a handler that rejects its arguments or fails its action."""
    pass


class NotLockedError(MesserError):
    """Raised when the locked target is requested while no lock is held."""

    def __init__(self, message: str = "Not locked to any thread"):
        super().__init__(message)


class LoginError(MesserError):
    """Raised when authentication with the messaging backend fails."""
    pass


class MessagingError(CommandError):
    """Raised when the messaging backend rejects a request."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class TransportError(MessagingError):
    """Raised when the messaging backend cannot be reached at all."""
    pass


class LifecycleError(MesserError):
    """Raised on an invalid session lifecycle transition."""
    pass


class EventParseError(MesserError):
    """Raised when a pushed event payload cannot be understood."""
    pass
