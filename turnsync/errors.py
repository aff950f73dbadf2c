"""Errors raised by the backend command surface."""


class BackendError(Exception):
    """Base exception for backend command errors."""

    pass


class BackendUnavailable(BackendError):
    """Raised when the backend cannot be reached or answers with a server error."""

    pass


class ScanError(BackendError):
    """Raised when the backend could not produce a usable prediction."""

    pass


class ActionFailure(BackendError):
    """Raised when an upload or download round-trip fails."""

    def __init__(self, action: str, message: str):
        self.action = action
        super().__init__(f"{action.capitalize()} failed: {message}")
