"""
Exceptions raised while building a Tinsel site.
"""


class TinselError(Exception):
    """Base exception for all Tinsel errors."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class EvaluationError(TinselError):
    """Raised when template code fails, or a resource it needs is missing."""

    pass


class TransformError(TinselError):
    """Raised when a transformer fails on the evaluated output of a file."""

    pass


class SyncIOError(TinselError):
    """Raised when a filesystem operation of a sync pass fails."""

    pass
