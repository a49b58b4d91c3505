"""Domain error taxonomy.

Services raise these; ``main.py`` turns them into HTTP responses using
``status_code``. Best-effort side effects (cache invalidation, alert checks)
catch and log them instead of propagating.
"""


class ProgressError(Exception):
    """Base class for every error the progress services raise."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AccessDenied(ProgressError):
    """Caller's tenant does not own the requested student / alert."""

    status_code = 403


class NotFound(ProgressError):
    """Entity absent, or not visible to the caller's tenant."""

    status_code = 404


class InvalidInput(ProgressError):
    """Out-of-range threshold, malformed counts, bad dates."""

    status_code = 400


class StorageFailure(ProgressError):
    """The underlying store call failed."""

    status_code = 503
