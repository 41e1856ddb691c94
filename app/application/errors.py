class ApplicationError(Exception):
    """Base application-layer error, independent from transport concerns."""


class NotFoundError(ApplicationError):
    """Raised when an expected entity does not exist or belongs to another school."""


class ConflictError(ApplicationError):
    """Raised when a uniqueness or state conflict occurs."""


class ForbiddenError(ApplicationError):
    """Raised when operation is forbidden by role or account state."""


class ValidationError(ApplicationError):
    """Raised when application-level validation fails."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class PartialFailureError(ApplicationError):
    """Raised when some assignment batches were committed and others failed."""

    def __init__(self, message: str, *, created_count: int, errors: list[str], summary: dict | None = None):
        super().__init__(message)
        self.created_count = created_count
        self.errors = errors
        self.summary = summary or {}
