"""
Forum error taxonomy.

Every error carries a stable machine-readable ``kind``, the HTTP status the
API layer maps it to, and a human-readable message.
"""

from uuid import uuid4

from fastapi import status


class ForumError(Exception):
    """Base class for all forum errors."""

    kind: str = "forum_error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Forum error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(ForumError):
    """Malformed input or a cross-entity reference violation."""

    kind = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    message = "Invalid input"


class NotFoundError(ForumError):
    """Referenced entity does not exist."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class AuthorizationError(ForumError):
    """Caller lacks the role, ownership or membership required."""

    kind = "authorization_error"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Not allowed"


class ThreadClosedError(ForumError):
    """Post creation attempted on a closed thread."""

    kind = "thread_closed"
    status_code = status.HTTP_409_CONFLICT
    message = "Thread is closed and cannot accept new posts"


class ConflictError(ForumError):
    """Concurrent modification detected; safe to retry after re-fetching."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
    message = "Concurrent modification detected"


class InternalError(ForumError):
    """Storage failure or broken invariant, reported with a correlation id."""

    kind = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal error"

    def __init__(
        self,
        message: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.correlation_id = correlation_id or uuid4().hex

    def to_dict(self) -> dict[str, str]:
        return {**super().to_dict(), "correlationId": self.correlation_id}
