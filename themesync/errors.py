"""Exception hierarchy shared by the sync core and the webhook layer."""

from __future__ import annotations


class ThemeSyncError(Exception):
    """Base class for all themesync errors."""


class ObjectStoreError(ThemeSyncError):
    """Wraps a Git Data API failure with the operation that caused it."""

    def __init__(
        self,
        operation: str,
        cause: Exception,
        status: int | None = None,
        retryable: bool = False,
    ) -> None:
        self.operation = operation
        self.status = status
        self.retryable = retryable
        super().__init__(f"{operation} failed: {cause}")
        self.__cause__ = cause


class NotFoundError(ObjectStoreError):
    """The requested ref or object does not exist."""


class BranchNotFound(NotFoundError):
    """A branch ref does not exist in the repository."""

    def __init__(self, branch: str, cause: Exception) -> None:
        self.branch = branch
        super().__init__(f"get ref heads/{branch}", cause, status=404)


class ConflictError(ObjectStoreError):
    """The platform rejected a write (non-fast-forward, 409 or 422)."""


class SignatureError(ThemeSyncError):
    """Webhook payload signature did not match the shared secret."""


class EventParseError(ThemeSyncError):
    """Webhook payload could not be validated into a known event."""


class ThemePublishError(ThemeSyncError):
    """The theme CLI failed or produced output we could not interpret."""


def is_conflict_error(exc: BaseException) -> bool:
    """Return True for errors that should trigger the merge fallback."""
    if isinstance(exc, ConflictError):
        return True
    status = getattr(exc, "status", None)
    if status in (409, 422):
        return True
    return "conflict" in str(exc).lower()
