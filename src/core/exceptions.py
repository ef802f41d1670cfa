"""Custom exceptions for archive tasks."""

from src.schemas.types import ErrorCodeEnum


class BaseTaskError(Exception):
    """Base exception for task-related errors.

    `retryable` tells the retry loop whether another full-archive attempt may succeed.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCodeEnum.UNEXPECTED_ERROR,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.retryable = retryable


class SizeLimitExceededError(BaseTaskError):
    """Raised when an entry is larger than a single object upload accepts."""

    def __init__(self, size: int, limit: int) -> None:
        message = f"Entry size ({size:,} bytes) is larger than the upload limit ({limit:,} bytes)"
        self.size = size
        self.limit = limit
        super().__init__(
            message,
            error_code=ErrorCodeEnum.SIZE_LIMIT_EXCEEDED,
            retryable=False,
        )


class TaskCancelledError(BaseTaskError):
    """Raised when the task is cancelled."""

    def __init__(self, details: str = "task is canceled") -> None:
        super().__init__(
            details,
            error_code=ErrorCodeEnum.TASK_CANCELLED,
            retryable=False,
        )


class TransientError(BaseTaskError):
    """Raised for failures that a fresh attempt may not hit again."""

    def __init__(self, details: str) -> None:
        super().__init__(
            details,
            error_code=ErrorCodeEnum.TRANSIENT_ERROR,
            retryable=True,
        )


def is_retryable(error: BaseException) -> bool:
    """Return False for errors that must stop the retry loop.

    Anything that is not a task error (network, provider, corrupt stream) is retried.
    """
    if isinstance(error, BaseTaskError):
        return error.retryable
    return isinstance(error, Exception)
