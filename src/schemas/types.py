from enum import StrEnum


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ErrorCodeEnum(StrEnum):
    SIZE_LIMIT_EXCEEDED = "size_limit_exceeded"
    TASK_CANCELLED = "task_cancelled"
    TRANSIENT_ERROR = "transient_error"
    UNEXPECTED_ERROR = "unexpected_error"


class ResultStatusEnum(StrEnum):
    """Outcome of processing one archive entry."""

    SUCCESS = "success"
    ERROR = "error"


class ExtraRootDirEnum(StrEnum):
    """Source key components that may be appended to the target prefix."""

    DIRNAME = "dirname"
    BASENAME = "basename"
