from src.core.exceptions import SizeLimitExceededError

# Largest object a single PUT accepts on S3 and most compatible stores.
PUT_OBJECT_LIMIT: int = 5 * 1024 * 1024 * 1024


def check_entry_size(size: int, limit: int = PUT_OBJECT_LIMIT) -> None:
    """Reject an entry whose declared size is above `limit`.

    Raises
    ------
    SizeLimitExceededError
        If `size` exceeds `limit`. The error is not retryable.
    """
    if size > limit:
        raise SizeLimitExceededError(size, limit)
