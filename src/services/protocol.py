from typing import IO, Protocol, runtime_checkable

from src.core.relay import UploadRelay
from src.schemas.results import ProviderResponse


@runtime_checkable
class ObjectStore(Protocol):
    """Read and write primitives an archive task needs from an object store."""

    async def aopen_read(self, bucket: str, region: str, key: str) -> IO[bytes]:
        """Open a blocking, sequential byte stream over a stored object.

        Network and storage failures surface as exceptions from `read`.
        """
        ...

    async def aput_object(self, bucket: str, region: str, key: str, body: UploadRelay) -> ProviderResponse:
        """Store everything read from `body` as one object and return the provider response."""
        ...
