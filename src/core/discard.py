from typing import AsyncIterable

from src.core.cancellation import CancellationToken


async def adiscard(chunks: AsyncIterable[bytes], token: CancellationToken | None = None) -> int:
    """Drain a chunk stream without writing it anywhere.

    Used to fast-forward past entries that already succeeded in an earlier attempt.
    Chunks are pulled one at a time, so the source is never read ahead of the drain.
    Stream errors propagate to the caller.

    Parameters
    ----------
    chunks : AsyncIterable[bytes]
        The entry's byte stream.
    token : CancellationToken | None, optional
        Checked before each chunk, by default None.

    Returns
    -------
    int
        Number of bytes discarded.
    """
    discarded = 0
    async for chunk in chunks:
        discarded += len(chunk)
        if token is not None:
            token.raise_if_cancelled()
    return discarded
