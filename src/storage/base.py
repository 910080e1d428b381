from collections.abc import AsyncIterable
from typing import Protocol, TypeAlias

ByteStream: TypeAlias = AsyncIterable[bytes]


class StorageBackend(Protocol):
    """Persists one named byte stream.

    Names are `/`-separated and may contain a folder prefix; backends create any
    intermediate grouping themselves. Input is streamed and its size is unknown up
    front. Implementations raise `StorageError` for their own failures and let
    `StreamReadError`s from the input stream propagate unchanged.
    """

    async def save(self, name: str, data: ByteStream) -> None: ...
