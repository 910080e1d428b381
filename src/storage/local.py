"""Local filesystem storage backend."""

import asyncio
import contextlib
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger

from src.core.exceptions import StorageError, StreamReadError
from src.storage.base import ByteStream


class LocalStorage:
    def __init__(self, base_path: Path | str) -> None:
        self.base_path = Path(base_path)
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create storage directory {self.base_path}: {e!s}"
            raise StorageError(message=msg) from e
        self._root = self.base_path.resolve()

    def resolve(self, name: str) -> Path:
        """Map a storage name to a path, refusing anything outside the root."""
        try:
            path = (self._root / name).resolve()
        except (OSError, ValueError) as e:
            # e.g. an embedded NUL byte
            msg = f"Invalid storage name {name!r}: {e!s}"
            raise StorageError(message=msg) from e
        if path == self._root or not path.is_relative_to(self._root):
            msg = f"Refusing to write outside storage root: {name!r}"
            raise StorageError(message=msg)
        return path

    async def save(self, name: str, data: ByteStream) -> None:
        path = self.resolve(name)
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                async for chunk in data:
                    await f.write(chunk)
        except (OSError, ValueError) as e:
            await self._discard(path)
            msg = f"Failed to write {name}: {e!s}"
            raise StorageError(message=msg) from e
        except StreamReadError:
            await self._discard(path)
            raise
        except asyncio.CancelledError:
            await asyncio.shield(self._discard(path))
            raise
        logger.debug(f"Wrote {path}")

    @staticmethod
    async def _discard(path: Path) -> None:
        # Partial files are never left behind
        with contextlib.suppress(OSError, ValueError):
            await aiofiles.os.remove(path)
