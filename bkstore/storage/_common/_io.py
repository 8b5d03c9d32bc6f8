from __future__ import annotations

from typing import Any

from ...core._async_helper import run_sync


class StorageRead:
    """Async byte stream over a stored file."""

    name: str
    ignore_missing: bool
    offset: int
    limit: int | None

    def __init__(
        self,
        name: str,
        ignore_missing: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ):
        self.name = name
        self.ignore_missing = ignore_missing
        self.offset = offset
        self.limit = limit

    async def open(self) -> bool:
        raise NotImplementedError

    async def read(self, size: int = -1) -> bytes:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError

    async def read_all(self) -> bytes:
        chunks = []
        while True:
            chunk = await self.read()
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    async def __aenter__(self) -> StorageRead:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class StorageWrite:
    """Async byte sink creating (or truncating) a stored file."""

    name: str

    def __init__(self, name: str):
        self.name = name

    async def open(self) -> None:
        pass

    async def write(self, data: bytes) -> int:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError

    async def abort(self) -> None:
        pass

    async def __aenter__(self) -> StorageWrite:
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, *args: Any) -> None:
        # Do not commit a partially written file
        if exc_type is None:
            await self.close()
        else:
            await self.abort()


class StorageReadSync:
    """Blocking facade over a StorageRead."""

    def __init__(self, handle: StorageRead):
        self.handle = handle

    @property
    def name(self) -> str:
        return self.handle.name

    def open(self) -> bool:
        return run_sync(self.handle.open)

    def read(self, size: int = -1) -> bytes:
        return run_sync(self.handle.read, size)

    def read_all(self) -> bytes:
        return run_sync(self.handle.read_all)

    def close(self) -> None:
        run_sync(self.handle.close)

    def __enter__(self) -> StorageReadSync:
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class StorageWriteSync:
    """Blocking facade over a StorageWrite."""

    def __init__(self, handle: StorageWrite):
        self.handle = handle

    @property
    def name(self) -> str:
        return self.handle.name

    def open(self) -> None:
        run_sync(self.handle.open)

    def write(self, data: bytes) -> int:
        return run_sync(self.handle.write, data)

    def close(self) -> None:
        run_sync(self.handle.close)

    def abort(self) -> None:
        run_sync(self.handle.abort)

    def __enter__(self) -> StorageWriteSync:
        self.open()
        return self

    def __exit__(self, exc_type: Any, *args: Any) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()
