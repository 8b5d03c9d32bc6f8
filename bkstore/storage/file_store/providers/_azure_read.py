from __future__ import annotations

import logging
from typing import AsyncIterator

import httpx

from bkstore._common.azure_request import RequestDispatcher
from bkstore.core.exceptions import NotFoundError
from bkstore.storage._common import StorageRead

logger = logging.getLogger(__name__)


class AzureBlobRead(StorageRead):
    """Streams a blob, or a byte range of it, with a single GET."""

    dispatcher: RequestDispatcher

    _opened: bool
    _exists: bool
    _response: httpx.Response | None
    _stream: AsyncIterator[bytes] | None
    _buffer: bytearray

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        name: str,
        ignore_missing: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ):
        self.dispatcher = dispatcher
        self._opened = False
        self._exists = False
        self._response = None
        self._stream = None
        self._buffer = bytearray()
        super().__init__(
            name=name,
            ignore_missing=ignore_missing,
            offset=offset,
            limit=limit,
        )

    def _range(self) -> str | None:
        if self.offset == 0 and self.limit is None:
            return None
        if self.limit is None:
            return f"bytes={self.offset}-"
        return f"bytes={self.offset}-{self.offset + self.limit - 1}"

    async def open(self) -> bool:
        if self._opened:
            return self._exists
        self._opened = True

        # Nothing to fetch
        if self.limit == 0:
            self._exists = True
            return True

        header = dict()
        value = self._range()
        if value is not None:
            header["range"] = value
        response = await self.dispatcher.request(
            "GET",
            path=self.name,
            header=header,
            allow_missing=True,
            content_io=True,
        )
        if response.status_code == 404:
            await response.aclose()
            if not self.ignore_missing:
                raise NotFoundError(
                    f"unable to open missing file '{self.name}' for read"
                )
            logger.debug("ignore missing file '%s' on read", self.name)
            return False

        self._exists = True
        self._response = response
        self._stream = response.aiter_bytes()
        return True

    async def read(self, size: int = -1) -> bytes:
        if not self._opened:
            await self.open()
        while self._stream is not None and (
            size < 0 or len(self._buffer) < size
        ):
            try:
                self._buffer.extend(await self._stream.__anext__())
            except StopAsyncIteration:
                self._stream = None
        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        return data

    async def close(self) -> None:
        self._stream = None
        self._buffer.clear()
        if self._response is not None:
            await self._response.aclose()
            self._response = None
