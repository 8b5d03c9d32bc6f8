from __future__ import annotations

import logging
import secrets
from enum import Enum
from xml.etree import ElementTree

from bkstore._common.azure_request import PendingOperation, RequestDispatcher
from bkstore.core.exceptions import BadRequestError
from bkstore.storage._common import StorageWrite

logger = logging.getLogger(__name__)

FILE_ID_MASK = (1 << 64) - 1


class FileIdCounter:
    """Random 64-bit id, incremented for each file written."""

    value: int

    def __init__(self, seed: int | None = None):
        self.value = secrets.randbits(64) if seed is None else seed

    def next(self) -> int:
        value = self.value
        self.value = (value + 1) & FILE_ID_MASK
        return value


def block_id(file_id: int, index: int) -> str:
    return f"{file_id:016X}x{index:07d}"


def block_list_xml(block_ids: list[str]) -> bytes:
    root = ElementTree.Element("BlockList")
    for value in block_ids:
        ElementTree.SubElement(root, "Uncommitted").text = value
    return b'<?xml version="1.0" encoding="utf-8"?>' + ElementTree.tostring(
        root, encoding="unicode"
    ).encode("utf-8")


class AzureBlobWriteState(str, Enum):
    OPEN = "open"
    BUFFERING = "buffering"
    STAGING = "staging"
    COMMITTING = "committing"
    CLOSED = "closed"
    FAILED = "failed"


class AzureBlobWrite(StorageWrite):
    """Uploads a blob as a list of staged blocks.

    Each full buffer is staged with its own block id while the next one
    fills; the block list is committed on close. Nothing is visible at
    the path until the commit succeeds.
    """

    dispatcher: RequestDispatcher
    file_id: int
    block_size: int
    block_ids: list[str]
    state: AzureBlobWriteState

    _buffer: bytearray
    _pending: PendingOperation | None

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        name: str,
        file_id: int,
        block_size: int,
    ):
        self.dispatcher = dispatcher
        self.file_id = file_id
        self.block_size = block_size
        self.block_ids = []
        self.state = AzureBlobWriteState.OPEN
        self._buffer = bytearray()
        self._pending = None
        super().__init__(name=name)

    async def write(self, data: bytes) -> int:
        self._check_writable()
        self.state = AzureBlobWriteState.BUFFERING
        try:
            self._buffer.extend(data)
            while len(self._buffer) >= self.block_size:
                block = bytes(self._buffer[: self.block_size])
                del self._buffer[: self.block_size]
                await self._stage(block)
        except BaseException:
            await self._fail()
            raise
        return len(data)

    async def close(self) -> None:
        if self.state == AzureBlobWriteState.CLOSED:
            return
        self._check_writable()
        try:
            if self._buffer:
                await self._stage(bytes(self._buffer))
                self._buffer.clear()
            await self._wait()

            self.state = AzureBlobWriteState.COMMITTING
            logger.debug(
                "commit '%s' with %d block(s)", self.name, len(self.block_ids)
            )
            await self.dispatcher.request(
                "PUT",
                path=self.name,
                query={"comp": "blocklist"},
                content=block_list_xml(self.block_ids),
                tag=True,
            )
        except BaseException:
            await self._fail()
            raise
        self.state = AzureBlobWriteState.CLOSED

    async def abort(self) -> None:
        await self._discard()
        self._buffer.clear()
        if self.state != AzureBlobWriteState.FAILED:
            self.state = AzureBlobWriteState.CLOSED

    async def _stage(self, block: bytes) -> None:
        await self._wait()
        self.state = AzureBlobWriteState.STAGING
        bid = block_id(self.file_id, len(self.block_ids))
        logger.debug(
            "stage block %s of '%s' (%d bytes)", bid, self.name, len(block)
        )
        self._pending = await self.dispatcher.request_async(
            "PUT",
            path=self.name,
            query={"comp": "block", "blockid": bid},
            content=block,
        )
        self.block_ids.append(bid)
        self.state = AzureBlobWriteState.BUFFERING

    async def _wait(self) -> None:
        if self._pending is None:
            return
        pending = self._pending
        self._pending = None
        try:
            await self.dispatcher.response(pending)
        except BaseException:
            await pending.discard()
            raise

    async def _discard(self) -> None:
        if self._pending is not None:
            pending = self._pending
            self._pending = None
            await pending.discard()

    async def _fail(self) -> None:
        self.state = AzureBlobWriteState.FAILED
        await self._discard()

    def _check_writable(self) -> None:
        if self.state in (
            AzureBlobWriteState.CLOSED,
            AzureBlobWriteState.FAILED,
        ):
            raise BadRequestError(
                f"unable to write '{self.name}' in state {self.state.value}"
            )
