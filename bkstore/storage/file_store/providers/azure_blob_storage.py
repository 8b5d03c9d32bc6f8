"""
File Store on Azure Blob Storage.

Blobs are files and "/" separated name prefixes are paths. Paths have
no object of their own so they exist only while a blob exists below
them.
"""

from __future__ import annotations

__all__ = ["AzureBlobStorage"]

import inspect
import logging
from email.utils import parsedate_to_datetime
from typing import Any
from xml.etree import ElementTree

import httpx

from bkstore._common.azure_provider import (
    DEFAULT_BLOCK_SIZE,
    DEFAULT_ENDPOINT,
    AzureKeyType,
    AzureProvider,
    AzureUriStyle,
)
from bkstore._common.azure_request import PendingOperation, RequestDispatcher
from bkstore.core.exceptions import FormatError
from bkstore.storage._common import (
    ListCallback,
    PathExpressionCallback,
    StorageInfo,
    StorageInfoLevel,
    StorageProvider,
    StorageRead,
    StorageType,
    StorageWrite,
    expression_prefix,
)

from ._azure_read import AzureBlobRead
from ._azure_write import AzureBlobWrite, FileIdCounter

logger = logging.getLogger(__name__)


class AzureBlobStorage(AzureProvider, StorageProvider):
    file_id: FileIdCounter

    def __init__(
        self,
        path: str = "/",
        write: bool = False,
        path_expression: PathExpressionCallback | None = None,
        container: str | None = None,
        account: str | None = None,
        key_type: AzureKeyType | str = AzureKeyType.SHARED,
        key: str | None = None,
        block_size: int = DEFAULT_BLOCK_SIZE,
        tag: dict[str, str] | None = None,
        endpoint: str = DEFAULT_ENDPOINT,
        uri_style: AzureUriStyle | str = AzureUriStyle.HOST,
        port: int = 443,
        timeout: float = 60,
        verify_peer: bool = True,
        ca_file: str | None = None,
        ca_path: str | None = None,
        retries: int = 0,
        nparams: dict[str, Any] = dict(),
        **kwargs,
    ):
        """Initialize.

        Args:
            path:
                Base path all other paths are resolved against.
            write:
                Allow operations that modify the container.
            path_expression:
                Callback expanding "<EXPR>" path prefixes. Called with
                the expression and the remaining path (or None).
            container:
                Azure blob storage container.
            account:
                Azure storage account name.
            key_type:
                Authentication type: shared, sas or auto.
                The auto type fetches a token from the
                managed identity endpoint.
            key:
                Base64 shared key or SAS query string.
            block_size:
                Size of blocks staged by writes.
            tag:
                Tags applied to written blobs.
            endpoint:
                Blob service endpoint.
            uri_style:
                Either host (account in the host name)
                or path (account in the path).
            port:
                Blob service port.
            timeout:
                Request timeout in seconds.
            verify_peer:
                Verify the server certificate.
            ca_file:
                CA bundle used to verify the server.
            ca_path:
                CA directory used to verify the server.
            retries:
                Connection retries of the transport.
            nparams:
                Native parameters to the httpx client.
        """
        super().__init__(
            account=account,
            container=container,
            key_type=key_type,
            key=key,
            endpoint=endpoint,
            uri_style=uri_style,
            port=port,
            block_size=block_size,
            tag=tag,
            timeout=timeout,
            verify_peer=verify_peer,
            ca_file=ca_file,
            ca_path=ca_path,
            retries=retries,
            nparams=nparams,
            path=path,
            write=write,
            path_expression=path_expression,
            **kwargs,
        )
        self.file_id = FileIdCounter()

    async def _info(self, file: str, level: StorageInfoLevel) -> StorageInfo:
        response = await self.dispatcher.request(
            "HEAD", path=file, allow_missing=True
        )
        info = StorageInfo(level=level, exists=response.is_success)
        if info.exists and level >= StorageInfoLevel.BASIC:
            info.size = int(response.headers["content-length"])
            info.time_modified = _parse_http_date(
                response.headers["last-modified"]
            )
        return info

    async def _list(
        self,
        path: str,
        level: StorageInfoLevel,
        expression: str | None,
        recurse: bool,
        callback: ListCallback,
    ) -> None:
        lister = AzureBlobLister(self.dispatcher, path, level, recurse)
        await lister.run(expression, callback)

    def _new_read(
        self,
        file: str,
        ignore_missing: bool,
        offset: int,
        limit: int | None,
    ) -> StorageRead:
        return AzureBlobRead(
            self.dispatcher,
            name=file,
            ignore_missing=ignore_missing,
            offset=offset,
            limit=limit,
        )

    def _new_write(self, file: str) -> StorageWrite:
        return AzureBlobWrite(
            self.dispatcher,
            name=file,
            file_id=self.file_id.next(),
            block_size=self.config.block_size,
        )

    async def _remove(self, file: str) -> None:
        await self.dispatcher.request("DELETE", path=file, allow_missing=True)

    async def _path_remove(self, path: str, recurse: bool) -> bool:
        remover = AzureBlobPathRemover(self.dispatcher, path)
        await remover.run()
        return True


class AzureBlobLister:
    """Lists blobs below a path, one page per request.

    While a page is being delivered to the callback the request for the
    next page is already in flight.
    """

    dispatcher: RequestDispatcher
    path: str
    level: StorageInfoLevel
    recurse: bool
    base_prefix: str
    pages: int

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        path: str,
        level: StorageInfoLevel,
        recurse: bool = False,
    ):
        self.dispatcher = dispatcher
        self.path = path
        self.level = level
        self.recurse = recurse
        self.base_prefix = "" if path == "/" else f"{path[1:]}/"
        self.pages = 0

    def query(self, expression: str | None = None) -> dict[str, str]:
        prefix = self.base_prefix + (expression_prefix(expression) or "")
        query = dict()
        if not self.recurse:
            query["delimiter"] = "/"
        query["restype"] = "container"
        query["comp"] = "list"
        if prefix:
            query["prefix"] = prefix
        return query

    async def run(
        self, expression: str | None, callback: ListCallback
    ) -> None:
        query = self.query(expression)
        response = await self.dispatcher.request("GET", query=query)
        while True:
            pending = await self._page(response, query, callback)
            if pending is None:
                break
            try:
                response = await self.dispatcher.response(pending)
            except BaseException:
                await pending.discard()
                raise

    async def _page(
        self,
        response: httpx.Response,
        query: dict[str, str],
        callback: ListCallback,
    ) -> PendingOperation | None:
        root = _parse_xml(response.content)
        self.pages += 1

        pending = None
        marker = root.findtext("NextMarker") or ""
        if marker:
            query["marker"] = marker
            pending = await self.dispatcher.request_async("GET", query=query)

        try:
            blobs = root.find("Blobs")
            if blobs is None:
                raise FormatError("list response is missing 'Blobs'")
            prefixes = blobs.findall("BlobPrefix")
            files = blobs.findall("Blob")
            logger.debug(
                "list page %d of '%s': %d path(s), %d file(s), more=%s",
                self.pages,
                self.path,
                len(prefixes),
                len(files),
                pending is not None,
            )
            for node in prefixes:
                await _dispatch(callback, self._path_info(node))
            for node in files:
                await _dispatch(callback, self._file_info(node))
        except BaseException:
            if pending is not None:
                await pending.discard()
            raise
        return pending

    def _path_info(self, node: ElementTree.Element) -> StorageInfo:
        name = _child_text(node, "Name")
        info = StorageInfo(
            name=name[len(self.base_prefix) : -1],
            exists=True,
            level=self.level,
        )
        if self.level >= StorageInfoLevel.TYPE:
            info.type = StorageType.PATH
        return info

    def _file_info(self, node: ElementTree.Element) -> StorageInfo:
        name = _child_text(node, "Name")
        info = StorageInfo(
            name=name[len(self.base_prefix) :],
            exists=True,
            level=self.level,
        )
        if self.level >= StorageInfoLevel.BASIC:
            properties = node.find("Properties")
            if properties is None:
                raise FormatError(f"blob '{name}' is missing 'Properties'")
            info.size = int(_child_text(properties, "Content-Length"))
            info.time_modified = _parse_http_date(
                _child_text(properties, "Last-Modified")
            )
        return info


class AzureBlobPathRemover:
    """Deletes every blob below a path with one delete in flight."""

    dispatcher: RequestDispatcher
    path: str
    deleted: int

    _pending: PendingOperation | None

    def __init__(self, dispatcher: RequestDispatcher, path: str):
        self.dispatcher = dispatcher
        self.path = "" if path == "/" else path
        self.deleted = 0
        self._pending = None
        self._lister = AzureBlobLister(
            dispatcher, path, StorageInfoLevel.TYPE, recurse=True
        )

    async def run(self) -> None:
        try:
            await self._lister.run(None, self._remove)
            await self._wait()
        finally:
            if self._pending is not None:
                await self._pending.discard()
                self._pending = None
        logger.debug("removed %d file(s) below '%s'", self.deleted, self.path)

    async def _remove(self, info: StorageInfo) -> None:
        await self._wait()
        if info.type == StorageType.FILE:
            self._pending = await self.dispatcher.request_async(
                "DELETE", path=f"{self.path}/{info.name}"
            )
            self._pending.state = info.name

    async def _wait(self) -> None:
        if self._pending is None:
            return
        pending = self._pending
        self._pending = None
        try:
            await self.dispatcher.response(pending, allow_missing=True)
        except BaseException:
            logger.debug("remove of '%s' failed", pending.state)
            await pending.discard()
            raise
        logger.debug("removed '%s'", pending.state)
        self.deleted += 1


async def _dispatch(callback: ListCallback, info: StorageInfo) -> None:
    result = callback(info)
    if inspect.isawaitable(result):
        await result


def _parse_xml(content: bytes) -> ElementTree.Element:
    try:
        return ElementTree.fromstring(content)
    except ElementTree.ParseError as e:
        raise FormatError(f"invalid xml response: {e}") from e


def _child_text(node: ElementTree.Element, tag: str) -> str:
    child = node.find(tag)
    if child is None:
        raise FormatError(f"'{node.tag}' is missing '{tag}'")
    return child.text or ""


def _parse_http_date(value: str) -> float:
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError) as e:
        raise FormatError(f"invalid http date '{value}'") from e
