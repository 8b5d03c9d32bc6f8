from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from ...core import Provider, Response
from ...core._async_helper import run_sync
from ...core.exceptions import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    NotSupportedError,
)
from ._expression import match_expression
from ._io import StorageRead, StorageReadSync, StorageWrite, StorageWriteSync
from ._models import StorageInfo, StorageInfoLevel

logger = logging.getLogger(__name__)

PathExpressionCallback = Callable[[str, str | None], str | None]
ListCallback = Callable[[StorageInfo], Awaitable[None] | None]


class StorageProvider(Provider):
    """Base for file store providers.

    Resolves caller paths against the base path, enforces the write flag
    and applies list filters. Concrete drivers implement the underscore
    methods, which always receive absolute, resolved paths.
    """

    path: str
    write: bool
    path_expression: PathExpressionCallback | None

    def __init__(
        self,
        path: str = "/",
        write: bool = False,
        path_expression: PathExpressionCallback | None = None,
        **kwargs,
    ):
        if not path.startswith("/"):
            raise BadRequestError(f"storage path '{path}' must be absolute")
        self.path = path if path == "/" else path.rstrip("/")
        self.write = write
        self.path_expression = path_expression
        super().__init__(**kwargs)

    def resolve_path(self, path: str | None = None) -> str:
        if path is None or path == "":
            return self.path
        if path.startswith("/"):
            if (
                self.path != "/"
                and path != self.path
                and not path.startswith(f"{self.path}/")
            ):
                raise BadRequestError(
                    f"absolute path '{path}' is not in base path '{self.path}'"
                )
            return self._normalize(path)
        if path.startswith("<"):
            return self._resolve_expression(path)
        return self._join(self.path, path)

    def _resolve_expression(self, path: str) -> str:
        end = path.find(">")
        if end == -1:
            raise BadRequestError(
                f"end > not found in path expression '{path}'"
            )
        expression = path[: end + 1]
        rest: str | None = path[end + 1 :]
        if rest:
            if not rest.startswith("/"):
                raise BadRequestError(
                    f"'/' should separate expression and path '{path}'"
                )
            rest = rest[1:] or None
        else:
            rest = None
        if self.path_expression is None:
            raise BadRequestError(
                f"expression '{path}' not valid without callback function"
            )
        resolved = self.path_expression(expression, rest)
        if resolved is None:
            raise BadRequestError(
                f"evaluated path '{path}' cannot be null"
            )
        return self._join(self.path, resolved)

    def _join(self, base: str, path: str) -> str:
        if base == "/":
            return self._normalize(f"/{path}")
        return self._normalize(f"{base}/{path}")

    def _normalize(self, path: str) -> str:
        if path != "/" and path.endswith("/"):
            return path.rstrip("/") or "/"
        return path

    def check_write(self) -> None:
        if not self.write:
            raise ForbiddenError("storage is read-only")

    async def ainfo(
        self,
        file: str,
        level: StorageInfoLevel = StorageInfoLevel.BASIC,
        ignore_missing: bool = False,
        **kwargs: Any,
    ) -> Response[StorageInfo]:
        file = self.resolve_path(file)
        info = await self._info(file, level)
        if not info.exists and not ignore_missing:
            raise NotFoundError(
                f"unable to get info for missing path/file '{file}'"
            )
        return Response(result=info)

    async def alist(
        self,
        path: str | None = None,
        level: StorageInfoLevel = StorageInfoLevel.BASIC,
        expression: str | None = None,
        **kwargs: Any,
    ) -> Response[list[StorageInfo]]:
        path = self.resolve_path(path)
        result: list[StorageInfo] = []

        def callback(info: StorageInfo) -> None:
            if match_expression(expression, info.name):
                result.append(info)

        await self._list(path, level, expression, False, callback)
        return Response(result=result)

    async def anew_read(
        self,
        file: str,
        ignore_missing: bool = False,
        offset: int = 0,
        limit: int | None = None,
        **kwargs: Any,
    ) -> Response[StorageRead]:
        if offset < 0:
            raise BadRequestError("offset must be >= 0")
        if limit is not None and limit < 0:
            raise BadRequestError("limit must be >= 0")
        file = self.resolve_path(file)
        return Response(
            result=self._new_read(file, ignore_missing, offset, limit)
        )

    def new_read(
        self,
        file: str,
        ignore_missing: bool = False,
        offset: int = 0,
        limit: int | None = None,
        **kwargs: Any,
    ) -> Response[StorageReadSync]:
        response = run_sync(
            self.anew_read,
            file=file,
            ignore_missing=ignore_missing,
            offset=offset,
            limit=limit,
        )
        return Response(result=StorageReadSync(response.result))

    async def anew_write(
        self,
        file: str,
        create_path: bool = True,
        truncate: bool = True,
        user: str | None = None,
        group: str | None = None,
        mode: int | None = None,
        time_modified: float | None = None,
        **kwargs: Any,
    ) -> Response[StorageWrite]:
        self.check_write()
        if not create_path or not truncate:
            raise NotSupportedError(
                "files are always created with path and truncated"
            )
        if (
            user is not None
            or group is not None
            or mode is not None
            or time_modified is not None
        ):
            raise NotSupportedError(
                "setting user, group, mode or modified time is not supported"
            )
        file = self.resolve_path(file)
        return Response(result=self._new_write(file))

    def new_write(
        self,
        file: str,
        create_path: bool = True,
        truncate: bool = True,
        user: str | None = None,
        group: str | None = None,
        mode: int | None = None,
        time_modified: float | None = None,
        **kwargs: Any,
    ) -> Response[StorageWriteSync]:
        response = run_sync(
            self.anew_write,
            file=file,
            create_path=create_path,
            truncate=truncate,
            user=user,
            group=group,
            mode=mode,
            time_modified=time_modified,
        )
        return Response(result=StorageWriteSync(response.result))

    async def aremove(
        self,
        file: str,
        error_on_missing: bool = False,
        **kwargs: Any,
    ) -> Response[None]:
        self.check_write()
        if error_on_missing:
            raise NotSupportedError("error on missing file is not supported")
        await self._remove(self.resolve_path(file))
        return Response(result=None)

    async def apath_remove(
        self,
        path: str | None = None,
        recurse: bool = True,
        **kwargs: Any,
    ) -> Response[bool]:
        self.check_write()
        path = self.resolve_path(path)
        logger.debug("remove path '%s' (recurse=%s)", path, recurse)
        return Response(result=await self._path_remove(path, recurse))

    async def aexists(self, file: str, **kwargs: Any) -> Response[bool]:
        info = await self._info(
            self.resolve_path(file), StorageInfoLevel.EXISTS
        )
        return Response(result=info.exists)

    async def aget(
        self,
        file: str,
        ignore_missing: bool = False,
        **kwargs: Any,
    ) -> Response[bytes | None]:
        response = await self.anew_read(file, ignore_missing=ignore_missing)
        handle: StorageRead = response.result
        try:
            if not await handle.open():
                return Response(result=None)
            return Response(result=await handle.read_all())
        finally:
            await handle.close()

    async def aput(
        self,
        file: str,
        data: bytes,
        **kwargs: Any,
    ) -> Response[None]:
        response = await self.anew_write(file)
        handle = response.result
        async with handle:
            await handle.write(data)
        return Response(result=None)

    async def _info(self, file: str, level: StorageInfoLevel) -> StorageInfo:
        raise NotImplementedError

    async def _list(
        self,
        path: str,
        level: StorageInfoLevel,
        expression: str | None,
        recurse: bool,
        callback: ListCallback,
    ) -> None:
        raise NotImplementedError

    def _new_read(
        self,
        file: str,
        ignore_missing: bool,
        offset: int,
        limit: int | None,
    ) -> StorageRead:
        raise NotImplementedError

    def _new_write(self, file: str) -> StorageWrite:
        raise NotImplementedError

    async def _remove(self, file: str) -> None:
        raise NotImplementedError

    async def _path_remove(self, path: str, recurse: bool) -> bool:
        raise NotImplementedError
