from __future__ import annotations

from typing import Any

from bkstore.core import Component, Response, operation
from bkstore.storage._common import (
    StorageInfo,
    StorageInfoLevel,
    StorageRead,
    StorageReadSync,
    StorageWrite,
    StorageWriteSync,
)


class FileStore(Component):
    """File hierarchy over a storage backend.

    Paths are resolved against the provider's base path. Relative paths
    are joined to it, absolute paths must lie under it and paths starting
    with an expression such as "<REPO>" are expanded by the provider's
    path expression callback.
    """

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)

    @operation()
    def info(
        self,
        file: str,
        level: StorageInfoLevel = StorageInfoLevel.BASIC,
        ignore_missing: bool = False,
        **kwargs: Any,
    ) -> Response[StorageInfo]:
        """Get file info.

        Args:
            file:
                File path.
            level:
                Level of information to return.
            ignore_missing:
                Return exists=False instead of raising when missing.

        Returns:
            File info.

        Raises:
            NotFoundError:
                File is missing and ignore_missing is not set.
        """
        raise NotImplementedError

    @operation()
    def list(
        self,
        path: str | None = None,
        level: StorageInfoLevel = StorageInfoLevel.BASIC,
        expression: str | None = None,
        **kwargs: Any,
    ) -> Response[list[StorageInfo]]:
        """List one level of a path.

        Args:
            path:
                Path to list. Defaults to the base path.
            level:
                Level of information to return for each entry.
            expression:
                Regular expression entry names must match.

        Returns:
            Entries with names relative to the path.
        """
        raise NotImplementedError

    @operation()
    def new_read(
        self,
        file: str,
        ignore_missing: bool = False,
        offset: int = 0,
        limit: int | None = None,
        **kwargs: Any,
    ) -> Response[StorageReadSync]:
        """Create a read handle.

        No request is made until the handle is opened.

        Args:
            file:
                File path.
            ignore_missing:
                Open returns False instead of raising when missing.
            offset:
                Byte offset to start reading at.
            limit:
                Maximum number of bytes to read.

        Returns:
            Read handle.
        """
        raise NotImplementedError

    @operation()
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
        """Create a write handle.

        The file becomes visible when the handle is closed.

        Args:
            file:
                File path.
            create_path:
                Create missing parent paths.
            truncate:
                Replace existing content.
            user:
                Owner user.
            group:
                Owner group.
            mode:
                Permission bits.
            time_modified:
                Modification time to set.

        Returns:
            Write handle.

        Raises:
            NotSupportedError:
                An option the backend cannot honor was given.
        """
        raise NotImplementedError

    @operation()
    def remove(
        self,
        file: str,
        error_on_missing: bool = False,
        **kwargs: Any,
    ) -> Response[None]:
        """Remove a file. A missing file is not an error.

        Args:
            file:
                File path.
            error_on_missing:
                Raise when the file is missing.
        """
        raise NotImplementedError

    @operation()
    def path_remove(
        self,
        path: str | None = None,
        recurse: bool = True,
        **kwargs: Any,
    ) -> Response[bool]:
        """Remove a path and everything below it.

        Args:
            path:
                Path to remove. Defaults to the base path.
            recurse:
                Remove sub paths.

        Returns:
            True when the path was removed.
        """
        raise NotImplementedError

    @operation()
    def exists(
        self,
        file: str,
        **kwargs: Any,
    ) -> Response[bool]:
        """Check if a file exists.

        Args:
            file:
                File path.

        Returns:
            A value indicating whether the file exists.
        """
        raise NotImplementedError

    @operation()
    def get(
        self,
        file: str,
        ignore_missing: bool = False,
        **kwargs: Any,
    ) -> Response[bytes | None]:
        """Read a whole file.

        Args:
            file:
                File path.
            ignore_missing:
                Return None instead of raising when missing.

        Returns:
            File content.
        """
        raise NotImplementedError

    @operation()
    def put(
        self,
        file: str,
        data: bytes,
        **kwargs: Any,
    ) -> Response[None]:
        """Write a whole file.

        Args:
            file:
                File path.
            data:
                File content.
        """
        raise NotImplementedError

    @operation()
    async def ainfo(
        self,
        file: str,
        level: StorageInfoLevel = StorageInfoLevel.BASIC,
        ignore_missing: bool = False,
        **kwargs: Any,
    ) -> Response[StorageInfo]:
        """Get file info."""
        raise NotImplementedError

    @operation()
    async def alist(
        self,
        path: str | None = None,
        level: StorageInfoLevel = StorageInfoLevel.BASIC,
        expression: str | None = None,
        **kwargs: Any,
    ) -> Response[list[StorageInfo]]:
        """List one level of a path."""
        raise NotImplementedError

    @operation()
    async def anew_read(
        self,
        file: str,
        ignore_missing: bool = False,
        offset: int = 0,
        limit: int | None = None,
        **kwargs: Any,
    ) -> Response[StorageRead]:
        """Create an async read handle."""
        raise NotImplementedError

    @operation()
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
        """Create an async write handle."""
        raise NotImplementedError

    @operation()
    async def aremove(
        self,
        file: str,
        error_on_missing: bool = False,
        **kwargs: Any,
    ) -> Response[None]:
        raise NotImplementedError

    @operation()
    async def apath_remove(
        self,
        path: str | None = None,
        recurse: bool = True,
        **kwargs: Any,
    ) -> Response[bool]:
        raise NotImplementedError

    @operation()
    async def aexists(
        self,
        file: str,
        **kwargs: Any,
    ) -> Response[bool]:
        raise NotImplementedError

    @operation()
    async def aget(
        self,
        file: str,
        ignore_missing: bool = False,
        **kwargs: Any,
    ) -> Response[bytes | None]:
        raise NotImplementedError

    @operation()
    async def aput(
        self,
        file: str,
        data: bytes,
        **kwargs: Any,
    ) -> Response[None]:
        raise NotImplementedError
