from bkstore.core.exceptions import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    NotSupportedError,
    RequestError,
)
from bkstore.storage._common import (
    StorageInfo,
    StorageInfoLevel,
    StorageRead,
    StorageReadSync,
    StorageType,
    StorageWrite,
    StorageWriteSync,
)

from .component import FileStore

__all__ = [
    "FileStore",
    "StorageInfo",
    "StorageInfoLevel",
    "StorageRead",
    "StorageReadSync",
    "StorageType",
    "StorageWrite",
    "StorageWriteSync",
    "BadRequestError",
    "ForbiddenError",
    "NotFoundError",
    "NotSupportedError",
    "RequestError",
]
