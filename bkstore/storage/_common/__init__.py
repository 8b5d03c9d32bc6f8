from ._expression import expression_prefix, match_expression
from ._io import StorageRead, StorageReadSync, StorageWrite, StorageWriteSync
from ._models import StorageInfo, StorageInfoLevel, StorageType
from ._provider import ListCallback, PathExpressionCallback, StorageProvider

__all__ = [
    "ListCallback",
    "PathExpressionCallback",
    "StorageInfo",
    "StorageInfoLevel",
    "StorageProvider",
    "StorageRead",
    "StorageReadSync",
    "StorageType",
    "StorageWrite",
    "StorageWriteSync",
    "expression_prefix",
    "match_expression",
]
