from __future__ import annotations

from enum import Enum, IntEnum

from ...core import DataModel


class StorageInfoLevel(IntEnum):
    """Amount of information requested about a storage entry.

    Levels are cumulative: a higher level includes everything the lower
    levels provide.
    """

    EXISTS = 1
    """Only report whether the entry exists."""

    TYPE = 2
    """Add the entry type."""

    BASIC = 3
    """Add size and modification time."""

    DETAIL = 4
    """Add ownership, mode and link destination.

    Object stores have no such details, so Azure entries stop at BASIC.
    """

    DEFAULT = 4


class StorageType(str, Enum):
    """Storage entry type."""

    FILE = "file"
    PATH = "path"
    # Not produced by object stores
    LINK = "link"
    SPECIAL = "special"


class StorageInfo(DataModel):
    """Information about a file or path.

    The detail fields (mode, user, group, link_destination) belong to the
    DETAIL level and stay None for object store entries.
    """

    name: str | None = None
    """Entry name, relative to the listed path."""

    exists: bool = False
    """A value indicating whether the entry exists."""

    level: StorageInfoLevel = StorageInfoLevel.DEFAULT
    """Level of information populated."""

    type: StorageType = StorageType.FILE
    """Entry type."""

    size: int | None = None
    """Size in bytes."""

    time_modified: float | None = None
    """Last modified time as epoch seconds."""

    mode: int | None = None
    """Permission bits."""

    user: str | None = None
    """Owner user."""

    group: str | None = None
    """Owner group."""

    link_destination: str | None = None
    """Link destination."""
