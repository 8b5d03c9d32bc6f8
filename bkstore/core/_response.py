from typing import Generic, TypeVar

from .data_model import DataModel

T = TypeVar("T")


class Response(DataModel, Generic[T]):
    """Envelope returned by every component operation."""

    result: T
    """Operation result."""
