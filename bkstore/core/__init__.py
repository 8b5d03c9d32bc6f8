from ._component import Component
from ._decorators import operation
from ._loader import Loader
from ._operation import Operation
from ._provider import Provider
from ._response import Response
from ._type_converter import TypeConverter
from .data_model import DataModel

__all__ = [
    "Component",
    "DataModel",
    "Loader",
    "Operation",
    "Provider",
    "Response",
    "TypeConverter",
    "operation",
]
