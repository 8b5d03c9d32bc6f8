import logging
from typing import Any, Callable

from ._async_helper import run_async, run_sync
from ._operation import Operation
from ._type_converter import TypeConverter
from .exceptions import NotSupportedError

logger = logging.getLogger(__name__)


class Provider:
    """Backend implementation of a component's operations.

    An operation named "info" is served by a method "info" or its async
    twin "ainfo". Whichever one a provider lacks is bridged from the
    other.
    """

    __component__: Any
    __handle__: str | None

    def __init__(self, **kwargs):
        self.__handle__ = kwargs.pop("__handle__", None)
        for key, value in kwargs.items():
            setattr(self, key, value)

    def __run__(self, operation: Operation) -> Any:
        func = self._method(operation.name)
        if func is not None:
            return func(**self._args(func, operation))
        afunc = self._method(f"a{operation.name}")
        if afunc is not None:
            logger.debug("run %s on background loop", operation)
            return run_sync(afunc, **self._args(afunc, operation))
        raise NotSupportedError(
            f"{self.__class__.__name__} does not support {operation.name}"
        )

    async def __arun__(self, operation: Operation) -> Any:
        afunc = self._method(f"a{operation.name}")
        if afunc is not None:
            return await afunc(**self._args(afunc, operation))
        return await run_async(self.__run__, operation)

    def _method(self, name: str | None) -> Callable | None:
        if not name:
            return None
        func = getattr(self, name, None)
        return func if callable(func) else None

    def _args(self, func: Callable, operation: Operation) -> dict:
        return TypeConverter.convert_args(func, operation.args or dict())
