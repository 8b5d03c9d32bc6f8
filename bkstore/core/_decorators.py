import inspect
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from ._operation import Operation

T = TypeVar("T", bound=Callable[..., Any])


def _operation(func: Callable, name: str, args, kwargs) -> Operation:
    bound = inspect.signature(func).bind(*args, **kwargs)
    bound.apply_defaults()
    return Operation.from_call(name, dict(bound.arguments))


def operation() -> Callable[[T], T]:
    """Route a component method to the bound provider.

    The decorated body only runs when no provider is bound. Async
    methods route to the operation named without their "a" prefix.
    """

    def decorator(func: T) -> T:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def awrapper(self, *args, **kwargs) -> Any:
                if not hasattr(self, "__provider__"):
                    return await func(self, *args, **kwargs)
                op = _operation(func, func.__name__[1:], (self, *args), kwargs)
                return await self.__arun__(op)

            return cast(T, awrapper)

        @wraps(func)
        def wrapper(self, *args, **kwargs) -> Any:
            if not hasattr(self, "__provider__"):
                return func(self, *args, **kwargs)
            op = _operation(func, func.__name__, (self, *args), kwargs)
            return self.__run__(op)

        return cast(T, wrapper)

    return decorator
