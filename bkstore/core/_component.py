from __future__ import annotations

from typing import Any

from ._operation import Operation
from ._provider import Provider
from .exceptions import BadRequestError


class Component:
    """Public face of a capability, backed by one bound provider.

    A provider is bound as an instance, as the name of a module under
    the component package's "providers" package, or as a dict with
    "type" and "parameters" keys.
    """

    __provider__: Provider
    __handle__: str | None

    def __init__(self, **kwargs):
        self.__handle__ = kwargs.pop("__handle__", None)
        provider = kwargs.pop("__provider__", None)
        if provider is not None:
            self.__bind__(provider)

    def __bind__(self, provider: Provider | dict | str) -> None:
        if isinstance(provider, Provider):
            provider.__component__ = self
            self.__provider__ = provider
            return

        if isinstance(provider, str):
            provider = dict(type=provider)
        if not isinstance(provider, dict) or "type" not in provider:
            raise BadRequestError(f"unable to bind provider {provider!r}")

        from ._loader import Loader

        package = self.__class__.__module__.rsplit(".", 1)[0]
        self.__bind__(
            Loader.load_provider_instance(
                path=f"{package}.providers.{provider['type']}",
                parameters=provider.get("parameters"),
            )
        )

    def __run__(self, operation: Operation) -> Any:
        return self.__provider__.__run__(operation)

    async def __arun__(self, operation: Operation) -> Any:
        return await self.__provider__.__arun__(operation)
