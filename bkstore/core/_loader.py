from __future__ import annotations

import importlib
import inspect
import logging
from typing import Any

from ._provider import Provider
from ._type_converter import TypeConverter
from .exceptions import LoadError

logger = logging.getLogger(__name__)


class Loader:
    @staticmethod
    def load_provider_instance(
        path: str,
        parameters: dict[str, Any] | None = None,
    ) -> Provider:
        """Import the provider class at path and construct it.

        Parameters given as plain values (strings, dicts) are converted
        to the types the provider's constructor declares.
        """
        cls = Loader.load_class(path, Provider)
        logger.debug("load provider %s from %s", cls.__name__, path)
        kwargs = TypeConverter.convert_args(cls.__init__, parameters or {})
        return cls(**kwargs)

    @staticmethod
    def load_class(path: str, base: type) -> Any:
        module_name, _, class_name = path.partition(":")
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise LoadError(f"unable to import {module_name}: {e}") from e
        if class_name:
            try:
                return getattr(module, class_name)
            except AttributeError as e:
                raise LoadError(f"{class_name} not found in {module_name}") from e
        # first subclass defined in the module itself
        for _, cls in inspect.getmembers(module, inspect.isclass):
            if issubclass(cls, base) and cls.__module__ == module_name:
                return cls
        raise LoadError(f"no {base.__name__} defined in {module_name}")
