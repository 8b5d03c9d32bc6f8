import inspect
from enum import Enum
from typing import Any, get_args, get_origin, get_type_hints


class TypeConverter:
    @staticmethod
    def convert_value(value: Any, expected_type: Any) -> Any:
        origin = get_origin(expected_type)

        # Optional[T]
        if origin is not None and type(None) in get_args(expected_type):
            candidates = [
                t for t in get_args(expected_type) if t is not type(None)
            ]
            if len(candidates) != 1:
                return value
            expected_type = candidates[0]
            origin = get_origin(expected_type)

        if value is None or expected_type is None or origin is not None:
            return value

        if not inspect.isclass(expected_type):
            return value

        if issubclass(expected_type, Enum) and not isinstance(
            value, expected_type
        ):
            try:
                return expected_type(value)
            except ValueError:
                if isinstance(value, str) and value.upper() in (
                    expected_type.__members__
                ):
                    return expected_type.__members__[value.upper()]
                raise

        if isinstance(value, dict) and callable(
            getattr(expected_type, "from_dict", None)
        ):
            return expected_type.from_dict(value)

        try:
            if expected_type is int and isinstance(value, str):
                return int(value)
            if expected_type is str and isinstance(value, (int, float)):
                return str(value)
            if expected_type is bytes and isinstance(value, str):
                return value.encode()
            if expected_type is bool and isinstance(value, str):
                return value.lower() in ("1", "true", "y", "yes")
        except (ValueError, TypeError):
            pass  # leave the value for the callee to reject

        return value

    @staticmethod
    def convert_args(method: Any, args: dict) -> dict:
        sig = inspect.signature(method)
        converted_args: dict = {}

        hints = get_type_hints(method)
        for param_name in sig.parameters:
            if param_name in args:
                converted_args[param_name] = TypeConverter.convert_value(
                    args[param_name], hints.get(param_name, None)
                )

        return args | converted_args
