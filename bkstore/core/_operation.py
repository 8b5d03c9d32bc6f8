from __future__ import annotations

from typing import Any

from .data_model import DataModel


class Operation(DataModel):
    """A component call routed to a provider.

    Attributes:
        name: Operation name, without the "a" prefix of async calls.
        args: Arguments the caller passed. Unset (None) arguments are
            left out so provider defaults apply.
    """

    name: str | None = None
    args: dict[str, Any] | None = None

    @staticmethod
    def from_call(name: str, arguments: dict[str, Any]) -> Operation:
        args: dict[str, Any] = dict()
        for key, value in arguments.items():
            if key == "self":
                continue
            if key == "kwargs":
                args.update(value)
            elif value is not None:
                args[key] = value
        return Operation(name=name, args=args)

    def __str__(self) -> str:
        args = ", ".join(
            f"{key}={value!r}" for key, value in (self.args or {}).items()
        )
        return f"{self.name}({args})"
