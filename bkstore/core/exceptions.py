from __future__ import annotations

__all__ = [
    "BaseError",
    "BadRequestError",
    "ForbiddenError",
    "FormatError",
    "LoadError",
    "NotFoundError",
    "NotSupportedError",
    "RequestError",
]

from typing import Any


class BaseError(Exception):
    status_code: int


class BadRequestError(BaseError):
    status_code = 400


class ForbiddenError(BaseError):
    status_code = 403


class NotFoundError(BaseError):
    status_code = 404


class NotSupportedError(BaseError):
    status_code = 415


class FormatError(BaseError):
    """Remote payload could not be decoded."""

    status_code = 502


class RequestError(BaseError):
    """Remote service answered with a status that was not expected.

    Carries enough of the request and response for diagnostics. Header
    and query values passed in must already be redacted.
    """

    verb: str
    path: str
    query: dict[str, str]
    request_headers: dict[str, str]
    reason: str
    response_headers: dict[str, str]
    content: str

    def __init__(
        self,
        verb: str,
        path: str,
        status_code: int,
        reason: str = "",
        query: dict[str, str] | None = None,
        request_headers: dict[str, str] | None = None,
        response_headers: dict[str, str] | None = None,
        content: str = "",
    ):
        self.verb = verb
        self.path = path
        self.status_code = status_code
        self.reason = reason
        self.query = query or dict()
        self.request_headers = request_headers or dict()
        self.response_headers = response_headers or dict()
        self.content = content
        super().__init__(self._render())

    def _render(self) -> str:
        lines = [
            f"HTTP request failed with {self.status_code} ({self.reason}):",
            "*** Path/Query ***:",
            f"{self.verb} {self.path}{self._render_query()}",
        ]
        if self.request_headers:
            lines.append("*** Request Headers ***:")
            lines.extend(_render_kv(self.request_headers))
        if self.response_headers:
            lines.append("*** Response Headers ***:")
            lines.extend(_render_kv(self.response_headers))
        if self.content:
            lines.append("*** Response Content ***:")
            lines.append(self.content)
        return "\n".join(lines)

    def _render_query(self) -> str:
        if not self.query:
            return ""
        return "?" + "&".join(
            f"{key}={value}" for key, value in sorted(self.query.items())
        )


class LoadError(Exception):
    status_code = 500


def _render_kv(values: dict[str, Any]) -> list[str]:
    return [f"{key}: {value}" for key, value in sorted(values.items())]
