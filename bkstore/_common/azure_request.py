from __future__ import annotations

__all__ = ["PendingOperation", "RequestDispatcher"]

import asyncio
import base64
import email.utils
import hashlib
import logging
from typing import Any, Callable
from urllib.parse import quote

import httpx

from bkstore.core.exceptions import RequestError

from .azure_auth import (
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_LENGTH,
    HEADER_CONTENT_MD5,
    HEADER_DATE,
    Signer,
)

logger = logging.getLogger(__name__)

HEADER_TAGS = "x-ms-tags"
REDACTED = "<redacted>"
REDACT_HEADERS = (HEADER_AUTHORIZATION, HEADER_DATE)
REDACT_QUERY = ("sig",)


def render_query(query: dict[str, str]) -> str:
    """Render a query dict as a sorted, URI-encoded query string."""
    return "&".join(
        f"{quote(key, safe='')}={quote(str(query[key]), safe='')}"
        for key in sorted(query)
    )


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    return {
        key: REDACTED if key.lower() in REDACT_HEADERS else value
        for key, value in headers.items()
    }


def redact_query(query: dict[str, str]) -> dict[str, str]:
    return {
        key: REDACTED if key in REDACT_QUERY else value
        for key, value in query.items()
    }


class PendingOperation:
    """Request that has been sent but whose response is not yet awaited.

    The issuer owns the handle: it must either pass it to
    RequestDispatcher.response or discard it.
    """

    verb: str
    path: str
    query: dict[str, str]
    headers: dict[str, str]
    task: asyncio.Task
    state: Any

    def __init__(
        self,
        verb: str,
        path: str,
        query: dict[str, str],
        headers: dict[str, str],
        task: asyncio.Task,
        state: Any = None,
    ):
        self.verb = verb
        self.path = path
        self.query = query
        self.headers = headers
        self.task = task
        self.state = state

    async def discard(self) -> None:
        if not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            except httpx.HTTPError as e:
                logger.debug("discarded request %s failed: %s", self, e)
            return
        if self.task.cancelled():
            return
        if self.task.exception() is not None:
            return
        await self.task.result().aclose()

    def __str__(self) -> str:
        return f"{self.verb} {self.path}"


class RequestDispatcher:
    """Builds, signs and sends requests to one container.

    Paths are relative to the container; the account/container prefix,
    content headers, tags and authentication are added here.
    """

    host: str
    port: int
    path_prefix: str
    tag: str | None
    signer: Signer
    client: Callable[[], httpx.AsyncClient]
    scheme: str

    def __init__(
        self,
        host: str,
        port: int,
        path_prefix: str,
        signer: Signer,
        client: Callable[[], httpx.AsyncClient],
        tag: str | None = None,
        scheme: str = "https",
    ):
        self.host = host
        self.port = port
        self.path_prefix = path_prefix
        self.signer = signer
        self.client = client
        self.tag = tag
        self.scheme = scheme

    async def request_async(
        self,
        verb: str,
        path: str | None = None,
        header: dict[str, str] | None = None,
        query: dict[str, str] | None = None,
        content: bytes | None = None,
        tag: bool = False,
    ) -> PendingOperation:
        path = self.path_prefix if path is None else f"{self.path_prefix}{path}"
        headers = dict(header or {})
        headers[HEADER_CONTENT_LENGTH] = (
            str(len(content)) if content else "0"
        )
        if content is not None:
            headers[HEADER_CONTENT_MD5] = base64.b64encode(
                hashlib.md5(content).digest()
            ).decode("ascii")
        if tag and self.tag is not None:
            headers[HEADER_TAGS] = self.tag

        path = quote(path, safe="/")
        query = dict(query or {})
        date = email.utils.formatdate(usegmt=True)
        await self.signer.sign(verb, path, query, date, headers)

        url = f"{self.scheme}://{self.host}:{self.port}{path}"
        if query:
            url = f"{url}?{render_query(query)}"
        logger.debug(
            "request %s %s query=%s headers=%s",
            verb,
            path,
            redact_query(query),
            redact_headers(headers),
        )

        client = self.client()
        request = client.build_request(
            verb, url, headers=headers, content=content
        )
        task = asyncio.ensure_future(client.send(request, stream=True))
        # Let the request go out before the caller continues
        await asyncio.sleep(0)
        return PendingOperation(
            verb=verb,
            path=path,
            query=redact_query(query),
            headers=redact_headers(headers),
            task=task,
        )

    async def response(
        self,
        pending: PendingOperation,
        allow_missing: bool = False,
        content_io: bool = False,
    ) -> httpx.Response:
        response = await pending.task
        if response.is_success or (
            allow_missing and response.status_code == 404
        ):
            if not content_io:
                await response.aread()
            return response

        await response.aread()
        raise RequestError(
            verb=pending.verb,
            path=pending.path,
            status_code=response.status_code,
            reason=response.reason_phrase,
            query=pending.query,
            request_headers=pending.headers,
            response_headers=redact_headers(dict(response.headers)),
            content=response.text,
        )

    async def request(
        self,
        verb: str,
        path: str | None = None,
        header: dict[str, str] | None = None,
        query: dict[str, str] | None = None,
        content: bytes | None = None,
        tag: bool = False,
        allow_missing: bool = False,
        content_io: bool = False,
    ) -> httpx.Response:
        pending = await self.request_async(
            verb,
            path=path,
            header=header,
            query=query,
            content=content,
            tag=tag,
        )
        try:
            return await self.response(
                pending, allow_missing=allow_missing, content_io=content_io
            )
        except BaseException:
            await pending.discard()
            raise
