"""
Request authentication for Azure Blob Storage.

Three schemes are supported: shared key signing, SAS query parameters
and bearer tokens fetched from the instance metadata endpoint.
"""

from __future__ import annotations

__all__ = [
    "AccessToken",
    "BearerSigner",
    "CredentialCache",
    "SasSigner",
    "SharedKeySigner",
    "Signer",
]

import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Callable

import httpx

from bkstore.core import DataModel
from bkstore.core.exceptions import FormatError, RequestError

logger = logging.getLogger(__name__)

HEADER_AUTHORIZATION = "authorization"
HEADER_CONTENT_LENGTH = "content-length"
HEADER_CONTENT_MD5 = "content-md5"
HEADER_DATE = "date"
HEADER_HOST = "host"
HEADER_RANGE = "range"
HEADER_VERSION = "x-ms-version"

VERSION_SHARED = "2019-12-12"
VERSION_AUTO = "2024-08-04"

CREDENTIAL_HOST = "169.254.169.254"
CREDENTIAL_PORT = 80
CREDENTIAL_PATH = "/metadata/identity/oauth2/token"
CREDENTIAL_API_VERSION = "2018-02-01"


class Signer:
    """Adds authentication to an outgoing request.

    Signers mutate the header (and for SAS the query) dict in place.
    """

    host: str

    def __init__(self, host: str):
        self.host = host

    async def sign(
        self,
        verb: str,
        path: str,
        query: dict[str, str],
        date: str,
        headers: dict[str, str],
    ) -> None:
        headers[HEADER_HOST] = self.host


class SharedKeySigner(Signer):
    account: str
    key: bytes

    def __init__(self, host: str, account: str, key: bytes):
        self.account = account
        self.key = key
        super().__init__(host)

    def string_to_sign(
        self,
        verb: str,
        path: str,
        query: dict[str, str],
        date: str,
        headers: dict[str, str],
    ) -> str:
        canonical_headers = "".join(
            f"{name}:{headers[name]}\n"
            for name in sorted(headers)
            if name.startswith("x-ms-")
        )
        canonical_query = "".join(
            f"\n{key}:{query[key]}" for key in sorted(query)
        )
        content_length = headers[HEADER_CONTENT_LENGTH]
        return (
            f"{verb}\n"
            "\n"
            "\n"
            f"{'' if content_length == '0' else content_length}\n"
            f"{headers.get(HEADER_CONTENT_MD5, '')}\n"
            "\n"
            f"{date}\n"
            "\n"
            "\n"
            "\n"
            "\n"
            f"{headers.get(HEADER_RANGE, '')}\n"
            f"{canonical_headers}"
            f"/{self.account}{path}"
            f"{canonical_query}"
        )

    async def sign(
        self,
        verb: str,
        path: str,
        query: dict[str, str],
        date: str,
        headers: dict[str, str],
    ) -> None:
        await super().sign(verb, path, query, date, headers)
        headers[HEADER_DATE] = date
        headers[HEADER_VERSION] = VERSION_SHARED
        message = self.string_to_sign(verb, path, query, date, headers)
        digest = hmac.new(
            self.key, message.encode("utf-8"), hashlib.sha256
        ).digest()
        signature = base64.b64encode(digest).decode("ascii")
        headers[HEADER_AUTHORIZATION] = (
            f"SharedKey {self.account}:{signature}"
        )


class SasSigner(Signer):
    sas: dict[str, str]

    def __init__(self, host: str, sas: dict[str, str]):
        self.sas = sas
        super().__init__(host)

    async def sign(
        self,
        verb: str,
        path: str,
        query: dict[str, str],
        date: str,
        headers: dict[str, str],
    ) -> None:
        await super().sign(verb, path, query, date, headers)
        query.update(self.sas)


class BearerSigner(Signer):
    cache: CredentialCache
    clock: Callable[[], float]

    def __init__(
        self,
        host: str,
        cache: CredentialCache,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.clock = clock
        super().__init__(host)

    async def sign(
        self,
        verb: str,
        path: str,
        query: dict[str, str],
        date: str,
        headers: dict[str, str],
    ) -> None:
        await super().sign(verb, path, query, date, headers)
        token = await self.cache.ensure_token(self.clock())
        headers[HEADER_VERSION] = VERSION_AUTO
        headers[HEADER_AUTHORIZATION] = f"Bearer {token}"


class AccessToken(DataModel):
    token: str
    """Bearer token."""

    expiry: float
    """Epoch seconds after which the token must be refetched."""


class CredentialCache:
    """Bearer token fetched from the managed identity endpoint.

    The stored expiry is brought forward by twice the request timeout so
    a token never lapses while a request using it is in flight.
    """

    host: str
    timeout: float
    client: Callable[[], httpx.AsyncClient]
    fetches: int

    _token: AccessToken | None

    def __init__(
        self,
        host: str,
        timeout: float,
        client: Callable[[], httpx.AsyncClient],
    ):
        self.host = host
        self.timeout = timeout
        self.client = client
        self.fetches = 0
        self._token = None

    @property
    def token(self) -> AccessToken | None:
        return self._token

    async def ensure_token(self, now: float) -> str:
        if self._token is None or now >= self._token.expiry:
            self._token = await self._fetch(now)
        return self._token.token

    async def _fetch(self, now: float) -> AccessToken:
        url = f"http://{CREDENTIAL_HOST}:{CREDENTIAL_PORT}{CREDENTIAL_PATH}"
        query = {
            "api-version": CREDENTIAL_API_VERSION,
            "resource": f"https://{self.host}",
        }
        self.fetches += 1
        response = await self.client().get(
            url, params=query, headers={"Metadata": "true"}
        )
        if not response.is_success:
            raise RequestError(
                verb="GET",
                path=CREDENTIAL_PATH,
                status_code=response.status_code,
                reason=response.reason_phrase,
                query=query,
                response_headers=dict(response.headers),
                content=response.text,
            )
        try:
            credential = json.loads(response.content)
        except ValueError as e:
            raise FormatError(f"invalid credential response: {e}") from e
        if not isinstance(credential, dict):
            raise FormatError("invalid credential response")

        access_token = credential.get("access_token")
        if access_token is None:
            raise FormatError("access token missing")
        expires_in = credential.get("expires_in")
        if expires_in is None:
            raise FormatError("expiry missing")
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError) as e:
            raise FormatError(f"invalid expiry '{expires_in}'") from e

        token = AccessToken(
            token=access_token,
            expiry=now + expires_in - self.timeout * 2,
        )
        logger.debug("access token refreshed, expires at %s", token.expiry)
        return token
