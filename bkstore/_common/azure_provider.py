from __future__ import annotations

import asyncio
import base64
import binascii
import ssl
import weakref
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl

import httpx
from pydantic import ConfigDict

from bkstore.core import DataModel, Provider
from bkstore.core.exceptions import BadRequestError

from .azure_auth import (
    BearerSigner,
    CredentialCache,
    SasSigner,
    SharedKeySigner,
    Signer,
)
from .azure_request import RequestDispatcher, render_query

DEFAULT_ENDPOINT = "blob.core.windows.net"
DEFAULT_BLOCK_SIZE = 4 * 1024 * 1024


class AzureKeyType(str, Enum):
    SHARED = "shared"
    SAS = "sas"
    AUTO = "auto"


class AzureUriStyle(str, Enum):
    HOST = "host"
    PATH = "path"


class AzureConfig(DataModel):
    """Immutable connection settings for one container."""

    model_config = ConfigDict(frozen=True)

    account: str
    container: str
    key_type: AzureKeyType
    shared_key: bytes | None = None
    sas: dict[str, str] | None = None
    host: str
    port: int = 443
    path_prefix: str
    block_size: int = DEFAULT_BLOCK_SIZE
    tag: str | None = None
    timeout: float = 60
    verify_peer: bool = True
    ca_file: str | None = None
    ca_path: str | None = None

    @staticmethod
    def create(
        account: str | None,
        container: str | None,
        key_type: AzureKeyType | str,
        key: str | None = None,
        endpoint: str = DEFAULT_ENDPOINT,
        uri_style: AzureUriStyle | str = AzureUriStyle.HOST,
        port: int = 443,
        block_size: int = DEFAULT_BLOCK_SIZE,
        tag: dict[str, str] | None = None,
        timeout: float = 60,
        verify_peer: bool = True,
        ca_file: str | None = None,
        ca_path: str | None = None,
    ) -> AzureConfig:
        if not account:
            raise BadRequestError("account is required")
        if not container:
            raise BadRequestError("container is required")
        if block_size <= 0:
            raise BadRequestError("block size must be greater than zero")
        try:
            key_type = AzureKeyType(key_type)
            uri_style = AzureUriStyle(uri_style)
        except ValueError as e:
            raise BadRequestError(str(e)) from e

        shared_key = None
        sas = None
        if key_type != AzureKeyType.AUTO and not key:
            raise BadRequestError(f"key is required for {key_type.value} key")
        if key_type == AzureKeyType.SHARED:
            try:
                shared_key = base64.b64decode(key, validate=True)
            except binascii.Error as e:
                raise BadRequestError(f"invalid shared key: {e}") from e
        elif key_type == AzureKeyType.SAS:
            sas = dict(parse_qsl(key.lstrip("?"), keep_blank_values=True))

        if uri_style == AzureUriStyle.HOST:
            host = f"{account}.{endpoint}"
            path_prefix = f"/{container}"
        else:
            host = endpoint
            path_prefix = f"/{account}/{container}"

        return AzureConfig(
            account=account,
            container=container,
            key_type=key_type,
            shared_key=shared_key,
            sas=sas,
            host=host,
            port=port,
            path_prefix=path_prefix,
            block_size=block_size,
            tag=render_query(tag) if tag else None,
            timeout=timeout,
            verify_peer=verify_peer,
            ca_file=ca_file,
            ca_path=ca_path,
        )


class AzureProvider(Provider):
    """Connection handling shared by Azure storage providers.

    One httpx client is kept per event loop so the provider can be used
    both from the caller's loop and from the background loop that serves
    sync calls.
    """

    config: AzureConfig
    retries: int
    nparams: dict[str, Any]
    cache: CredentialCache | None
    dispatcher: RequestDispatcher

    _clients: weakref.WeakKeyDictionary
    _credential_clients: weakref.WeakKeyDictionary

    def __init__(
        self,
        account: str | None = None,
        container: str | None = None,
        key_type: AzureKeyType | str = AzureKeyType.SHARED,
        key: str | None = None,
        endpoint: str = DEFAULT_ENDPOINT,
        uri_style: AzureUriStyle | str = AzureUriStyle.HOST,
        port: int = 443,
        block_size: int = DEFAULT_BLOCK_SIZE,
        tag: dict[str, str] | None = None,
        timeout: float = 60,
        verify_peer: bool = True,
        ca_file: str | None = None,
        ca_path: str | None = None,
        retries: int = 0,
        nparams: dict[str, Any] = dict(),
        **kwargs,
    ):
        self.config = AzureConfig.create(
            account=account,
            container=container,
            key_type=key_type,
            key=key,
            endpoint=endpoint,
            uri_style=uri_style,
            port=port,
            block_size=block_size,
            tag=tag,
            timeout=timeout,
            verify_peer=verify_peer,
            ca_file=ca_file,
            ca_path=ca_path,
        )
        self.retries = retries
        self.nparams = nparams
        self.cache = None
        self._clients = weakref.WeakKeyDictionary()
        self._credential_clients = weakref.WeakKeyDictionary()
        self.dispatcher = RequestDispatcher(
            host=self.config.host,
            port=self.config.port,
            path_prefix=self.config.path_prefix,
            signer=self._create_signer(),
            client=self._get_client,
            tag=self.config.tag,
        )
        super().__init__(**kwargs)

    def _create_signer(self) -> Signer:
        config = self.config
        if config.key_type == AzureKeyType.SHARED:
            return SharedKeySigner(
                host=config.host,
                account=config.account,
                key=config.shared_key or b"",
            )
        if config.key_type == AzureKeyType.SAS:
            return SasSigner(host=config.host, sas=config.sas or dict())
        self.cache = CredentialCache(
            host=config.host,
            timeout=config.timeout,
            client=self._get_credential_client,
        )
        return BearerSigner(host=config.host, cache=self.cache)

    def _get_verify(self) -> ssl.SSLContext | bool:
        if not self.config.verify_peer:
            return False
        if self.config.ca_file or self.config.ca_path:
            return ssl.create_default_context(
                cafile=self.config.ca_file, capath=self.config.ca_path
            )
        return True

    def _get_client(self) -> httpx.AsyncClient:
        loop = asyncio.get_running_loop()
        client = self._clients.get(loop)
        if client is None:
            params = dict(self.nparams)
            if "transport" not in params:
                params["transport"] = httpx.AsyncHTTPTransport(
                    verify=self._get_verify(), retries=self.retries
                )
            client = httpx.AsyncClient(
                timeout=self.config.timeout, **params
            )
            self._clients[loop] = client
        return client

    def _get_credential_client(self) -> httpx.AsyncClient:
        loop = asyncio.get_running_loop()
        client = self._credential_clients.get(loop)
        if client is None:
            params = dict(self.nparams)
            if "transport" not in params:
                params["transport"] = httpx.AsyncHTTPTransport(
                    retries=self.retries
                )
            client = httpx.AsyncClient(
                timeout=self.config.timeout, **params
            )
            self._credential_clients[loop] = client
        return client

    async def aclose(self) -> None:
        loop = asyncio.get_running_loop()
        for clients in (self._clients, self._credential_clients):
            client = clients.pop(loop, None)
            if client is not None:
                await client.aclose()
