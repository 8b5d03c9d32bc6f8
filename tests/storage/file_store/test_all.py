# type: ignore
import pytest

from bkstore.storage.file_store import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    NotSupportedError,
    RequestError,
    StorageInfoLevel,
    StorageType,
)

from ._data import files, list_results
from ._providers import (
    ACCOUNT,
    CONTAINER,
    FileStoreProvider,
    all_providers,
    get_service,
)
from ._sync_and_async_client import FileStoreSyncAndAsyncClient


def seed(service, prefix=""):
    for name, content in files.items():
        service.add(f"{prefix}{name}", content)


def list_requests(service):
    return [
        request
        for request in service.requests
        if request.url.params.get("comp") == "list"
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_info(provider_type: str, async_call: bool):
    service = get_service(provider_type)
    seed(service)
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    response = await client.info(file="backup.info")
    result = response.result
    assert result.exists is True
    assert result.type == StorageType.FILE
    assert result.size == len(files["backup.info"])
    assert result.time_modified == service.now

    response = await client.info(
        file="/backup.info", level=StorageInfoLevel.EXISTS
    )
    result = response.result
    assert result.exists is True
    assert result.size is None

    response = await client.info(file="missing.info", ignore_missing=True)
    assert response.result.exists is False

    with pytest.raises(NotFoundError):
        await client.info(file="missing.info")

    response = await client.exists(file="backup.info")
    assert response.result is True
    response = await client.exists(file="archive")
    assert response.result is False


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_list(provider_type: str, async_call: bool):
    service = get_service(provider_type)
    seed(service)
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    for path, expected in list_results.items():
        response = await client.list(path=path, level=StorageInfoLevel.TYPE)
        result = [(info.name, info.type.value) for info in response.result]
        assert result == expected

    response = await client.list(path="archive/0000000100000000")
    result = response.result
    assert [info.name for info in result] == [
        "000000010000000000000001",
        "000000010000000000000002",
    ]
    assert [info.size for info in result] == [64, 32]
    assert all(info.time_modified == service.now for info in result)

    response = await client.list(path="/missing")
    assert response.result == []

    query = list_requests(service)[0].url.params
    assert query["delimiter"] == "/"
    assert query["restype"] == "container"
    assert "prefix" not in query
    query = list_requests(service)[1].url.params
    assert query["prefix"] == "archive/"


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_list_expression(provider_type: str, async_call: bool):
    service = get_service(provider_type)
    seed(service)
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    response = await client.list(path="/", expression="^backup\\.info")
    result = [info.name for info in response.result]
    assert result == ["backup.info", "backup.info.copy"]
    assert list_requests(service)[-1].url.params["prefix"] == "backup"

    response = await client.list(path="/archive", expression="^0+1\\.")
    result = [info.name for info in response.result]
    assert result == ["00000001.history"]
    assert list_requests(service)[-1].url.params["prefix"] == "archive/0"

    response = await client.list(path="/", expression="info$")
    result = [info.name for info in response.result]
    assert result == ["backup.info"]
    assert "prefix" not in list_requests(service)[-1].url.params


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_list_pages(provider_type: str, async_call: bool):
    service = get_service(provider_type, page_size=2)
    seed(service)
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    response = await client.list(path="/", level=StorageInfoLevel.TYPE)
    result = [info.name for info in response.result]
    # Paths come before files within each page
    assert result == [
        "archive",
        "backup.info",
        "backup",
        "backup.info.copy",
        "other",
    ]
    requests = list_requests(service)
    assert len(requests) == 3
    assert "marker" not in requests[0].url.params
    assert requests[1].url.params["marker"] == "backup.info.copy"
    assert requests[2].url.params["marker"] == "other/"


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_read(provider_type: str, async_call: bool):
    service = get_service(provider_type)
    service.add("data/file.bin", b"0123456789")
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    result = await client.read("data/file.bin")
    assert result == b"0123456789"
    assert "range" not in service.requests[-1].headers

    result = await client.read("data/file.bin", offset=2, limit=3)
    assert result == b"234"
    assert service.requests[-1].headers["range"] == "bytes=2-4"

    result = await client.read("data/file.bin", offset=7)
    assert result == b"789"
    assert service.requests[-1].headers["range"] == "bytes=7-"

    count = len(service.requests)
    result = await client.read("data/file.bin", limit=0)
    assert result == b""
    assert len(service.requests) == count

    result = await client.read("data/missing.bin", ignore_missing=True)
    assert result is None

    with pytest.raises(NotFoundError):
        await client.read("data/missing.bin")

    response = await client.get("data/file.bin")
    assert response.result == b"0123456789"
    response = await client.get("data/missing.bin", ignore_missing=True)
    assert response.result is None


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_write(provider_type: str, async_call: bool):
    service = get_service(provider_type)
    client = FileStoreSyncAndAsyncClient(
        provider_type, service, async_call, block_size=4
    )

    handle = await client.write("data/twelve", [b"abcdef", b"ghijkl"])
    assert service.blobs["data/twelve"].content == b"abcdefghijkl"
    assert len(handle.block_ids) == 3
    assert handle.block_ids == sorted(set(handle.block_ids))
    assert all(len(block_id) == 24 for block_id in handle.block_ids)
    commits = [
        request
        for request in service.requests
        if request.url.params.get("comp") == "blocklist"
    ]
    assert len(commits) == 1
    assert commits[0].url.path.endswith("/data/twelve")

    handle = await client.write("data/ten", [b"0123456789"])
    assert service.blobs["data/ten"].content == b"0123456789"
    assert len(handle.block_ids) == 3
    first = int(handle.block_ids[0][:16], 16)

    count = len(service.requests)
    handle = await client.write("data/empty", [])
    assert service.blobs["data/empty"].content == b""
    assert handle.block_ids == []
    assert len(service.requests) == count + 1
    assert service.requests[-1].url.params["comp"] == "blocklist"

    handle = await client.write("data/next", [b"x"])
    assert int(handle.block_ids[0][:16], 16) == first + 2

    response = await client.put("data/put", b"put content")
    assert response.result is None
    response = await client.get("data/put")
    assert response.result == b"put content"


@pytest.mark.asyncio
@pytest.mark.parametrize("async_call", [False, True])
async def test_write_tags(async_call: bool):
    provider_type = FileStoreProvider.AZURE_BLOB_STORAGE_SHARED
    service = get_service(provider_type)
    client = FileStoreSyncAndAsyncClient(
        provider_type,
        service,
        async_call,
        block_size=2,
        tag={"retention": "full backup", "owner": "dba"},
    )

    await client.write("tagged", [b"abc"])
    assert service.blobs["tagged"].tags == "owner=dba&retention=full%20backup"
    for request in service.requests:
        if request.url.params.get("comp") == "block":
            assert "x-ms-tags" not in request.headers


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_remove(provider_type: str, async_call: bool):
    service = get_service(provider_type)
    seed(service)
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    response = await client.remove(file="backup.info.copy")
    assert response.result is None
    assert "backup.info.copy" not in service.blobs

    await client.remove(file="backup.info.copy")

    with pytest.raises(NotSupportedError):
        await client.remove(file="backup.info", error_on_missing=True)
    assert "backup.info" in service.blobs


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_path_remove(provider_type: str, async_call: bool):
    service = get_service(provider_type, page_size=2)
    seed(service)
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    response = await client.path_remove(path="/backup")
    assert response.result is True
    assert sorted(service.blobs) == sorted(
        name for name in files if not name.startswith("backup/")
    )
    deletes = [r for r in service.requests if r.method == "DELETE"]
    assert len(deletes) == 3
    query = list_requests(service)[0].url.params
    assert "delimiter" not in query
    assert query["prefix"] == "backup/"

    count = len(service.requests)
    response = await client.path_remove(path="/missing")
    assert response.result is True
    assert [r.method for r in service.requests[count:]] == ["GET"]

    response = await client.path_remove()
    assert response.result is True
    assert service.blobs == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("async_call", [False, True])
async def test_read_only(async_call: bool):
    provider_type = FileStoreProvider.AZURE_BLOB_STORAGE_SHARED
    service = get_service(provider_type)
    seed(service)
    client = FileStoreSyncAndAsyncClient(
        provider_type, service, async_call, write=False
    )

    response = await client.get("backup.info")
    assert response.result == files["backup.info"]

    with pytest.raises(ForbiddenError):
        await client.new_write("new.file")
    with pytest.raises(ForbiddenError):
        await client.remove("backup.info")
    with pytest.raises(ForbiddenError):
        await client.path_remove("/archive")
    assert sorted(service.blobs) == sorted(files)
    assert all(r.method in ("GET", "HEAD") for r in service.requests)


@pytest.mark.asyncio
@pytest.mark.parametrize("async_call", [False, True])
async def test_write_options(async_call: bool):
    provider_type = FileStoreProvider.AZURE_BLOB_STORAGE_SHARED
    service = get_service(provider_type)
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    for options in [
        {"truncate": False},
        {"user": "postgres"},
        {"group": "postgres"},
        {"mode": 0o640},
        {"time_modified": 1760000000.0},
    ]:
        with pytest.raises(NotSupportedError):
            await client.new_write("file", **options)
    assert service.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("async_call", [False, True])
async def test_paths(async_call: bool):
    provider_type = FileStoreProvider.AZURE_BLOB_STORAGE_SHARED
    service = get_service(provider_type)

    def path_expression(expression, path):
        if expression != "<REPO:ARCHIVE>":
            return None
        return "archive/16-1" if path is None else f"archive/16-1/{path}"

    client = FileStoreSyncAndAsyncClient(
        provider_type,
        service,
        async_call,
        path="/repo",
        path_expression=path_expression,
    )

    await client.put("backup.info", b"relative")
    await client.put("/repo/backup/backup.info", b"absolute")
    await client.put("<REPO:ARCHIVE>/archive.info", b"expression")
    assert service.blobs["repo/backup.info"].content == b"relative"
    assert service.blobs["repo/backup/backup.info"].content == b"absolute"
    assert (
        service.blobs["repo/archive/16-1/archive.info"].content
        == b"expression"
    )

    response = await client.list(path="<REPO:ARCHIVE>")
    assert [info.name for info in response.result] == ["archive.info"]

    response = await client.list()
    assert [info.name for info in response.result] == [
        "archive",
        "backup",
        "backup.info",
    ]

    with pytest.raises(BadRequestError):
        await client.info("/other/file")
    with pytest.raises(BadRequestError):
        await client.info("<REPO:BACKUP>/file")
    with pytest.raises(BadRequestError):
        await client.info("<REPO:ARCHIVE>file")


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_authentication(provider_type: str, async_call: bool):
    service = get_service(provider_type)
    seed(service)
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    await client.info("backup.info")
    await client.list("/archive")
    await client.get("backup.info")

    for request in service.requests:
        if provider_type == FileStoreProvider.AZURE_BLOB_STORAGE_SAS:
            assert "authorization" not in request.headers
            assert request.url.params["sig"] == "abc+def="
            assert request.url.params["sv"] == "2022-11-02"
        elif provider_type == FileStoreProvider.AZURE_BLOB_STORAGE_AUTO:
            assert request.headers["authorization"] == "Bearer test-token"
            assert request.headers["x-ms-version"] == "2024-08-04"
        else:
            assert request.headers["authorization"].startswith(
                f"SharedKey {ACCOUNT}:"
            )
            assert request.headers["x-ms-version"] == "2019-12-12"
            assert "date" in request.headers

    if provider_type == FileStoreProvider.AZURE_BLOB_STORAGE_AUTO:
        assert len(service.token_requests) == 1
        params = service.token_requests[0].url.params
        assert params["api-version"] == "2018-02-01"
        assert (
            params["resource"]
            == f"https://{ACCOUNT}.blob.core.windows.net"
        )
    else:
        assert service.token_requests == []

    request = service.requests[0]
    if provider_type == FileStoreProvider.AZURE_BLOB_STORAGE_PATH_STYLE:
        assert request.headers["host"] == "127.0.0.1"
        assert request.url.port == 10000
        assert request.url.path == f"/{ACCOUNT}/{CONTAINER}/backup.info"
    else:
        assert request.headers["host"] == f"{ACCOUNT}.blob.core.windows.net"
        assert request.url.path == f"/{CONTAINER}/backup.info"


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_type", all_providers)
@pytest.mark.parametrize("async_call", [False, True])
async def test_request_error(provider_type: str, async_call: bool):
    service = get_service(provider_type)
    seed(service)
    service.fail = lambda request: 503 if request.method == "HEAD" else None
    client = FileStoreSyncAndAsyncClient(provider_type, service, async_call)

    with pytest.raises(RequestError) as e:
        await client.info("backup.info")
    assert e.value.status_code == 503
    message = str(e.value)
    assert message.startswith("HTTP request failed with 503")
    assert "*** Path/Query ***" in message
    assert "*** Response Content ***" in message
    assert "InjectedFailure" in message
    if provider_type == FileStoreProvider.AZURE_BLOB_STORAGE_SAS:
        assert "sig=<redacted>" in message
        assert "abc+def=" not in message
    else:
        assert "authorization: <redacted>" in message

    service.fail = lambda request: (
        500 if request.url.params.get("comp") == "block" else None
    )
    client = FileStoreSyncAndAsyncClient(
        provider_type, service, async_call, block_size=2
    )
    with pytest.raises(RequestError):
        await client.write("failed", [b"abcdef"])
    assert "failed" not in service.blobs
