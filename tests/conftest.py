import hashlib
from pathlib import Path
from typing import AsyncIterator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pinshare import FileService, create_file_service
from pinshare.config import (
    AuthConfig,
    DatabaseConfig,
    PinataConfig,
    RetentionConfig,
    ServiceConfig,
    UploadConfig,
)
from pinshare.db import UserORM
from pinshare.models import StagedUpload, UserCreate
from pinshare.pipeline.staging import staged_name
from pinshare.server.main import create_app


def _multipart_file_bytes(request: httpx.Request) -> bytes:
    """Pulls the `file` part out of a multipart body."""
    boundary = request.headers["content-type"].split("boundary=")[1].encode()
    for part in request.content.split(b"--" + boundary):
        head, _, body = part.partition(b"\r\n\r\n")
        if b'name="file"' in head:
            return body[: -len(b"\r\n")] if body.endswith(b"\r\n") else body
    raise AssertionError("multipart body has no file part")


class FakePinata:
    """
    In-memory stand-in for the Pinata API, served through httpx.MockTransport.
    The content address is derived from the pinned bytes, so identical
    content always gets the same address.
    """

    def __init__(self):
        self.pins: dict[str, bytes] = {}
        self.metadata: dict[str, str] = {}
        self.unpinned: list[str] = []
        self.pin_status: int = 200
        self.unpin_status: int = 200
        self.raise_on_pin: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if "pinata_api_key" not in request.headers and "authorization" not in request.headers:
            return httpx.Response(401, json={"error": "missing credentials"})

        path = request.url.path
        if path == "/data/testAuthentication":
            return httpx.Response(200, json={"message": "Congratulations!"})

        if path == "/pinning/pinFileToIPFS" and request.method == "POST":
            if self.raise_on_pin is not None:
                raise self.raise_on_pin
            if self.pin_status != 200:
                return httpx.Response(self.pin_status, json={"error": "upstream unavailable"})
            content = _multipart_file_bytes(request)
            cid = "Qm" + hashlib.sha256(content).hexdigest()[:44]
            self.pins[cid] = content
            return httpx.Response(200, json={"IpfsHash": cid, "PinSize": len(content), "Timestamp": "now"})

        if path.startswith("/pinning/unpin/") and request.method == "DELETE":
            cid = path.rsplit("/", 1)[-1]
            if self.unpin_status != 200:
                return httpx.Response(self.unpin_status, json={"error": "unpin failed"})
            self.pins.pop(cid, None)
            self.unpinned.append(cid)
            return httpx.Response(200, text="OK")

        return httpx.Response(404, json={"error": "no route"})


@pytest.fixture
def fake_pinata() -> FakePinata:
    return FakePinata()


@pytest.fixture
def service_config(tmp_path: Path) -> ServiceConfig:
    return ServiceConfig(
        database=DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'pinshare.sqlite'}"),
        pinata=PinataConfig(
            api_key="test-key",
            secret_key="test-secret",
            api_url="https://pinata.test",
            gateway_url="https://gateway.test",
        ),
        upload=UploadConfig(staging_dir=tmp_path / "uploads"),
        auth=AuthConfig(secret_key="test-signing-key"),
        retention=RetentionConfig(enabled=False),
    )


@pytest_asyncio.fixture
async def service(service_config: ServiceConfig, fake_pinata: FakePinata) -> AsyncIterator[FileService]:
    """
    A FileService wired exactly as in production, on a fresh SQLite
    database with the fake gateway behind the Pinata client.
    """
    svc = create_file_service(service_config, pin_transport=httpx.MockTransport(fake_pinata.handler))
    await svc.init_schema()
    yield svc
    await svc.aclose()


@pytest_asyncio.fixture
async def owner(service: FileService) -> UserORM:
    return await service.register_user(UserCreate(username="alice", email="Alice@Example.com", password="secret1"))


@pytest_asyncio.fixture
async def other_user(service: FileService) -> UserORM:
    return await service.register_user(UserCreate(username="bob", email="bob@example.com", password="secret2"))


@pytest.fixture
def make_staged(service_config: ServiceConfig) -> Callable[..., StagedUpload]:
    """Writes bytes into the staging directory the way the upload route does."""

    def _make(content: bytes, name: str = "notes.txt", mime_type: str = "text/plain") -> StagedUpload:
        staging_dir = service_config.upload.staging_dir
        staging_dir.mkdir(parents=True, exist_ok=True)
        path = staging_dir / staged_name(name)
        path.write_bytes(content)
        return StagedUpload(path=path, original_name=name, mime_type=mime_type, size=len(content))

    return _make


@pytest_asyncio.fixture
async def async_client(service: FileService) -> AsyncIterator[AsyncClient]:
    """HTTPX client bound to the FastAPI app."""
    app = create_app(service=service, start_sweeper=False)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def leftovers(service_config: ServiceConfig) -> Callable[[], list[Path]]:
    """Lists whatever is still sitting in the staging directory."""
    staging_dir = service_config.upload.staging_dir
    return lambda: list(staging_dir.iterdir()) if staging_dir.exists() else []
