# src/pinshare/server/main.py
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, FastAPI, File, Form, UploadFile, status
from fastapi.responses import RedirectResponse

from pinshare import create_file_service
from pinshare.client import FileService
from pinshare.config import ServiceConfig, get_settings
from pinshare.exceptions import InvalidInputError
from pinshare.logging import configure as configure_logging
from pinshare.models import (
    AuthResponse,
    FileListResponse,
    FileMetadata,
    MessageResponse,
    ProfileResponse,
    ShareRequest,
    UploadResponse,
    UserCreate,
    UserLogin,
    UserSummary,
)
from pinshare.pipeline import stage_upload
from .auth import CurrentUser, Service, issue_token
from .errors import register_error_handlers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/health")
async def health():
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


# --- Accounts ---

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: UserCreate, service: Service):
    user = await service.register_user(body)
    return AuthResponse(
        message="User created successfully",
        token=issue_token(user, service.config.auth),
        user=UserSummary.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(body: UserLogin, service: Service):
    user = await service.authenticate(body.email, body.password)
    return AuthResponse(
        message="Login successful",
        token=issue_token(user, service.config.auth),
        user=UserSummary.model_validate(user),
    )


@router.get("/profile", response_model=ProfileResponse)
async def profile(current_user: CurrentUser, service: Service):
    return ProfileResponse(user=await service.get_profile(current_user.id))


# --- Files ---

@router.post("/upload", response_model=UploadResponse)
async def upload(
    current_user: CurrentUser,
    service: Service,
    file: Annotated[Optional[UploadFile], File()] = None,
    is_public: Annotated[bool, Form(alias="isPublic")] = False,
    description: Annotated[str, Form()] = "",
):
    """
    Stages the multipart body on local disk and hands it to the upload
    pipeline. The pipeline removes the staged file whatever happens.
    """
    if file is None or not file.filename:
        raise InvalidInputError("No file uploaded")

    upload_cfg = service.config.upload
    staged = await stage_upload(file, upload_cfg.staging_dir, upload_cfg.max_upload_bytes, upload_cfg.chunk_size)
    record = await service.upload_file(staged, current_user.id, is_public=is_public, description=description)
    return UploadResponse(file=record)


@router.get("/file/{ipfs_hash}")
async def download(ipfs_hash: str, current_user: CurrentUser, service: Service):
    url = await service.download_url_for_user(ipfs_hash, current_user.id)
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/metadata/{ipfs_hash}", response_model=FileMetadata)
async def metadata(ipfs_hash: str, current_user: CurrentUser, service: Service):
    return await service.get_file_for_user(ipfs_hash, current_user.id)


@router.get("/files", response_model=FileListResponse)
async def list_files(current_user: CurrentUser, service: Service):
    return FileListResponse(files=await service.list_user_files(current_user.id))


@router.get("/public-files", response_model=FileListResponse)
async def list_public_files(service: Service):
    return FileListResponse(files=await service.list_public_files(limit=50))


@router.post("/share/{ipfs_hash}", response_model=MessageResponse)
async def share(ipfs_hash: str, body: ShareRequest, current_user: CurrentUser, service: Service):
    await service.share_file(ipfs_hash, current_user.id, body.user_ids)
    return MessageResponse(message="File shared successfully")


@router.delete("/file/{ipfs_hash}", response_model=MessageResponse)
async def delete(ipfs_hash: str, current_user: CurrentUser, service: Service):
    await service.delete_file(ipfs_hash, current_user.id)
    return MessageResponse(message="File deleted successfully")


# --- Application factory ---

def create_app(
    config: Optional[ServiceConfig] = None,
    service: Optional[FileService] = None,
    start_sweeper: Optional[bool] = None,
) -> FastAPI:
    """
    Builds the ASGI app. The service is attached to `app.state` right away so
    the routes work even when the server does not run the lifespan.
    """
    owns_service = service is None
    if service is None:
        service = create_file_service(config)
    if start_sweeper is None:
        start_sweeper = service.config.retention.enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper_task = None
        if start_sweeper:
            sweeper_task = asyncio.create_task(service.sweeper.run_forever())
        try:
            yield
        finally:
            if sweeper_task is not None:
                sweeper_task.cancel()
                with suppress(asyncio.CancelledError):
                    await sweeper_task
            if owns_service:
                await service.aclose()

    app = FastAPI(title="PinShare API", lifespan=lifespan)
    app.state.file_service = service
    register_error_handlers(app)

    @app.get("/")
    async def root():
        return {"message": "IPFS File Sharing Backend API"}

    app.include_router(router)
    return app


def app_from_env() -> FastAPI:
    """Entry point for `uvicorn --factory pinshare.server.main:app_from_env`."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return create_app(settings.to_service_config())
