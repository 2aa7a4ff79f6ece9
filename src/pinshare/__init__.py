# File: src/pinshare/__init__.py

from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from .client import FileService
from .config import get_settings, ServiceConfig, DatabaseConfig, PinataConfig, UploadConfig, AuthConfig, RetentionConfig
from .repositories import FileRepository, PermissionRepository, PinataRepository, UserRepository
from .exceptions import *


def create_file_service(
    config: Optional[ServiceConfig] = None,
    pin_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FileService:
    """
    Builds a FileService and everything it depends on.

    :param config: Explicit configuration. Environment settings are used when omitted.
    :param pin_transport: Optional httpx transport for the Pinata client (tests plug a mock in here).
    """
    if config is None:
        config = get_settings().to_service_config()

    engine_kwargs = {}
    if config.database.is_postgres:
        engine_kwargs = dict(
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
            pool_timeout=config.database.pool_timeout,
            pool_recycle=config.database.pool_recycle,
            pool_pre_ping=True,
            connect_args={"server_settings": {"application_name": config.database.application_name}},
        )
    engine = create_async_engine(config.database.get_dsn(), **engine_kwargs)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    return FileService(
        config=config,
        engine=engine,
        file_repo=FileRepository(session_factory),
        user_repo=UserRepository(session_factory),
        permission_repo=PermissionRepository(session_factory),
        pin_repo=PinataRepository(config.pinata, transport=pin_transport),
    )


__all__ = [
    "FileService", "create_file_service",
    "ServiceConfig", "DatabaseConfig", "PinataConfig", "UploadConfig", "AuthConfig", "RetentionConfig",
    "PinShareError", "NotFoundError", "FileRecordNotFoundError", "DatabaseError", "PinServiceError",
]
