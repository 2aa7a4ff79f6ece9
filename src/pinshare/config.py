# File: src/pinshare/config.py

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


# --- 1. Database ---
class DatabaseConfig(BaseModel):
    user: str = "postgres"
    password: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    db: str = "pinshare"

    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    application_name: str = "pinshare"

    # Full SQLAlchemy URL, overrides the postgres fields (e.g. sqlite+aiosqlite for local runs)
    url: Optional[str] = None

    def get_dsn(self) -> str:
        """Builds the async SQLAlchemy DSN."""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"

    @property
    def is_postgres(self) -> bool:
        return self.get_dsn().startswith("postgresql")


# --- 2. Pinata pinning gateway ---
class PinataConfig(BaseModel):
    api_key: Optional[str] = None
    secret_key: Optional[str] = None
    jwt: Optional[str] = None
    api_url: str = "https://api.pinata.cloud"
    gateway_url: str = "https://gateway.pinata.cloud"
    timeout_seconds: float = 30.0
    cid_version: int = 0

    @property
    def is_configured(self) -> bool:
        return bool(self.jwt) or bool(self.api_key and self.secret_key)


# --- 3. Upload pipeline ---
class UploadConfig(BaseModel):
    staging_dir: Path = Path("uploads")
    max_upload_bytes: int = 10 * MIB
    chunk_size: int = MIB

    compression_enabled: bool = True
    small_file_threshold: int = MIB
    image_min_reduction: float = Field(0.10, ge=0, lt=1)
    generic_min_reduction: float = Field(0.20, ge=0, lt=1)
    image_quality: int = Field(80, ge=1, le=100)
    png_compress_level: int = Field(8, ge=0, le=9)


# --- 4. Tokens ---
class AuthConfig(BaseModel):
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60


# --- 5. Retention sweep ---
class RetentionConfig(BaseModel):
    enabled: bool = True
    max_age_days: int = 7
    interval_seconds: float = 24 * 60 * 60


# --- 6. One object that is passed explicitly to the components ---
class ServiceConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    pinata: PinataConfig = Field(default_factory=PinataConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)


# --- 7. Environment / .env ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PINSHARE_",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    pinata: PinataConfig = Field(default_factory=PinataConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)

    def to_service_config(self) -> ServiceConfig:
        return ServiceConfig(
            database=self.database,
            pinata=self.pinata,
            upload=self.upload,
            auth=self.auth,
            retention=self.retention,
        )


_cached_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Returns the settings singleton, created on first use so that importing
    the package never fails on a half-configured environment.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings


def reset_settings_cache() -> None:
    global _cached_settings
    _cached_settings = None
