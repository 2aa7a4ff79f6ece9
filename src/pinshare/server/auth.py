from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from pinshare.client import FileService
from pinshare.config import AuthConfig
from pinshare.db import UserORM
from pinshare.exceptions import AuthenticationError, InvalidTokenError

# --- 1. Configuration ---
# auto_error is off so that a missing token (401) and a bad token (403) can be told apart.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


# --- 2. Token payload ---
class TokenData(BaseModel):
    sub: str
    email: Optional[str] = None


# --- 3. Helpers ---
def create_access_token(data: dict, config: AuthConfig) -> str:
    """Signs a JWT that expires after the configured lifetime."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=config.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.secret_key, algorithm=config.algorithm)


def issue_token(user: UserORM, config: AuthConfig) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email}, config)


def decode_token(token: str, config: AuthConfig) -> TokenData:
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
        return TokenData(sub=payload["sub"], email=payload.get("email"))
    except (JWTError, KeyError, ValueError) as e:
        raise InvalidTokenError("Invalid or expired token") from e


# --- 4. FastAPI dependencies ---
def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


async def get_current_user(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> UserORM:
    """
    Guard for protected endpoints.

    1. No bearer token -> 401.
    2. Bad signature, expired, or malformed payload -> 403.
    3. Token for an account that no longer exists -> 403.
    """
    if not token:
        raise AuthenticationError("Access token required")

    token_data = decode_token(token, service.config.auth)
    try:
        user_id = UUID(token_data.sub)
    except ValueError as e:
        raise InvalidTokenError("Invalid or expired token") from e

    user = await service.get_user_by_id(user_id)
    if user is None:
        raise InvalidTokenError("Invalid or expired token")
    return user


CurrentUser = Annotated[UserORM, Depends(get_current_user)]
Service = Annotated[FileService, Depends(get_file_service)]
