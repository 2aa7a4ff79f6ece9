from typing import Optional


class PinShareError(Exception):
    """Base class."""


class InvalidInputError(PinShareError):
    """Malformed or missing request data; the caller can fix it."""


class AuthenticationError(PinShareError):
    """Missing token or wrong credentials."""


class InvalidTokenError(AuthenticationError):
    """Token present but undecodable, expired, or pointing to a deleted account."""


class PayloadTooLargeError(InvalidInputError):
    pass


class AccessDeniedError(PinShareError):
    pass


class NotFoundError(PinShareError):
    pass


class FileRecordNotFoundError(NotFoundError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class DuplicateResourceError(PinShareError):
    pass


class DatabaseError(PinShareError):
    pass


class StagingIOError(PinShareError):
    """Local filesystem failure while staging or inspecting an upload."""


class PinServiceError(PinShareError):
    """The pinning gateway rejected the call or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class PinServiceConfigError(PinServiceError):
    pass


class DuplicateAccountError(DuplicateResourceError):
    """Username or email already registered."""
