"""
Closed error taxonomy shared by every layer.

Each failure that may reach a caller is a ``ServiceError`` subclass carrying
an ``ErrorCode``, an HTTP status and a human-readable message.  The HTTP
layer renders ``ServiceError.envelope`` verbatim.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from utils.schemas import ErrorEnvelope, Role


class ErrorCode(str, Enum):
    AUTH_REAUTH = "AUTH_REAUTH"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    NOT_FOUND_OR_FORBIDDEN = "NOT_FOUND_OR_FORBIDDEN"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    CREDENTIALS_NOT_FOUND = "CREDENTIALS_NOT_FOUND"
    INTEGRITY_ERROR = "INTEGRITY_ERROR"
    ROLE_REQUIRED = "ROLE_REQUIRED"


class ServiceError(Exception):
    """Base class for every failure surfaced to callers."""

    code: ErrorCode = ErrorCode.PROVIDER_ERROR
    http_status: int = 500

    def __init__(self, message: str, *, code: Optional[ErrorCode] = None, http_status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status

    @property
    def envelope(self) -> ErrorEnvelope:
        return ErrorEnvelope(code=self.code.value, http_status=self.http_status, message=self.message)


class RemoteAPIError(ServiceError):
    """A Classroom API failure that has already been translated."""

    def __init__(self, envelope: ErrorEnvelope):
        super().__init__(
            envelope.message,
            code=ErrorCode(envelope.code),
            http_status=envelope.http_status,
        )


class CredentialsNotFoundError(ServiceError):
    code = ErrorCode.CREDENTIALS_NOT_FOUND
    http_status = 401

    def __init__(self, user_id: str, provider: str = "google"):
        super().__init__(f"No stored {provider} credentials for this account. Please sign in again.")
        self.user_id = user_id
        self.provider = provider


class DecryptionError(ServiceError):
    """Sealed secret could not be opened because the input is malformed."""

    code = ErrorCode.INTEGRITY_ERROR
    http_status = 500


class IntegrityError(ServiceError):
    """Authentication tag did not verify: tampered data, wrong key or wrong nonce."""

    code = ErrorCode.INTEGRITY_ERROR
    http_status = 500


class MissingIdentifierError(ServiceError):
    """A remote resource came back without its required ``id``."""

    code = ErrorCode.PROVIDER_ERROR
    http_status = 502

    def __init__(self, kind: str):
        super().__init__(f"Classroom returned a {kind} without an id")
        self.kind = kind


class RoleRequiredError(ServiceError):
    code = ErrorCode.ROLE_REQUIRED
    http_status = 403

    def __init__(self, required: Role, actual: Role):
        super().__init__(
            f"This action requires the {required.value} role in the course "
            f"(current role: {actual.value}). Ask the course owner to add you as a "
            f"{required.value.lower()}."
        )
        self.required = required
        self.actual = actual
