"""
Error taxonomy for the Merchant Onboarding Server.

Every caller-facing failure is an HTTPException carrying a structured detail
body, rendered as-is by the handler registered in main.py.
"""

from typing import Any, Optional
from datetime import datetime
from fastapi import HTTPException, status


class OnboardingError(HTTPException):
    """
    Base class for onboarding failures.

    Subclasses set the error code and HTTP status; extra keyword arguments are
    merged into the response body.
    """

    error_code = "onboarding_error"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra

        detail = {
            "error": self.error_code,
            "message": message,
            **extra,
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }

        super().__init__(status_code=self.status_code_default, detail=detail)


class Unauthorized(OnboardingError):
    """Missing or wrong admin bearer token."""

    error_code = "unauthorized"
    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid or missing admin token"):
        super().__init__(message)


class InvalidInvite(OnboardingError):
    """Invite token is unknown."""

    error_code = "invalid_invite"
    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Invalid invite code"):
        super().__init__(message)


class InviteAlreadyUsed(OnboardingError):
    """Invite token was already consumed, or is being consumed right now."""

    error_code = "invite_already_used"
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Invite has already been used"):
        super().__init__(message)


class MissingField(OnboardingError):
    """A required registration field is absent or blank."""

    error_code = "missing_field"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}", field=field)


class InvalidIdentifier(OnboardingError):
    """Public-key identifier could not be decoded to a 32-byte key."""

    error_code = "invalid_identifier"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid npub or public key"):
        super().__init__(message)


class DownstreamRegistrationFailed(OnboardingError):
    """The order router did not acknowledge the merchant registration."""

    error_code = "downstream_registration_failed"
    status_code_default = status.HTTP_502_BAD_GATEWAY

    def __init__(self, downstream_status: Optional[int], downstream_message: str):
        self.downstream_status = downstream_status
        self.downstream_message = downstream_message
        super().__init__(
            f"Order router registration failed: {downstream_status} {downstream_message}".strip(),
            downstream_status=downstream_status
        )


class NotFound(OnboardingError):
    """Unknown route or static asset."""

    error_code = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class Forbidden(OnboardingError):
    """Static asset path escapes the asset root."""

    error_code = "forbidden"
    status_code_default = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class PersistenceFailure(OnboardingError):
    """
    Invite snapshot could not be written.

    Raised and handled inside the store; the in-memory state stays
    authoritative, so this never reaches a caller.
    """

    error_code = "persistence_failure"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "OnboardingError",
    "Unauthorized",
    "InvalidInvite",
    "InviteAlreadyUsed",
    "MissingField",
    "InvalidIdentifier",
    "DownstreamRegistrationFailed",
    "NotFound",
    "Forbidden",
    "PersistenceFailure",
]
