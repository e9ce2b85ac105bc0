"""
Data models for the Merchant Onboarding Server.

Defines Pydantic models for request/response validation and the invite
snapshot schema.
"""

from datetime import datetime, timezone
from typing import Optional, Dict
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# Stored Records
# ============================================================================

class InviteRecord(BaseModel):
    """
    Single-use invite stored in the snapshot file.

    Serialized with camelCase keys, both in the snapshot and on the admin API.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "token": "3f9a1c0de4b27a8856f01c2d9e7b4a61",
                "label": "Satoshi's Coffee",
                "createdAt": "2026-10-01T09:00:00Z",
                "used": True,
                "usedBy": "Satoshi's Coffee",
                "usedAt": "2026-10-02T14:30:00Z"
            }
        }
    )

    token: str = Field(..., description="Invite token (primary key)")
    label: Optional[str] = Field(None, description="Admin annotation")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt", description="Creation time")
    used: bool = Field(default=False, description="Whether the invite was consumed")
    used_by: Optional[str] = Field(None, alias="usedBy", description="Store that consumed the invite")
    used_at: Optional[datetime] = Field(None, alias="usedAt", description="Consumption time")

    @field_validator("created_at", "used_at")
    @classmethod
    def normalize_to_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store timestamps as naive UTC, converting any offset-aware input."""
        if v is not None and v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @model_validator(mode='after')
    def validate_consumption(self) -> 'InviteRecord':
        """A consumed invite must record who used it and when."""
        if self.used:
            if self.used_by is None or self.used_at is None:
                raise ValueError("usedBy and usedAt are required when used is true")
            if self.used_at < self.created_at:
                raise ValueError("usedAt must not be before createdAt")
        return self


# ============================================================================
# Request Models (API Input)
# ============================================================================

class CreateInviteRequest(BaseModel):
    """Request body for creating an invite."""
    label: Optional[str] = Field(None, description="Optional annotation, e.g. the merchant's name")


class RegistrationRequest(BaseModel):
    """
    Request body for merchant self-registration.

    Required fields are checked by the registration workflow, which reports
    the first missing one, so everything is optional at the schema level.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "invite": "3f9a1c0de4b27a8856f01c2d9e7b4a61",
                "storeName": "Satoshi's Coffee",
                "npub": "npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6",
                "wooUrl": "https://shop.example.com",
                "email": "owner@example.com"
            }
        }
    )

    invite: Optional[str] = Field(None, description="Invite token")
    store_name: Optional[str] = Field(None, alias="storeName", description="Merchant store name")
    npub: Optional[str] = Field(None, description="Merchant public key (npub or hex)")
    woo_url: Optional[str] = Field(None, alias="wooUrl", description="Storefront base URL")
    email: Optional[str] = Field(None, description="Contact email")

    @field_validator("invite", "store_name", "npub", "woo_url", "email", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Strip strings; blank values count as missing."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


# ============================================================================
# Response Models (API Output)
# ============================================================================

class CreateInviteResponse(BaseModel):
    """Response for invite creation."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(default=True)
    token: str = Field(..., description="New invite token")
    invite_url: str = Field(..., alias="inviteUrl", description="Onboarding link carrying the invite")


class InviteListResponse(BaseModel):
    """Response for invite listing."""
    invites: Dict[str, InviteRecord] = Field(..., description="All invites keyed by token")


class RegistrationResponse(BaseModel):
    """Response for a successful registration."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(default=True)
    webhook_url: str = Field(..., alias="webhookUrl", description="Webhook URL to configure in the store")
    webhook_secret: str = Field(..., alias="webhookSecret", description="Shared webhook secret")


class HealthResponse(BaseModel):
    """Response for health check endpoint."""
    status: str = Field(..., description="Service status")


class ErrorResponse(BaseModel):
    """Standard error response format."""
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")


__all__ = [
    "InviteRecord",
    "CreateInviteRequest",
    "RegistrationRequest",
    "CreateInviteResponse",
    "InviteListResponse",
    "RegistrationResponse",
    "HealthResponse",
    "ErrorResponse",
]
