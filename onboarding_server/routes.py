"""
API routes for the Merchant Onboarding Server.

Defines the admin invite endpoints, public registration, health check and
the onboarding page passthrough.
"""

from pathlib import Path
from typing import Optional
import json
import secrets

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from pydantic import ValidationError
import structlog

from .config import Settings, get_settings
from .errors import Forbidden, NotFound, Unauthorized
from .models import (
    CreateInviteRequest,
    CreateInviteResponse,
    InviteListResponse,
    RegistrationRequest,
    RegistrationResponse,
    HealthResponse,
    ErrorResponse
)
from .services.order_router import OrderRouterClient, get_order_router
from .services.registration import RegistrationService
from .store import InviteStore, get_store, token_fingerprint

logger = structlog.get_logger(__name__)

# Create router
router = APIRouter()


# ============================================================================
# Helper Functions
# ============================================================================

def require_admin(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings)
) -> None:
    """
    Check the admin bearer token.

    Args:
        authorization: Authorization header
        settings: Application settings

    Raises:
        Unauthorized if the header is missing or the token does not match
    """
    expected = settings.api_token
    if not authorization or not expected:
        raise Unauthorized()

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(
        token.strip().encode(), expected.encode()
    ):
        logger.warning("admin_auth_failed")
        raise Unauthorized()


def get_registration_service(
    store: InviteStore = Depends(get_store),
    order_router: OrderRouterClient = Depends(get_order_router),
    settings: Settings = Depends(get_settings)
) -> RegistrationService:
    return RegistrationService(
        store=store,
        order_router=order_router,
        strict_identifier_checksum=settings.strict_identifier_checksum
    )


def build_invite_url(public_base_url: str, token: str) -> str:
    return f"{public_base_url.rstrip('/')}/?invite={token}"


def resolve_asset_path(static_dir: str, asset_path: str) -> Path:
    """
    Resolve a request path to a file under the asset root.

    Args:
        static_dir: Asset root directory
        asset_path: Path from the request URL, without the leading slash

    Returns:
        Absolute path of the asset

    Raises:
        Forbidden if the path escapes the asset root
        NotFound if no such file exists
    """
    root = Path(static_dir).resolve()
    target = (root / (asset_path or "index.html")).resolve()

    if target != root and root not in target.parents:
        logger.warning("static_path_traversal_rejected", path=asset_path)
        raise Forbidden()

    if target.is_dir():
        target = target / "index.html"

    if not target.is_file():
        raise NotFound()

    return target


# ============================================================================
# Health Check Endpoint
# ============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["System"],
    summary="Health check",
    description="Check if the server is running"
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok")


# ============================================================================
# Admin Invite Endpoints
# ============================================================================

@router.post(
    "/invites",
    response_model=CreateInviteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Invite created"},
        401: {"description": "Missing or invalid admin token", "model": ErrorResponse}
    },
    tags=["Invites"],
    summary="Create an invite",
    description="Create a single-use invite. Requires the admin bearer token."
)
async def create_invite(
    request: Request,
    _: None = Depends(require_admin),
    store: InviteStore = Depends(get_store),
    settings: Settings = Depends(get_settings)
) -> CreateInviteResponse:
    """
    Create an invite.

    The body is read only after the admin token has been checked, so an
    unauthenticated caller gets 401 whatever it sends. An empty or non-JSON
    body creates an unlabelled invite.

    Args:
        request: FastAPI request object
        store: Invite store
        settings: Application settings

    Returns:
        CreateInviteResponse with the token and onboarding link
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    try:
        invite_data = CreateInviteRequest.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    invite = await store.create(label=invite_data.label)

    return CreateInviteResponse(
        token=invite.token,
        invite_url=build_invite_url(settings.public_base_url, invite.token)
    )


@router.get(
    "/invites",
    response_model=InviteListResponse,
    responses={
        401: {"description": "Missing or invalid admin token", "model": ErrorResponse}
    },
    tags=["Invites"],
    summary="List invites",
    description="List every invite with its usage state. Requires the admin bearer token."
)
async def list_invites(
    _: None = Depends(require_admin),
    store: InviteStore = Depends(get_store)
) -> InviteListResponse:
    invites = await store.list()
    logger.info("invites_listed", count=len(invites))
    return InviteListResponse(invites=invites)


# ============================================================================
# Merchant Registration Endpoint (Invite-gated)
# ============================================================================

@router.post(
    "/register",
    response_model=RegistrationResponse,
    responses={
        200: {"description": "Merchant registered"},
        400: {"description": "Missing field or invalid npub", "model": ErrorResponse},
        404: {"description": "Unknown invite", "model": ErrorResponse},
        409: {"description": "Invite already used", "model": ErrorResponse},
        502: {"description": "Order router rejected the registration", "model": ErrorResponse}
    },
    tags=["Registration"],
    summary="Register a merchant",
    description="Register a merchant store with a single-use invite and receive its webhook credential."
)
async def register_merchant(
    registration: RegistrationRequest,
    service: RegistrationService = Depends(get_registration_service)
) -> RegistrationResponse:
    """
    Register a merchant.

    Args:
        registration: Invite, store name, npub, storefront URL and email
        service: Registration workflow

    Returns:
        RegistrationResponse with the webhook URL and secret

    Raises:
        OnboardingError subclasses for every rejected registration
    """
    logger.info(
        "registration_received",
        invite=token_fingerprint(registration.invite),
        store_name=registration.store_name
    )

    credential = await service.register(registration)

    return RegistrationResponse(
        webhook_url=credential.webhook_url,
        webhook_secret=credential.webhook_secret
    )


# ============================================================================
# Onboarding Page
# ============================================================================

@router.get(
    "/{asset_path:path}",
    include_in_schema=False
)
async def serve_static(
    asset_path: str,
    settings: Settings = Depends(get_settings)
) -> FileResponse:
    return FileResponse(resolve_asset_path(settings.static_dir, asset_path))


@router.api_route(
    "/{asset_path:path}",
    methods=["POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False
)
async def unknown_route(asset_path: str) -> None:
    """Anything no other route handles is not found, whatever the method."""
    raise NotFound()


# Export router
__all__ = ["router"]
