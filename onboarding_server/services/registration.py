"""
Merchant registration workflow.

Turns an invite plus merchant details into a registered merchant and a
webhook credential for their storefront.
"""

from dataclasses import dataclass
import secrets
import structlog

from ..errors import InvalidInvite, InviteAlreadyUsed, MissingField
from ..models import RegistrationRequest
from ..store import InviteStore, token_fingerprint
from .identity import to_pubkey_hex
from .order_router import OrderRouterClient

logger = structlog.get_logger(__name__)


WEBHOOK_PATH = "/wp-json/woo-nostr-market/v1/order-webhook"
WEBHOOK_SECRET_BYTES = 32


@dataclass(frozen=True)
class MerchantCredential:
    """Webhook credential handed to the merchant. Never persisted."""
    webhook_url: str
    webhook_secret: str

    def __repr__(self) -> str:
        return f"MerchantCredential(webhook_url={self.webhook_url!r}, webhook_secret='***')"


def build_webhook_url(woo_url: str) -> str:
    """Append the plugin's order webhook route to a storefront URL."""
    if woo_url.endswith("/"):
        woo_url = woo_url[:-1]
    return woo_url + WEBHOOK_PATH


def generate_webhook_secret() -> str:
    return secrets.token_hex(WEBHOOK_SECRET_BYTES)


class RegistrationService:
    """
    Registers merchants against single-use invites.

    The invite is claimed before the order router is called and consumed only
    after the router acknowledges, so concurrent attempts on one invite
    reach the router at most once and a failed attempt leaves the invite
    usable.
    """

    REQUIRED_FIELDS = (
        ("store_name", "storeName"),
        ("npub", "npub"),
        ("woo_url", "wooUrl"),
    )

    def __init__(
        self,
        store: InviteStore,
        order_router: OrderRouterClient,
        strict_identifier_checksum: bool = False
    ):
        """
        Initialize registration service.

        Args:
            store: Invite store
            order_router: Order router client
            strict_identifier_checksum: Reject npubs with a bad checksum
        """
        self.store = store
        self.order_router = order_router
        self.strict_identifier_checksum = strict_identifier_checksum

    async def register(self, request: RegistrationRequest) -> MerchantCredential:
        """
        Register a merchant.

        Args:
            request: Registration details

        Returns:
            MerchantCredential for the merchant's storefront

        Raises:
            InvalidInvite, InviteAlreadyUsed, MissingField,
            InvalidIdentifier, DownstreamRegistrationFailed
        """
        if not request.invite:
            raise InvalidInvite()

        invite = await self.store.get(request.invite)
        if invite is None:
            logger.info("registration_invalid_invite", invite=token_fingerprint(request.invite))
            raise InvalidInvite()
        if invite.used:
            logger.info("registration_invite_already_used", invite=token_fingerprint(request.invite))
            raise InviteAlreadyUsed()

        for attr, field in self.REQUIRED_FIELDS:
            if not getattr(request, attr):
                raise MissingField(field)

        pubkey = to_pubkey_hex(request.npub, strict=self.strict_identifier_checksum)

        await self.store.reserve(request.invite)
        try:
            credential = MerchantCredential(
                webhook_url=build_webhook_url(request.woo_url),
                webhook_secret=generate_webhook_secret()
            )

            await self.order_router.register_merchant(
                pubkey=pubkey,
                name=request.store_name,
                webhook_url=credential.webhook_url,
                webhook_secret=credential.webhook_secret,
                invite_token=request.invite
            )

            await self.store.mark_used(request.invite, used_by=request.store_name)
        except BaseException:
            await self.store.release(request.invite)
            raise

        logger.info(
            "registration_succeeded",
            invite=token_fingerprint(request.invite),
            store_name=request.store_name,
            pubkey=pubkey,
            webhook_url=credential.webhook_url,
            has_email=bool(request.email)
        )

        return credential


__all__ = [
    "MerchantCredential",
    "RegistrationService",
    "build_webhook_url",
    "generate_webhook_secret",
    "WEBHOOK_PATH",
]
