"""
Client for the order router's merchant registry.

The order router delivers Nostr orders to merchant storefronts; a merchant
must be registered there before any order can reach them.
"""

from typing import Optional
import hashlib
from fastapi import Depends
import httpx
import structlog

from ..config import Settings, get_settings
from ..errors import DownstreamRegistrationFailed

logger = structlog.get_logger(__name__)


class OrderRouterClient:
    """
    Registers merchants with the order router over HTTP.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize order router client.

        Args:
            base_url: Order router base URL
            api_token: Bearer token accepted by the order router
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the router)
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.transport = transport

    @staticmethod
    def idempotency_key(invite_token: str) -> str:
        """Derive a registration idempotency key that does not reveal the invite."""
        return hashlib.sha256(invite_token.encode()).hexdigest()

    async def register_merchant(
        self,
        pubkey: str,
        name: str,
        webhook_url: str,
        webhook_secret: str,
        invite_token: str
    ) -> None:
        """
        Register a merchant with the order router.

        Args:
            pubkey: Merchant public key (hex)
            name: Store name
            webhook_url: Storefront webhook URL for order delivery
            webhook_secret: Secret shared with the storefront
            invite_token: Invite used for this registration

        Raises:
            DownstreamRegistrationFailed on transport error or non-2xx response
        """
        url = f"{self.base_url}/merchants"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    url,
                    headers={
                        "Authorization": f"Bearer {self.api_token}",
                        "Idempotency-Key": self.idempotency_key(invite_token)
                    },
                    json={
                        "pubkey": pubkey,
                        "name": name,
                        "webhookUrl": webhook_url,
                        "webhookSecret": webhook_secret
                    }
                )
        except httpx.HTTPError as e:
            logger.error(
                "order_router_unreachable",
                url=url,
                error=str(e)
            )
            raise DownstreamRegistrationFailed(502, str(e) or e.__class__.__name__) from e

        if not response.is_success:
            logger.error(
                "order_router_registration_failed",
                url=url,
                status_code=response.status_code,
                body=response.text[:500]
            )
            raise DownstreamRegistrationFailed(response.status_code, response.text)

        logger.info(
            "order_router_merchant_registered",
            pubkey=pubkey,
            name=name
        )


def get_order_router(settings: Settings = Depends(get_settings)) -> OrderRouterClient:
    """
    Build an order router client from the settings.

    Can be used as a FastAPI dependency.
    """
    return OrderRouterClient(
        base_url=settings.order_router_url,
        api_token=settings.api_token,
        timeout=settings.downstream_timeout_seconds
    )


__all__ = ["OrderRouterClient", "get_order_router"]
