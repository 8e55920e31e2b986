"""
Shopify API client for making direct API calls to Shopify.
Handles shop lookup, product counting, product creation and deletion.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from app.config import settings
from app.integrations.errors import (
    RemotePlatformError,
    classify_status,
    describe_request_error,
)
from app.models.shopify import ShopifyProduct, ShopifyShop
from app.utils.http import parse_json_body
from app.utils.retry import retry_with_backoff

logger = structlog.get_logger()


class ShopifyAPIClient:
    """Client for making Shopify Admin API calls."""

    def __init__(
        self,
        shop_url: str,
        access_token: str,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Shopify API client.

        Args:
            shop_url: Shop base URL (e.g., 'https://myshop.myshopify.com')
            access_token: Shopify Admin API access token
            api_version: Admin API version (defaults to settings.shopify_api_version)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.shop_url = shop_url.rstrip("/")
        self.api_version = api_version or settings.shopify_api_version
        self.base_url = f"{self.shop_url}/admin/api/{self.api_version}"
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.http_timeout_seconds,
            transport=transport,
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    async def get_shop_response(self) -> httpx.Response:
        """
        GET /shop.json without status handling (used by the prober).

        Raises:
            httpx.RequestError: On timeout or network failure
        """
        return await self.client.get(f"{self.base_url}/shop.json")

    @staticmethod
    def parse_shop(response: httpx.Response) -> Optional[ShopifyShop]:
        """Parse a /shop.json body, or None if it is not the expected shape."""
        body = parse_json_body(response)
        if isinstance(body, dict) and isinstance(body.get("shop"), dict):
            return ShopifyShop.model_validate(body["shop"])
        return None

    async def count_products(self) -> Optional[int]:
        """Best-effort GET /products/count.json. Never raises."""
        try:
            response = await self.client.get(f"{self.base_url}/products/count.json")
        except httpx.RequestError as e:
            logger.debug("Shopify product count failed", error_type=type(e).__name__)
            return None
        if not response.is_success:
            return None
        body = parse_json_body(response)
        if isinstance(body, dict) and isinstance(body.get("count"), int):
            return body["count"]
        return None

    @retry_with_backoff(
        max_attempts=settings.max_retry_attempts,
        initial_delay=settings.retry_initial_delay_seconds,
        multiplier=settings.retry_backoff_multiplier,
    )
    async def create_product(self, payload: Dict[str, Any]) -> ShopifyProduct:
        """
        Create a product in Shopify.

        Args:
            payload: Body for POST /products.json ({"product": {...}})

        Returns:
            Created product

        Raises:
            BrokerError: Classified by status. 429/5xx and connection failures
                are retried; a timeout after the request was sent is not.
        """
        try:
            response = await self.client.post(f"{self.base_url}/products.json", json=payload)
        except httpx.RequestError as e:
            raise describe_request_error(e, idempotent=False) from e

        if not response.is_success:
            error = classify_status(
                response.status_code, response.text, settings.error_body_max_chars
            )
            logger.error(
                "Shopify API error",
                status_code=response.status_code,
                error_kind=error.kind.value,
            )
            raise error

        body = parse_json_body(response)
        if not isinstance(body, dict) or not isinstance(body.get("product"), dict):
            raise RemotePlatformError(
                "Shopify returned an unexpected product response",
                status_code=response.status_code,
            )
        product = ShopifyProduct.model_validate(body["product"])
        logger.info("Created Shopify product", product_id=product.id)
        return product

    async def delete_product(self, product_id: int | str) -> None:
        """
        Delete a product.

        Raises:
            BrokerError: On transport failure or non-2xx status
        """
        try:
            response = await self.client.delete(f"{self.base_url}/products/{product_id}.json")
        except httpx.RequestError as e:
            raise describe_request_error(e) from e
        if not response.is_success:
            raise classify_status(
                response.status_code, response.text, settings.error_body_max_chars
            )
        logger.info("Deleted Shopify product", product_id=product_id)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
