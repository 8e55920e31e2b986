"""
WooCommerce REST API client.
Issues product listing requests against one endpoint candidate at a time,
attaching consumer key/secret as HTTP Basic auth or query parameters.
"""

from typing import Any

import httpx
import structlog

from app.config import settings
from app.integrations.candidates import AuthScheme, EndpointCandidate, ResponseShape
from app.integrations.errors import (
    RemotePlatformError,
    classify_status,
    describe_request_error,
)
from app.utils.http import header_int, parse_json_body
from app.utils.retry import retry_with_backoff

logger = structlog.get_logger()

USER_AGENT = "WooCommerce-Integration/1.0"


class WooCommerceAPIClient:
    """Async client for the WooCommerce REST API (products only)."""

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the WooCommerce API client.

        Args:
            base_url: Normalized store URL (scheme, no trailing slash)
            consumer_key: REST API consumer key
            consumer_secret: REST API consumer secret
            timeout: Request timeout in seconds (defaults to settings.http_timeout_seconds)
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.http_timeout_seconds,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
        )

    def _auth_kwargs(self, candidate: EndpointCandidate, params: dict[str, Any]) -> dict[str, Any]:
        if candidate.auth is AuthScheme.QUERY:
            params["consumer_key"] = self._consumer_key
            params["consumer_secret"] = self._consumer_secret
            return {}
        return {"auth": httpx.BasicAuth(self._consumer_key, self._consumer_secret)}

    async def request_products(
        self,
        candidate: EndpointCandidate,
        page: int = 1,
        per_page: int = 1,
        extra_params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Issue GET products against one candidate and return the raw response.
        Status codes are not checked here.

        Raises:
            httpx.RequestError: On timeout or network failure
        """
        params: dict[str, Any] = dict(candidate.params)
        params[candidate.page_param] = page
        params[candidate.page_size_param] = per_page
        if extra_params:
            params.update(extra_params)
        auth_kwargs = self._auth_kwargs(candidate, params)
        return await self.client.get(candidate.products_path, params=params, **auth_kwargs)

    @retry_with_backoff(
        max_attempts=settings.max_retry_attempts,
        initial_delay=settings.retry_initial_delay_seconds,
        multiplier=settings.retry_backoff_multiplier,
    )
    async def list_products(
        self,
        candidate: EndpointCandidate,
        page: int,
        per_page: int,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """
        Fetch one page of published products.

        Args:
            candidate: Endpoint candidate discovered by the prober
            page: 1-based page number
            per_page: Page size (already clamped by the caller)

        Returns:
            Tuple of (raw product dicts, total count header or None)

        Raises:
            BrokerError: Classified by status; transient errors are retried
        """
        extra = {"status": "publish"} if candidate.shape is ResponseShape.LIST else None
        try:
            response = await self.request_products(candidate, page, per_page, extra)
        except httpx.RequestError as e:
            logger.warning(
                "WooCommerce request failed",
                candidate=candidate.name,
                page=page,
                error_type=type(e).__name__,
            )
            raise describe_request_error(e) from e

        if not response.is_success:
            logger.warning(
                "WooCommerce API error",
                candidate=candidate.name,
                status_code=response.status_code,
                page=page,
            )
            raise classify_status(
                response.status_code, response.text, settings.error_body_max_chars
            )

        items = candidate.parse_items(parse_json_body(response))
        if items is None:
            raise RemotePlatformError(
                f"Unexpected response from {candidate.describe()}",
                status_code=response.status_code,
            )
        return items, header_int(response, candidate.total_header)

    async def get_currency(self, candidate: EndpointCandidate) -> str | None:
        """Best-effort lookup of the store currency code. Never raises."""
        if not candidate.currency_path:
            return None
        params: dict[str, Any] = {}
        auth_kwargs = self._auth_kwargs(candidate, params)
        try:
            response = await self.client.get(candidate.currency_path, params=params, **auth_kwargs)
        except httpx.RequestError as e:
            logger.debug("WooCommerce currency lookup failed", error_type=type(e).__name__)
            return None
        if not response.is_success:
            return None
        body = parse_json_body(response)
        if isinstance(body, dict) and isinstance(body.get("code"), str):
            return body["code"].upper()
        return None

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
