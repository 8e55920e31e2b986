"""
Connectivity prober.

Determines whether a remote store is reachable and the supplied credentials
are authorized, without persisting anything. WooCommerce is probed against
an ordered list of endpoint candidates; Shopify has a single canonical path.
"""

from typing import Any

import httpx
import structlog

from app.config import settings
from app.integrations.candidates import (
    WOOCOMMERCE_CANDIDATES,
    EndpointCandidate,
    shopify_shop_candidate,
)
from app.integrations.errors import (
    ApiNotFoundError,
    BrokerError,
    InsufficientPermissionsError,
    InvalidCredentialsError,
    InvalidInputError,
    RemotePlatformError,
    classify_status,
    describe_request_error,
)
from app.integrations.shopify.api_client import ShopifyAPIClient
from app.integrations.woocommerce.api_client import WooCommerceAPIClient
from app.models.broker import Platform, ProbeResult
from app.services.activity_logger import ActivityLogger
from app.utils.http import header_int, parse_json_body
from app.utils.url_parsing import normalize_base_url

logger = structlog.get_logger()

SOURCE = "PROBER"

WOOCOMMERCE_NOT_FOUND_GUIDANCE = (
    "WooCommerce REST API not found. Check that WooCommerce is installed and active, "
    "that permalinks are not set to 'Plain' (Settings > Permalinks), and that the "
    "store URL points at the WordPress root."
)
SHOPIFY_NOT_FOUND_GUIDANCE = (
    "Shopify Admin API not found. Check the shop domain (e.g. myshop.myshopify.com) "
    "and that the Admin API version is still supported."
)


class ConnectivityProber:
    """Read-only connectivity and authorization checks."""

    def __init__(
        self,
        activity: ActivityLogger,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
        candidates: tuple[EndpointCandidate, ...] = WOOCOMMERCE_CANDIDATES,
    ):
        self.activity = activity
        self.transport = transport
        self.timeout = timeout or settings.probe_timeout_seconds
        self.candidates = candidates

    async def probe(
        self,
        platform: Platform,
        base_url: str,
        secrets: dict[str, str],
        merchant_id: str | None = None,
    ) -> ProbeResult:
        """
        Probe a remote store with freshly supplied credentials.

        Args:
            platform: Platform to probe
            base_url: Store URL with explicit scheme
            secrets: Platform secret fields
            merchant_id: Merchant on whose behalf the probe runs (logging only)

        Returns:
            ProbeResult; never raises for remote or input failures
        """
        secret_values = [v for v in secrets.values() if v]
        attempted: list[str] = []
        log_kwargs = {"merchant_id": merchant_id, "secret_values": secret_values}

        try:
            base_url = normalize_base_url(base_url)
            for field in platform.secret_fields:
                if not (secrets.get(field) or "").strip():
                    raise InvalidInputError(f"Missing required field: {field}")

            self.activity.info(
                SOURCE,
                f"Testing {platform.value} connection",
                details={"storeUrl": base_url},
                **log_kwargs,
            )
            if platform is Platform.SHOPIFY:
                metadata = await self._probe_shopify(base_url, secrets, attempted, log_kwargs)
            else:
                metadata = await self._probe_woocommerce(base_url, secrets, attempted, log_kwargs)
        except BrokerError as e:
            self.activity.error(
                SOURCE,
                f"{platform.value} connection test failed",
                details={
                    "storeUrl": base_url,
                    "errorKind": e.kind.value,
                    "error": e.detail,
                    "attempted": attempted,
                },
                **log_kwargs,
            )
            return ProbeResult.from_error(e, platform=platform, attempted=attempted)

        self.activity.success(
            SOURCE,
            f"{platform.value} connection succeeded",
            details={"storeUrl": base_url, "metadata": metadata, "attempts": len(attempted)},
            **log_kwargs,
        )
        return ProbeResult(
            success=True,
            platform=platform,
            platform_metadata=metadata,
            attempted=attempted,
        )

    async def _probe_woocommerce(
        self,
        base_url: str,
        secrets: dict[str, str],
        attempted: list[str],
        log_kwargs: dict[str, Any],
    ) -> dict[str, Any]:
        async with WooCommerceAPIClient(
            base_url,
            secrets["consumerKey"].strip(),
            secrets["consumerSecret"].strip(),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            for candidate in self.candidates:
                attempted.append(candidate.describe())
                try:
                    response = await client.request_products(candidate, page=1, per_page=1)
                except httpx.RequestError as e:
                    self._candidate_failed(candidate, describe_request_error(e).detail, log_kwargs)
                    continue

                # Credential problems are path-independent
                if response.status_code == 401:
                    raise InvalidCredentialsError(
                        "Invalid credentials. Check the Consumer Key and Consumer Secret."
                    )
                if response.status_code == 403:
                    raise InsufficientPermissionsError(
                        "Access denied. Check that the API keys have read permissions."
                    )
                if not response.is_success:
                    self._candidate_failed(candidate, f"HTTP {response.status_code}", log_kwargs)
                    continue

                items = candidate.parse_items(parse_json_body(response))
                if items is None:
                    self._candidate_failed(candidate, "Response is not the expected JSON", log_kwargs)
                    continue

                self.activity.debug(
                    SOURCE,
                    "Candidate endpoint answered",
                    details={"candidate": candidate.describe(), "status": response.status_code},
                    **log_kwargs,
                )
                total = header_int(response, candidate.total_header)
                return {
                    "storeUrl": base_url,
                    "apiVersion": candidate.api_version,
                    "apiCandidate": candidate.name,
                    "apiUrl": candidate.describe(),
                    "productsCount": total if total is not None else len(items),
                    "currency": await client.get_currency(candidate),
                    "status": "connected",
                }

        raise ApiNotFoundError(
            f"{WOOCOMMERCE_NOT_FOUND_GUIDANCE} Tried: {', '.join(attempted)}",
            attempted=attempted,
        )

    async def _probe_shopify(
        self,
        base_url: str,
        secrets: dict[str, str],
        attempted: list[str],
        log_kwargs: dict[str, Any],
    ) -> dict[str, Any]:
        candidate = shopify_shop_candidate(settings.shopify_api_version)
        attempted.append(candidate.describe())

        async with ShopifyAPIClient(
            base_url,
            secrets["accessToken"].strip(),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            try:
                response = await client.get_shop_response()
            except httpx.RequestError as e:
                raise describe_request_error(e) from e

            self.activity.debug(
                SOURCE,
                "Shopify shop endpoint answered",
                details={"candidate": candidate.describe(), "status": response.status_code},
                **log_kwargs,
            )
            if response.status_code == 401:
                raise InvalidCredentialsError("Invalid Shopify access token.")
            if response.status_code == 403:
                raise InsufficientPermissionsError(
                    "Access denied. Check the Admin API scopes granted to the access token."
                )
            if response.status_code == 404:
                raise ApiNotFoundError(
                    f"{SHOPIFY_NOT_FOUND_GUIDANCE} Tried: {candidate.describe()}",
                    attempted=list(attempted),
                )
            if not response.is_success:
                raise classify_status(
                    response.status_code, response.text, settings.error_body_max_chars
                )

            shop = client.parse_shop(response)
            if shop is None:
                raise RemotePlatformError(
                    "Shopify returned an unexpected response for shop.json",
                    status_code=response.status_code,
                )

            return {
                "storeUrl": base_url,
                "shopName": shop.name,
                "domain": shop.domain or shop.myshopify_domain,
                "currency": shop.currency,
                "productsCount": await client.count_products(),
                "apiVersion": client.api_version,
                "status": "connected",
            }

    def _candidate_failed(
        self,
        candidate: EndpointCandidate,
        reason: str,
        log_kwargs: dict[str, Any],
    ) -> None:
        self.activity.debug(
            SOURCE,
            "Candidate endpoint failed, trying next",
            details={"candidate": candidate.describe(), "reason": reason},
            **log_kwargs,
        )
