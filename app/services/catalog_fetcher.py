"""
Catalog fetcher: reads one page of the merchant's WooCommerce catalog and
normalizes it into CatalogItems. Read-only; nothing is cached between calls.
"""

from decimal import Decimal

import httpx
import structlog

from app.config import settings
from app.integrations.candidates import woocommerce_candidate
from app.integrations.errors import BrokerError, InvalidInputError
from app.integrations.woocommerce.api_client import WooCommerceAPIClient
from app.integrations.woocommerce.transformer import WooCommerceTransformer
from app.models.broker import CatalogItem, CatalogPage, FetchResult, Platform
from app.models.database import Integration
from app.services.activity_logger import ActivityLogger
from app.services.credential_store import CredentialStore
from app.services.currency_service import RateLookup

logger = structlog.get_logger()

SOURCE = "WOOCOMMERCE"

CENT = Decimal("0.01")


class CatalogFetcher:
    """Paginated, normalized reads from the source catalog."""

    def __init__(
        self,
        credential_store: CredentialStore,
        activity: ActivityLogger,
        rates: RateLookup | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_page_size: int | None = None,
    ):
        self.credential_store = credential_store
        self.activity = activity
        self.rates = rates
        self.transport = transport
        self.max_page_size = max_page_size or settings.woocommerce_max_page_size

    def clamp_page_size(self, page_size: int | None) -> int:
        """Clamp a requested page size into [1, max_page_size]."""
        if not page_size or page_size < 1:
            return min(settings.woocommerce_default_page_size, self.max_page_size)
        return min(page_size, self.max_page_size)

    async def fetch_page(
        self,
        merchant_id: str,
        integration_id: str | None = None,
        page_number: int = 1,
        page_size: int | None = None,
        target_currency: str | None = None,
    ) -> FetchResult:
        """
        Fetch and normalize one catalog page.

        Args:
            merchant_id: Owning merchant
            integration_id: WooCommerce integration; defaults to the merchant's active one
            page_number: 1-based page number
            page_size: Requested page size (silently clamped to the platform maximum)
            target_currency: Optional display currency for prices

        Returns:
            FetchResult; never raises for remote, storage or input failures
        """
        per_page = self.clamp_page_size(page_size)
        self.activity.info(
            SOURCE,
            f"Fetching products - page {page_number}",
            details={"page": page_number, "perPage": per_page, "requestedPerPage": page_size},
            merchant_id=merchant_id,
        )

        secret_values: list[str] = []
        try:
            if page_number < 1:
                raise InvalidInputError("page must be 1 or greater")

            integration = self._resolve_integration(merchant_id, integration_id)
            bundle = self.credential_store.load_secrets(str(integration.id))
            secret_values = bundle.secret_values()
            candidate = woocommerce_candidate(integration.metadata.get("apiCandidate"))
            currency = (
                integration.metadata.get("currency") or settings.default_source_currency
            ).upper()

            async with WooCommerceAPIClient(
                bundle.base_url,
                bundle.secret("consumerKey"),
                bundle.secret("consumerSecret"),
                transport=self.transport,
            ) as client:
                # Count request: page 1, one item, total from the response header
                _, total = await client.list_products(candidate, page=1, per_page=1)
                raw_items, page_total = await client.list_products(
                    candidate, page=page_number, per_page=per_page
                )

            if total is None:
                total = page_total if page_total is not None else len(raw_items)

            items = WooCommerceTransformer.to_catalog_items(raw_items, currency)
            if page_number == 1 and total > 0 and not items:
                self.activity.warning(
                    SOURCE,
                    "First page is empty although the store reports products",
                    details={"totalCount": total, "page": page_number, "perPage": per_page},
                    merchant_id=merchant_id,
                )

            page = CatalogPage(
                items=items,
                total_count=total,
                page=page_number,
                page_size=per_page,
                store_display_name=integration.store_name,
                store_url=integration.store_url,
                currency_code=currency,
            )
            if target_currency and target_currency.upper() != currency:
                page = await self._convert(page, target_currency.upper(), merchant_id)
        except BrokerError as e:
            self.activity.error(
                SOURCE,
                "Failed to fetch products",
                details={"page": page_number, "errorKind": e.kind.value, "error": e.detail},
                merchant_id=merchant_id,
                secret_values=secret_values,
            )
            return FetchResult.from_error(e)

        self.activity.success(
            SOURCE,
            f"Fetched {len(page.items)} products",
            details={
                "page": page_number,
                "perPage": per_page,
                "totalCount": page.total_count,
                "storeUrl": page.store_url,
            },
            merchant_id=merchant_id,
        )
        return FetchResult(success=True, page=page)

    def _resolve_integration(self, merchant_id: str, integration_id: str | None) -> Integration:
        if integration_id:
            integration = self.credential_store.table.get_by_id(integration_id)
            if integration is None or integration.user_id != merchant_id:
                raise InvalidInputError(f"Integration not found: {integration_id}")
            if integration.platform is not Platform.WOOCOMMERCE:
                raise InvalidInputError("Integration is not a WooCommerce integration")
            return integration

        integration = self.credential_store.get_active(merchant_id, Platform.WOOCOMMERCE)
        if integration is None:
            raise InvalidInputError("No connected WooCommerce integration found")
        return integration

    async def _convert(self, page: CatalogPage, target: str, merchant_id: str) -> CatalogPage:
        """Convert prices into target currency, falling back to 1:1 on lookup failure."""
        if self.rates is None:
            return page
        try:
            rate = await self.rates.rate(page.currency_code, target)
        except BrokerError as e:
            self.activity.warning(
                SOURCE,
                "Exchange rate lookup failed, showing unconverted prices",
                details={"from": page.currency_code, "to": target, "errorKind": e.kind.value},
                merchant_id=merchant_id,
            )
            return page

        items = [self._convert_item(item, rate, target) for item in page.items]
        return page.model_copy(
            update={
                "items": items,
                "currency_code": target,
                "exchange_rate": rate,
                "price_converted": True,
            }
        )

    @staticmethod
    def _convert_item(item: CatalogItem, rate: Decimal, target: str) -> CatalogItem:
        sale_price = None
        if item.sale_price is not None:
            sale_price = (item.sale_price * rate).quantize(CENT)
        return item.model_copy(
            update={
                "regular_price": (item.regular_price * rate).quantize(CENT),
                "sale_price": sale_price,
                "currency_code": target,
            }
        )
