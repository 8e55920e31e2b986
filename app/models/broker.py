"""
Pydantic models for the integration broker.
Covers credential bundles, normalized catalog items, import requests and the
discriminated results returned by every public broker operation.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.integrations.errors import BrokerError, ErrorKind

# Category sentinel for items without a category
UNCATEGORIZED = "uncategorized"


class Platform(str, Enum):
    """Remote commerce platforms the broker talks to."""

    WOOCOMMERCE = "woocommerce"  # Source catalog
    SHOPIFY = "shopify"  # Destination store

    @property
    def secret_fields(self) -> tuple[str, ...]:
        if self is Platform.WOOCOMMERCE:
            return ("consumerKey", "consumerSecret")
        return ("accessToken",)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys for the UI boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CredentialBundle(BaseModel):
    """Decrypted credentials for one integration. Never leaves the core."""

    platform: Platform
    base_url: str
    secrets: dict[str, str] = Field(default_factory=dict, repr=False)

    def secret(self, name: str) -> str:
        return self.secrets.get(name, "")

    def secret_values(self) -> list[str]:
        """Literal secret values, used to scrub anything headed for a log."""
        return [value for value in self.secrets.values() if value]


class CatalogItem(CamelModel):
    """Normalized source-platform product."""

    remote_id: int | str
    name: str = ""
    sku: str
    regular_price: Decimal = Decimal("0")
    sale_price: Decimal | None = None
    image_url: str | None = None
    stock_quantity: int = 0
    category: str = UNCATEGORIZED
    description: str = ""
    permalink: str | None = None
    currency_code: str = ""

    @property
    def effective_price(self) -> Decimal:
        """Sale price when present, regular price otherwise."""
        if self.sale_price is not None:
            return self.sale_price
        return self.regular_price


class CatalogPage(CamelModel):
    """One page of normalized catalog items plus pagination metadata."""

    items: list[CatalogItem] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 0
    store_display_name: str = ""
    store_url: str = ""
    currency_code: str = ""
    exchange_rate: Decimal = Decimal("1")
    price_converted: bool = False


class ImportRequest(BaseModel):
    """Per-item import intent. The image bytes are shared across a batch."""

    item: CatalogItem
    camouflage_title: str = Field(min_length=1)
    camouflage_image_bytes: bytes = Field(repr=False, min_length=1)


class OperationResult(CamelModel):
    """Discriminated success/failure envelope shared by broker operations."""

    success: bool
    error_kind: ErrorKind | None = None
    error_detail: str | None = None

    @classmethod
    def from_error(cls, exc: BrokerError, **fields: Any):
        return cls(success=False, error_kind=exc.kind, error_detail=exc.detail, **fields)


class ProbeResult(OperationResult):
    """Outcome of a connectivity probe."""

    platform: Platform
    platform_metadata: dict[str, Any] | None = None
    attempted: list[str] = Field(default_factory=list)


class FetchResult(OperationResult):
    """Outcome of a catalog page fetch."""

    page: CatalogPage | None = None


class IntegrationSummary(CamelModel):
    """Non-secret view of a stored integration."""

    id: str
    platform: Platform
    store_name: str
    store_url: str
    status: str
    last_sync: str | None = None
    error_message: str | None = None


class ImportOutcome(CamelModel):
    """Result of importing one catalog item into the destination platform."""

    success: bool
    sku: str | None = None
    remote_product_id: str | None = None
    error_message: str | None = None
    error_kind: ErrorKind | None = None
    used_demo_fallback: bool = False


class BatchFailure(CamelModel):
    """One failing item in a batch summary."""

    sku: str
    error_kind: ErrorKind | None = None
    error_message: str | None = None


class BatchSummary(CamelModel):
    """Aggregate result of a sequential batch import."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    used_demo_fallback: bool = False
    failures: list[BatchFailure] = Field(default_factory=list)
    outcomes: list[ImportOutcome] = Field(default_factory=list)
