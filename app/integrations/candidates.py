"""
Candidate endpoint tables for the connectivity prober and catalog fetcher.

WooCommerce's REST API lives at different paths depending on permalink
settings, subdirectory installs and plugin version. Candidates are tried in
order; the first one answering with the expected JSON shape wins.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AuthScheme(str, Enum):
    """How credentials are attached to a request."""

    BASIC = "basic"  # Authorization: Basic base64(key:secret)
    QUERY = "query"  # consumer_key/consumer_secret query parameters
    SHOPIFY_TOKEN = "shopify_token"  # X-Shopify-Access-Token header


class ResponseShape(str, Enum):
    """Expected JSON shape of a successful product listing."""

    LIST = "list"  # [ {...}, ... ]
    PRODUCTS_KEY = "products_key"  # {"products": [ ... ]}
    SHOP_KEY = "shop_key"  # {"shop": {...}}


@dataclass(frozen=True)
class EndpointCandidate:
    """One guessable REST endpoint shape."""

    name: str
    products_path: str
    auth: AuthScheme
    shape: ResponseShape
    api_version: str
    params: dict[str, str] = field(default_factory=dict)
    total_header: str = "X-WP-Total"
    page_param: str = "page"
    page_size_param: str = "per_page"
    # Path of the store-currency resource, relative to the base URL
    currency_path: str | None = None

    def describe(self) -> str:
        """Non-secret description used in logs and ApiNotFound details."""
        suffix = ""
        if self.params:
            suffix = "?" + "&".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.products_path}{suffix} ({self.auth.value})"

    def parse_items(self, body: Any) -> list[dict[str, Any]] | None:
        """Return the product list if body matches the expected shape, else None."""
        if self.shape is ResponseShape.LIST and isinstance(body, list):
            return [item for item in body if isinstance(item, dict)]
        if self.shape is ResponseShape.PRODUCTS_KEY and isinstance(body, dict):
            products = body.get("products")
            if isinstance(products, list):
                return [item for item in products if isinstance(item, dict)]
        return None


WOOCOMMERCE_CANDIDATES: tuple[EndpointCandidate, ...] = (
    EndpointCandidate(
        name="wp-json-v3",
        products_path="/wp-json/wc/v3/products",
        auth=AuthScheme.BASIC,
        shape=ResponseShape.LIST,
        api_version="v3",
        currency_path="/wp-json/wc/v3/data/currencies/current",
    ),
    EndpointCandidate(
        name="wp-json-v2",
        products_path="/wp-json/wc/v2/products",
        auth=AuthScheme.BASIC,
        shape=ResponseShape.LIST,
        api_version="v2",
    ),
    EndpointCandidate(
        name="index-php-v3",
        products_path="/index.php/wp-json/wc/v3/products",
        auth=AuthScheme.BASIC,
        shape=ResponseShape.LIST,
        api_version="v3",
        currency_path="/index.php/wp-json/wc/v3/data/currencies/current",
    ),
    EndpointCandidate(
        name="rest-route-v3",
        products_path="/",
        params={"rest_route": "/wc/v3/products"},
        auth=AuthScheme.BASIC,
        shape=ResponseShape.LIST,
        api_version="v3",
    ),
    EndpointCandidate(
        name="wp-json-v3-query-auth",
        products_path="/wp-json/wc/v3/products",
        auth=AuthScheme.QUERY,
        shape=ResponseShape.LIST,
        api_version="v3",
    ),
    EndpointCandidate(
        name="legacy-wc-api-v3",
        products_path="/wc-api/v3/products",
        auth=AuthScheme.BASIC,
        shape=ResponseShape.PRODUCTS_KEY,
        api_version="legacy-v3",
        total_header="X-WC-Total",
        page_size_param="filter[limit]",
    ),
)

DEFAULT_WOOCOMMERCE_CANDIDATE = WOOCOMMERCE_CANDIDATES[0]


def woocommerce_candidate(name: str | None) -> EndpointCandidate:
    """Look up a candidate by name, falling back to the standard v3 path."""
    for candidate in WOOCOMMERCE_CANDIDATES:
        if candidate.name == name:
            return candidate
    return DEFAULT_WOOCOMMERCE_CANDIDATE


def shopify_shop_candidate(api_version: str) -> EndpointCandidate:
    """The single canonical Shopify probe endpoint."""
    return EndpointCandidate(
        name=f"admin-{api_version}",
        products_path=f"/admin/api/{api_version}/shop.json",
        auth=AuthScheme.SHOPIFY_TOKEN,
        shape=ResponseShape.SHOP_KEY,
        api_version=api_version,
        total_header="",
    )
