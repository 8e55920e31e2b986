"""
URL normalization for store base URLs supplied by merchants.
"""
from urllib.parse import urlparse

from app.integrations.errors import InvalidInputError


def normalize_base_url(url: str | None, field: str = "storeUrl") -> str:
    """
    Validate and normalize a store base URL.

    Requires an explicit http:// or https:// scheme and a host; strips
    whitespace and trailing slashes.

    Raises:
        InvalidInputError: If the URL is empty, lacks a scheme or has no host
    """
    if not url or not url.strip():
        raise InvalidInputError(f"Missing required field: {field}")

    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        raise InvalidInputError(f"{field} must start with http:// or https://")

    parsed = urlparse(url)
    if not parsed.netloc:
        raise InvalidInputError(f"{field} has no host")

    return url.rstrip("/")


def shopify_shop_url(shop: str | None, field: str = "shopUrl") -> str:
    """
    Expand a Shopify shop handle or domain into an https base URL.

    Accepts 'myshop', 'myshop.myshopify.com' or a full URL. Full URLs keep
    their own scheme and go through the usual validation.
    """
    if not shop or not shop.strip():
        raise InvalidInputError(f"Missing required field: {field}")

    shop = shop.strip()
    if "://" in shop:
        return normalize_base_url(shop, field)

    shop = shop.rstrip("/")
    if "." not in shop:
        shop = f"{shop}.myshopify.com"
    return normalize_base_url(f"https://{shop}", field)


def host_of(url: str) -> str:
    """Return the host part of a URL (used as a display fallback)."""
    return urlparse(url).netloc
