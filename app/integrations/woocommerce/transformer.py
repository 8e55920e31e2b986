"""
WooCommerce data transformation service.
Transforms raw WooCommerce product payloads into normalized CatalogItems.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from pydantic import ValidationError

from app.models.broker import UNCATEGORIZED, CatalogItem
from app.models.woocommerce import WooCommerceProduct

logger = structlog.get_logger()


def parse_price(value: str | None) -> Decimal | None:
    """Parse a WooCommerce price string ('19.99', '1,299.90'); None if blank, invalid or not finite."""
    if value is None:
        return None
    cleaned = value.replace(",", "").replace("$", "").strip()
    if not cleaned:
        return None
    try:
        price = Decimal(cleaned)
    except InvalidOperation:
        return None
    return price if price.is_finite() else None


class WooCommerceTransformer:
    """Service for normalizing WooCommerce product data."""

    @staticmethod
    def to_catalog_item(raw: dict[str, Any], currency_code: str) -> CatalogItem | None:
        """
        Normalize one raw product.

        Field rules: missing SKU becomes PRODUCT-{id}; regular price falls back
        to the current price; untracked stock is 0; first category and first
        image win.

        Args:
            raw: Product dict from the products endpoint
            currency_code: Store currency to stamp on the item

        Returns:
            CatalogItem, or None if the payload has no usable id
        """
        try:
            product = WooCommerceProduct.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Skipping malformed WooCommerce product",
                product_id=raw.get("id"),
                error_count=e.error_count(),
            )
            return None

        regular_price = parse_price(product.regular_price)
        if regular_price is None:
            regular_price = parse_price(product.price) or Decimal("0")

        image_url = next((img.src for img in product.images if img.src), None)
        category = next((c.name for c in product.categories if c.name), UNCATEGORIZED)

        try:
            return CatalogItem(
                remote_id=product.id,
                name=product.name,
                sku=(product.sku or "").strip() or f"PRODUCT-{product.id}",
                regular_price=regular_price,
                sale_price=parse_price(product.sale_price),
                image_url=image_url,
                stock_quantity=product.stock_quantity or 0,
                category=category,
                description=product.description or product.short_description or "",
                permalink=product.permalink,
                currency_code=currency_code,
            )
        except ValidationError as e:
            logger.warning(
                "Skipping WooCommerce product that does not normalize",
                product_id=product.id,
                error_count=e.error_count(),
            )
            return None

    @classmethod
    def to_catalog_items(cls, raw_items: list[dict[str, Any]], currency_code: str) -> list[CatalogItem]:
        """Normalize a page of raw products, skipping malformed entries."""
        items = []
        for raw in raw_items:
            item = cls.to_catalog_item(raw, currency_code)
            if item is not None:
                items.append(item)
        return items
