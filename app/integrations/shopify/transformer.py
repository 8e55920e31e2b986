"""
Shopify data transformation service.
Builds camouflaged Shopify product payloads from normalized catalog items:
substitute title and image, original SKU, price and stock preserved.
"""

import base64
from dataclasses import dataclass
from decimal import Decimal

import structlog

from app.config import settings
from app.models.broker import UNCATEGORIZED, ImportRequest
from app.models.shopify import ShopifyImageCreate, ShopifyProductCreate, ShopifyVariantCreate

logger = structlog.get_logger()

CAMOUFLAGE_IMAGE_FILENAME = "product.jpg"


@dataclass(frozen=True)
class ImageReference:
    """How the camouflage image is attached to a product."""

    attachment: str | None = None  # base64, inline strategy
    src: str | None = None  # URL of an already uploaded asset

    @classmethod
    def inline(cls, image_bytes: bytes) -> "ImageReference":
        return cls(attachment=base64.b64encode(image_bytes).decode("ascii"))

    def to_image(self, alt: str) -> ShopifyImageCreate:
        if self.src:
            return ShopifyImageCreate(src=self.src, alt=alt)
        return ShopifyImageCreate(
            attachment=self.attachment,
            filename=CAMOUFLAGE_IMAGE_FILENAME,
            alt=alt,
        )


def format_price(value: Decimal) -> str:
    """Render a price the way Shopify expects ('19.99')."""
    return str(value.quantize(Decimal("0.01")))


class ShopifyTransformer:
    """Service for building camouflaged Shopify products."""

    @staticmethod
    def inventory_for(request: ImportRequest) -> int:
        """Source stock, or the fixed safe default when so configured."""
        if settings.camouflage_inventory_mode == "fixed":
            return settings.camouflage_fixed_inventory
        return max(request.item.stock_quantity, 0)

    @staticmethod
    def product_type_for(request: ImportRequest) -> str:
        """Source category as the product type; blank for uncategorized items."""
        category = (request.item.category or "").strip()
        return "" if category.lower() == UNCATEGORIZED else category

    @staticmethod
    def build_product(request: ImportRequest, image: ImageReference | None) -> ShopifyProductCreate:
        """
        Build the product-creation payload.

        The original title and image never reach the destination; the body
        only references the original SKU and the product type carries the source
        category. Tax is disabled on the variant.

        Args:
            request: Import request (catalog item + camouflage overrides)
            image: Uploaded or inline camouflage image, if any

        Returns:
            ShopifyProductCreate ready for to_payload()
        """
        item = request.item
        variant = ShopifyVariantCreate(
            sku=item.sku,
            price=format_price(item.effective_price),
            inventory_quantity=ShopifyTransformer.inventory_for(request),
            inventory_management="shopify",
            inventory_policy="deny",
            taxable=False,
        )
        images = [image.to_image(alt=request.camouflage_title)] if image else []

        return ShopifyProductCreate(
            title=request.camouflage_title,
            body_html=settings.camouflage_body_template.format(sku=item.sku),
            vendor=settings.camouflage_vendor,
            product_type=ShopifyTransformer.product_type_for(request),
            status="active",
            variants=[variant],
            images=images,
        )

    @staticmethod
    def build_placeholder(image: ImageReference) -> ShopifyProductCreate:
        """Draft product used only to host an uploaded image (placeholder strategy)."""
        return ShopifyProductCreate(
            title="Image upload placeholder",
            body_html="",
            vendor=settings.camouflage_vendor,
            status="draft",
            variants=[ShopifyVariantCreate(sku="IMAGE-PLACEHOLDER", price="0.00")],
            images=[image.to_image(alt="")],
        )
