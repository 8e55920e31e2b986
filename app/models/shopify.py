"""
Pydantic models for Shopify Admin REST API payloads.
Covers the product-creation request and the shop/product responses the
broker reads back.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ShopifyVariantCreate(BaseModel):
    """Variant block of a product-creation request."""

    sku: str
    price: str
    inventory_quantity: int = 0
    inventory_management: str = "shopify"
    inventory_policy: str = "deny"
    taxable: bool = False
    requires_shipping: bool = True


class ShopifyImageCreate(BaseModel):
    """Image block: either an inline base64 attachment or a remote src."""

    attachment: Optional[str] = Field(default=None, repr=False)
    src: Optional[str] = None
    filename: Optional[str] = None
    alt: Optional[str] = None


class ShopifyProductCreate(BaseModel):
    """Body of POST /products.json (wrapped as {"product": ...})."""

    title: str
    body_html: str
    vendor: str
    product_type: str = ""
    status: str = "active"
    tags: str = ""
    variants: list[ShopifyVariantCreate]
    images: list[ShopifyImageCreate] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"product": self.model_dump(exclude_none=True)}


class ShopifyShop(BaseModel):
    """Subset of GET /shop.json the prober reports back."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    name: str = ""
    domain: Optional[str] = None
    myshopify_domain: Optional[str] = None
    currency: Optional[str] = None
    plan_name: Optional[str] = None


class ShopifyImage(BaseModel):
    """Image returned on a created product."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    src: Optional[str] = None


class ShopifyProduct(BaseModel):
    """Product returned by POST /products.json."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""
    status: Optional[str] = None
    images: list[ShopifyImage] = Field(default_factory=list)
