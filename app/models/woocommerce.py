"""
Pydantic models for WooCommerce REST API product payloads.
Tolerates both the wp-json (v2/v3) shape and the legacy wc-api shape.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class WooCommerceImage(BaseModel):
    """WooCommerce product image."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    src: str | None = None


class WooCommerceCategory(BaseModel):
    """WooCommerce product category."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    name: str = ""


class WooCommerceProduct(BaseModel):
    """WooCommerce product as returned by GET /products."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    name: str = ""
    sku: str | None = None
    price: str | None = None
    regular_price: str | None = None
    sale_price: str | None = None
    stock_quantity: int | None = None
    manage_stock: bool | None = None
    status: str | None = None
    description: str | None = None
    short_description: str | None = None
    permalink: str | None = None
    images: list[WooCommerceImage] = Field(default_factory=list)
    categories: list[WooCommerceCategory] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _legacy_shape(cls, data: Any) -> Any:
        # Legacy wc-api uses "title" and plain category names
        if isinstance(data, dict):
            data = dict(data)
            if not data.get("name") and data.get("title"):
                data["name"] = data["title"]
            categories = data.get("categories")
            if isinstance(categories, list):
                data["categories"] = [
                    {"name": c} if isinstance(c, str) else c for c in categories
                ]
        return data

    @field_validator("price", "regular_price", "sale_price", mode="before")
    @classmethod
    def _price_as_string(cls, value: Any) -> str | None:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def _stock_as_int(cls, value: Any) -> int | None:
        if value in (None, ""):
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None
