"""
Integration broker: the single action-tag entry point per platform.

Translates `{action, ...payload}` requests from the UI layer into calls on
the credential store, prober, catalog fetcher and importer, and renders every
outcome as `{success: true, ...}` or `{success: false, error, errorKind}`.
"""

import base64
import binascii
from typing import Any

import structlog
from pydantic import ValidationError

from app.integrations.errors import ApiNotFoundError, BrokerError, InvalidInputError
from app.integrations.prober import ConnectivityProber
from app.models.broker import CatalogItem, ImportRequest, OperationResult, Platform
from app.services.activity_logger import ActivityLogger
from app.services.catalog_fetcher import CatalogFetcher
from app.services.credential_store import CredentialStore
from app.services.product_importer import RemoteProductImporter
from app.utils.url_parsing import host_of, shopify_shop_url

logger = structlog.get_logger()

SOURCE = "BROKER"

SUPPORTED_ACTIONS = {
    Platform.WOOCOMMERCE: ("test", "save", "list", "fetch_products"),
    Platform.SHOPIFY: ("test", "save", "list", "import_product", "import_products"),
}

# Keys sent by older UI builds, mapped onto CatalogItem fields
LEGACY_ITEM_KEYS = {
    "id": "remoteId",
    "price": "regularPrice",
    "stock": "stockQuantity",
    "image": "imageUrl",
}


def failure(error: BrokerError) -> dict[str, Any]:
    """Render a BrokerError as a failure response body."""
    body = {"success": False, "error": error.detail, "errorKind": error.kind.value}
    if isinstance(error, ApiNotFoundError) and error.attempted:
        body["attempted"] = error.attempted
    return body


def result_failure(result: OperationResult) -> dict[str, Any]:
    body = {
        "success": False,
        "error": result.error_detail,
        "errorKind": result.error_kind.value if result.error_kind else None,
    }
    attempted = getattr(result, "attempted", None)
    if attempted:
        body["attempted"] = attempted
    return body


def decode_image(value: Any, field: str = "camouflageImage") -> bytes:
    """
    Decode a base64 camouflage image, optionally wrapped in a data: URL.

    Raises:
        InvalidInputError: Missing or undecodable image
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"Missing required field: {field}")

    data = value.strip()
    if data.startswith("data:"):
        _, _, data = data.partition(",")
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError(f"{field} is not valid base64 image data") from e
    if not decoded:
        raise InvalidInputError(f"{field} is empty")
    return decoded


def parse_catalog_item(raw: Any) -> CatalogItem:
    """
    Build a CatalogItem from a UI product object (camelCase or legacy keys).

    Raises:
        InvalidInputError: Missing or malformed product
    """
    if not isinstance(raw, dict):
        raise InvalidInputError("Missing required field: product")

    data = {LEGACY_ITEM_KEYS.get(k, k): v for k, v in raw.items() if k not in LEGACY_ITEM_KEYS}
    for legacy, field in LEGACY_ITEM_KEYS.items():
        if legacy in raw and field not in data:
            data[field] = raw[legacy]

    if not str(data.get("sku") or "").strip():
        raise InvalidInputError("Missing required field: sku")
    data.setdefault("remoteId", data["sku"])
    try:
        return CatalogItem.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise InvalidInputError(f"Invalid product fields: {fields}") from e


def build_import_request(item: CatalogItem, title: Any, image_bytes: bytes) -> ImportRequest:
    if not isinstance(title, str) or not title.strip():
        raise InvalidInputError("Missing required field: camouflageTitle")
    return ImportRequest(item=item, camouflage_title=title.strip(), camouflage_image_bytes=image_bytes)


def _optional_int(payload: dict[str, Any], *keys: str) -> int | None:
    for key in keys:
        value = payload.get(key)
        if value is None or value == "":
            continue
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"{key} must be an integer") from e
    return None


class IntegrationBroker:
    """Dispatches action-tagged requests for one merchant and platform."""

    def __init__(
        self,
        credential_store: CredentialStore,
        prober: ConnectivityProber,
        fetcher: CatalogFetcher,
        importer: RemoteProductImporter,
        activity: ActivityLogger,
    ):
        self.credential_store = credential_store
        self.prober = prober
        self.fetcher = fetcher
        self.importer = importer
        self.activity = activity

    async def dispatch(self, merchant_id: str, platform: Platform, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Run one action. Never raises.

        Args:
            merchant_id: Merchant the request acts for
            platform: Target platform
            payload: Request body; `action` selects the operation

        Returns:
            Response body with a `success` flag
        """
        action = payload.get("action")
        if action not in SUPPORTED_ACTIONS[platform]:
            self.activity.warning(
                SOURCE,
                f"Unsupported action: {action}",
                details={"platform": platform.value, "action": action},
                merchant_id=merchant_id,
            )
            return failure(InvalidInputError(f"Unsupported action: {action}"))

        handler = getattr(self, f"_{action}")
        try:
            return await handler(merchant_id, platform, payload)
        except BrokerError as e:
            return failure(e)
        except Exception as e:
            logger.exception("Unexpected error handling action", action=action, platform=platform.value)
            self.activity.error(
                SOURCE,
                "Unexpected error handling action",
                details={"platform": platform.value, "action": action, "errorType": type(e).__name__},
                merchant_id=merchant_id,
            )
            return {"success": False, "error": "Internal error"}

    # Actions

    async def _test(self, merchant_id: str, platform: Platform, payload: dict[str, Any]) -> dict[str, Any]:
        base_url, secrets = self._credentials_from(platform, payload)
        result = await self.prober.probe(platform, base_url, secrets, merchant_id=merchant_id)
        if not result.success:
            return result_failure(result)
        key = "shopInfo" if platform is Platform.SHOPIFY else "storeInfo"
        return {"success": True, key: result.platform_metadata}

    async def _save(self, merchant_id: str, platform: Platform, payload: dict[str, Any]) -> dict[str, Any]:
        base_url, secrets = self._credentials_from(platform, payload)
        result = await self.prober.probe(platform, base_url, secrets, merchant_id=merchant_id)
        if not result.success:
            return result_failure(result)

        metadata = result.platform_metadata or {}
        store_name = (
            payload.get("storeName")
            or metadata.get("shopName")
            or host_of(metadata.get("storeUrl") or base_url)
        )
        saved = self.credential_store.save(
            merchant_id,
            platform,
            store_name,
            metadata.get("storeUrl") or base_url,
            secrets,
            metadata=metadata,
        )
        if not saved.success:
            return result_failure(saved)
        return {
            "success": True,
            "message": "Integration saved successfully",
            "integration": saved.integration.to_summary().model_dump(by_alias=True, mode="json"),
        }

    async def _list(self, merchant_id: str, platform: Platform, payload: dict[str, Any]) -> dict[str, Any]:
        listed = self.credential_store.list(merchant_id, platform)
        if not listed.success:
            return result_failure(listed)
        return {
            "success": True,
            "integrations": [
                row.to_summary().model_dump(by_alias=True, mode="json") for row in listed.integrations
            ],
        }

    async def _fetch_products(self, merchant_id: str, platform: Platform, payload: dict[str, Any]) -> dict[str, Any]:
        result = await self.fetcher.fetch_page(
            merchant_id,
            integration_id=payload.get("integrationId"),
            page_number=_optional_int(payload, "page") or 1,
            page_size=_optional_int(payload, "per_page", "perPage"),
            target_currency=payload.get("currency"),
        )
        if not result.success:
            return result_failure(result)

        page = result.page
        return {
            "success": True,
            "products": [item.model_dump(by_alias=True, mode="json") for item in page.items],
            "totalCount": page.total_count,
            "page": page.page,
            "perPage": page.page_size,
            "storeInfo": {
                "name": page.store_display_name,
                "url": page.store_url,
                "totalProducts": page.total_count,
                "currency": page.currency_code,
                "exchangeRate": str(page.exchange_rate),
                "priceConverted": page.price_converted,
            },
        }

    async def _import_product(self, merchant_id: str, platform: Platform, payload: dict[str, Any]) -> dict[str, Any]:
        product = payload.get("product")
        item = parse_catalog_item(product)
        title = payload.get("camouflageTitle") or (product or {}).get("camouflageTitle")
        image = payload.get("camouflageImage") or (product or {}).get("camouflageImage")
        request = build_import_request(item, title, decode_image(image))

        outcome = await self.importer.import_item(
            merchant_id, request, integration_id=payload.get("integrationId")
        )
        if not outcome.success:
            return {
                "success": False,
                "error": outcome.error_message,
                "errorKind": outcome.error_kind.value if outcome.error_kind else None,
                "sku": outcome.sku,
            }

        body = outcome.model_dump(by_alias=True, mode="json", exclude_none=True)
        if outcome.used_demo_fallback:
            body["message"] = f"Demo mode: {item.sku} was not sent to Shopify"
        else:
            body["message"] = f"Imported {item.sku} into Shopify as \"{request.camouflage_title}\""
        return body

    async def _import_products(self, merchant_id: str, platform: Platform, payload: dict[str, Any]) -> dict[str, Any]:
        products = payload.get("products")
        if not isinstance(products, list) or not products:
            raise InvalidInputError("Missing required field: products")

        image_bytes = decode_image(payload.get("camouflageImage"))
        requests = [
            build_import_request(parse_catalog_item(p), payload.get("camouflageTitle"), image_bytes)
            for p in products
        ]
        summary = await self.importer.import_batch(
            merchant_id, requests, integration_id=payload.get("integrationId")
        )
        return {"success": True, "summary": summary.model_dump(by_alias=True, mode="json")}

    @staticmethod
    def _credentials_from(platform: Platform, payload: dict[str, Any]) -> tuple[str, dict[str, str]]:
        """Pull the base URL and secret fields for a platform out of a request body."""
        if platform is Platform.SHOPIFY:
            base_url = shopify_shop_url(
                payload.get("shopUrl") or payload.get("shopName") or payload.get("storeUrl")
            )
        else:
            base_url = payload.get("storeUrl") or ""

        secrets = {}
        for field in platform.secret_fields:
            value = payload.get(field)
            secrets[field] = value.strip() if isinstance(value, str) else ""
        return base_url, secrets
