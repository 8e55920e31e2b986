"""
Tests for action dispatch in the integration broker.

All components are real; both remote platforms are served by one
httpx.MockTransport that routes on host.
"""

import base64
from decimal import Decimal

import httpx
import pytest

from app.integrations.errors import InvalidInputError, PersistenceError
from app.integrations.prober import ConnectivityProber
from app.models.broker import Platform
from app.services.broker import IntegrationBroker, decode_image, parse_catalog_item
from app.services.catalog_fetcher import CatalogFetcher
from app.services.product_importer import RemoteProductImporter
from tests.fakes import MERCHANT_ID, OTHER_MERCHANT_ID, mock_transport

IMAGE_B64 = base64.b64encode(b"camouflage-image").decode()
WIDGET = {"id": 42, "sku": "ABC", "name": "Widget", "regular_price": "19.99"}


def remote_handler(request):
    host = request.url.host
    if host == "shop.example":
        if "currencies" in request.url.path:
            return httpx.Response(200, json={"code": "MXN"})
        if request.headers.get("Authorization") is None:
            return httpx.Response(401)
        return httpx.Response(200, json=[WIDGET], headers={"X-WP-Total": "1"})
    if host == "camo-shop.myshopify.com":
        if request.headers.get("X-Shopify-Access-Token") != "shpat_test_token":
            return httpx.Response(401, json={"errors": "Invalid API key or access token"})
        if request.url.path.endswith("/shop.json"):
            return httpx.Response(200, json={"shop": {"name": "Camo Shop", "currency": "USD"}})
        if request.url.path.endswith("/products/count.json"):
            return httpx.Response(200, json={"count": 0})
        if request.method == "POST":
            return httpx.Response(201, json={"product": {"id": 777, "title": "Blue Mug"}})
    return httpx.Response(404)


@pytest.fixture
def transport():
    return mock_transport(remote_handler)


@pytest.fixture
def broker(store, activity, transport):
    return IntegrationBroker(
        credential_store=store,
        prober=ConnectivityProber(activity, transport=transport),
        fetcher=CatalogFetcher(store, activity, transport=transport),
        importer=RemoteProductImporter(
            store, activity, transport=transport, image_strategy="inline", demo_fallback_enabled=True
        ),
        activity=activity,
    )


WOO_SAVE = {
    "action": "save",
    "storeName": "Widget Shop",
    "storeUrl": "https://shop.example",
    "consumerKey": "ck_test",
    "consumerSecret": "cs_test",
}
SHOPIFY_SAVE = {"action": "save", "shopUrl": "camo-shop", "accessToken": "shpat_test_token"}


class TestDispatch:
    """Tests for action routing and response envelopes."""

    @pytest.mark.asyncio
    async def test_unsupported_action(self, broker):
        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, {"action": "delete_everything"})

        assert body == {
            "success": False,
            "error": "Unsupported action: delete_everything",
            "errorKind": "InvalidInput",
        }

    @pytest.mark.asyncio
    async def test_action_not_offered_for_platform(self, broker):
        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, {"action": "import_product"})
        assert body["error"] == "Unsupported action: import_product"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, broker, monkeypatch):
        async def explode(*args, **kwargs):
            raise RuntimeError("secret internals")

        monkeypatch.setattr(broker.prober, "probe", explode)

        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, dict(WOO_SAVE, action="test"))

        assert body == {"success": False, "error": "Internal error"}


class TestWooCommerceActions:
    """Tests for test/save/list/fetch_products."""

    @pytest.mark.asyncio
    async def test_test_does_not_persist(self, broker, table):
        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, dict(WOO_SAVE, action="test"))

        assert body["success"] is True
        assert body["storeInfo"]["apiCandidate"] == "wp-json-v3"
        assert body["storeInfo"]["status"] == "connected"
        assert table.rows == {}

    @pytest.mark.asyncio
    async def test_failed_probe_saves_nothing(self, broker, table):
        payload = dict(WOO_SAVE, storeUrl="https://unknown.example")

        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, payload)

        assert body["success"] is False
        assert body["errorKind"] == "ApiNotFound"
        assert len(body["attempted"]) == 6
        assert table.rows == {}

    @pytest.mark.asyncio
    async def test_missing_url_names_field(self, broker):
        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, dict(WOO_SAVE, storeUrl="shop.example"))

        assert body["errorKind"] == "InvalidInput"
        assert "storeUrl" in body["error"]

    @pytest.mark.asyncio
    async def test_save_then_list(self, broker):
        saved = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, dict(WOO_SAVE))
        listed = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, {"action": "list"})

        assert saved["success"] is True
        assert saved["integration"]["storeName"] == "Widget Shop"
        assert listed["integrations"] == [saved["integration"]]
        assert "encryptedCredentials" not in listed["integrations"][0]
        assert "ck_test" not in repr(listed)

    @pytest.mark.asyncio
    async def test_save_storage_failure_is_reported(self, broker, table, monkeypatch):
        def broken_upsert(*args, **kwargs):
            raise PersistenceError("Failed to save integration")

        monkeypatch.setattr(table, "upsert", broken_upsert)

        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, dict(WOO_SAVE))

        assert body == {
            "success": False,
            "error": "Failed to save integration",
            "errorKind": "PersistenceError",
        }

    @pytest.mark.asyncio
    async def test_list_storage_failure_is_reported(self, broker, table, monkeypatch):
        def broken_list(*args, **kwargs):
            raise PersistenceError("Failed to list integrations")

        monkeypatch.setattr(table, "list_by_platform", broken_list)

        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, {"action": "list"})

        assert body["errorKind"] == "PersistenceError"

    @pytest.mark.asyncio
    async def test_list_is_per_merchant(self, broker):
        await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, dict(WOO_SAVE))

        listed = await broker.dispatch(OTHER_MERCHANT_ID, Platform.WOOCOMMERCE, {"action": "list"})

        assert listed == {"success": True, "integrations": []}

    @pytest.mark.asyncio
    async def test_save_then_fetch_products(self, broker, transport, assert_no_secrets):
        await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, dict(WOO_SAVE))

        body = await broker.dispatch(
            MERCHANT_ID, Platform.WOOCOMMERCE, {"action": "fetch_products", "page": 1, "per_page": 10}
        )

        assert body["success"] is True
        assert len(body["products"]) == 1
        product = body["products"][0]
        assert product["remoteId"] == 42
        assert product["sku"] == "ABC"
        assert Decimal(product["regularPrice"]) == Decimal("19.99")
        assert product["stockQuantity"] == 0
        assert body["totalCount"] == 1
        assert body["perPage"] == 10
        assert body["storeInfo"]["name"] == "Widget Shop"
        assert body["storeInfo"]["currency"] == "MXN"
        assert transport.requests[-1].url.params["per_page"] == "10"
        assert_no_secrets(["ck_test", "cs_test"], body)

    @pytest.mark.asyncio
    async def test_fetch_rejects_non_integer_page(self, broker):
        body = await broker.dispatch(MERCHANT_ID, Platform.WOOCOMMERCE, {"action": "fetch_products", "page": "two"})

        assert body["errorKind"] == "InvalidInput"


class TestShopifyActions:
    """Tests for Shopify test/save/import actions."""

    @pytest.mark.asyncio
    async def test_save_expands_shop_handle_and_uses_shop_name(self, broker):
        body = await broker.dispatch(MERCHANT_ID, Platform.SHOPIFY, dict(SHOPIFY_SAVE))

        assert body["success"] is True
        assert body["integration"]["storeUrl"] == "https://camo-shop.myshopify.com"
        assert body["integration"]["storeName"] == "Camo Shop"

    @pytest.mark.asyncio
    async def test_bad_token(self, broker, assert_no_secrets):
        body = await broker.dispatch(MERCHANT_ID, Platform.SHOPIFY, dict(SHOPIFY_SAVE, action="test", accessToken="shpat_wrong"))

        assert body["errorKind"] == "InvalidCredentials"
        assert_no_secrets(["shpat_wrong"], body)

    @pytest.mark.asyncio
    async def test_import_product(self, broker):
        await broker.dispatch(MERCHANT_ID, Platform.SHOPIFY, dict(SHOPIFY_SAVE))

        body = await broker.dispatch(
            MERCHANT_ID,
            Platform.SHOPIFY,
            {
                "action": "import_product",
                "product": {"remoteId": 42, "sku": "ABC", "name": "Widget", "regularPrice": "19.99"},
                "camouflageTitle": "Blue Mug",
                "camouflageImage": f"data:image/jpeg;base64,{IMAGE_B64}",
            },
        )

        assert body["success"] is True
        assert body["remoteProductId"] == "777"
        assert body["usedDemoFallback"] is False
        assert "Blue Mug" in body["message"]

    @pytest.mark.asyncio
    async def test_import_product_demo_mode(self, broker):
        body = await broker.dispatch(
            MERCHANT_ID,
            Platform.SHOPIFY,
            {
                "action": "import_product",
                "product": {"id": 42, "sku": "ABC", "price": "19.99", "stock": 3},
                "camouflageTitle": "Blue Mug",
                "camouflageImage": IMAGE_B64,
            },
        )

        assert body["success"] is True
        assert body["usedDemoFallback"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"camouflageTitle": ""}, "camouflageTitle"),
            ({"camouflageImage": "%%%not-base64%%%"}, "camouflageImage"),
            ({"camouflageImage": None}, "camouflageImage"),
            ({"product": {"name": "No SKU"}}, "sku"),
        ],
    )
    async def test_import_product_invalid_input(self, broker, transport, overrides, field):
        payload = {
            "action": "import_product",
            "product": {"sku": "ABC", "regularPrice": "1"},
            "camouflageTitle": "Blue Mug",
            "camouflageImage": IMAGE_B64,
        }
        payload.update(overrides)

        body = await broker.dispatch(MERCHANT_ID, Platform.SHOPIFY, payload)

        assert body["errorKind"] == "InvalidInput"
        assert field in body["error"]
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_import_products_batch(self, broker):
        await broker.dispatch(MERCHANT_ID, Platform.SHOPIFY, dict(SHOPIFY_SAVE))

        body = await broker.dispatch(
            MERCHANT_ID,
            Platform.SHOPIFY,
            {
                "action": "import_products",
                "products": [{"sku": "A", "regularPrice": "1"}, {"sku": "B", "regularPrice": "2"}],
                "camouflageTitle": "Blue Mug",
                "camouflageImage": IMAGE_B64,
            },
        )

        assert body["success"] is True
        assert body["summary"]["succeeded"] == 2
        assert body["summary"]["failed"] == 0
        assert [o["sku"] for o in body["summary"]["outcomes"]] == ["A", "B"]


class TestPayloadHelpers:
    """Tests for request payload parsing."""

    def test_decode_plain_base64(self):
        assert decode_image(IMAGE_B64) == b"camouflage-image"

    def test_decode_data_url(self):
        assert decode_image(f"data:image/png;base64,{IMAGE_B64}") == b"camouflage-image"

    def test_decode_rejects_garbage(self):
        with pytest.raises(InvalidInputError):
            decode_image("not base64!")

    def test_legacy_item_keys(self):
        item = parse_catalog_item({"id": 9, "sku": "X", "price": "4.50", "stock": 2, "image": "https://img"})

        assert item.remote_id == 9
        assert item.regular_price == Decimal("4.50")
        assert item.stock_quantity == 2
        assert item.image_url == "https://img"

    def test_camel_case_keys_win_over_legacy(self):
        item = parse_catalog_item({"sku": "X", "regularPrice": "10", "price": "4.50"})
        assert item.regular_price == Decimal("10")
