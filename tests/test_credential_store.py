"""
Tests for the encrypted credential store.
"""

import pytest

from app.integrations.errors import DecryptionError, ErrorKind, InvalidInputError, PersistenceError
from app.models.broker import Platform
from app.models.database import LogLevel
from app.services.credential_store import CredentialStore
from tests.fakes import (
    MERCHANT_ID,
    OTHER_MERCHANT_ID,
    WOO_SECRETS,
    WOO_STORE_URL,
    InMemoryIntegrationTable,
)


class BrokenTable(InMemoryIntegrationTable):
    def upsert(self, merchant_id, platform, record):
        raise PersistenceError("Failed to save integration")

    def list_by_platform(self, merchant_id, platform):
        raise PersistenceError("Failed to list integrations")


class TestSave:
    """Tests for CredentialStore.save."""

    def test_save_encrypts_secrets(self, store, table):
        result = store.save(MERCHANT_ID, Platform.WOOCOMMERCE, "Shop", WOO_STORE_URL, dict(WOO_SECRETS))

        assert result.success is True
        row = table.get_by_id(result.integration.id)
        assert row.encrypted_credentials
        assert "ck_test" not in row.encrypted_credentials
        assert "cs_test" not in row.encrypted_credentials
        assert row.is_active is True

    def test_save_twice_keeps_one_active_row(self, store, table):
        first = store.save(MERCHANT_ID, Platform.WOOCOMMERCE, "Shop", WOO_STORE_URL, dict(WOO_SECRETS)).integration
        second = store.save(MERCHANT_ID, Platform.WOOCOMMERCE, "Shop", WOO_STORE_URL, dict(WOO_SECRETS)).integration

        rows = table.list_by_platform(MERCHANT_ID, Platform.WOOCOMMERCE)
        assert len(rows) == 1
        assert first.id == second.id
        assert rows[0].updated_at >= first.updated_at
        assert rows[0].updated_at == second.updated_at

    def test_platforms_are_stored_separately(self, store, table):
        store.save(MERCHANT_ID, Platform.WOOCOMMERCE, "Shop", WOO_STORE_URL, dict(WOO_SECRETS))
        store.save(MERCHANT_ID, Platform.SHOPIFY, "Camo", "https://camo.myshopify.com", {"accessToken": "shpat"})

        assert len(table.rows) == 2

    def test_trailing_slash_is_stripped(self, store):
        result = store.save(MERCHANT_ID, Platform.WOOCOMMERCE, "Shop", "https://shop.example/", dict(WOO_SECRETS))
        assert result.integration.store_url == "https://shop.example"

    @pytest.mark.parametrize(
        "store_url,secrets,field",
        [
            ("shop.example", WOO_SECRETS, "storeUrl"),
            ("", WOO_SECRETS, "storeUrl"),
            (WOO_STORE_URL, {"consumerKey": "ck_test", "consumerSecret": " "}, "consumerSecret"),
            (WOO_STORE_URL, {"consumerSecret": "cs_test"}, "consumerKey"),
        ],
    )
    def test_invalid_input_names_the_field(self, store, table, store_url, secrets, field):
        result = store.save(MERCHANT_ID, Platform.WOOCOMMERCE, "Shop", store_url, dict(secrets))

        assert result.success is False
        assert result.error_kind == ErrorKind.INVALID_INPUT
        assert field in result.error_detail
        assert result.integration is None
        assert table.rows == {}

    def test_missing_store_name(self, store):
        result = store.save(MERCHANT_ID, Platform.WOOCOMMERCE, "  ", WOO_STORE_URL, dict(WOO_SECRETS))

        assert result.error_kind == ErrorKind.INVALID_INPUT
        assert "storeName" in result.error_detail

    def test_persistence_failure_is_returned_without_secrets(self, cipher, activity, sink, assert_no_secrets):
        store = CredentialStore(BrokenTable(), cipher, activity)

        result = store.save(MERCHANT_ID, Platform.WOOCOMMERCE, "Shop", WOO_STORE_URL, dict(WOO_SECRETS))

        assert result.success is False
        assert result.error_kind == ErrorKind.PERSISTENCE_ERROR
        assert result.error_detail == "Failed to save integration"
        assert sink.entries[-1].level == LogLevel.ERROR
        assert_no_secrets(WOO_SECRETS.values(), result.model_dump_json())


class TestList:
    """Tests for CredentialStore.list."""

    def test_list_strips_encrypted_blob(self, store, woo_integration):
        result = store.list(MERCHANT_ID, Platform.WOOCOMMERCE)

        assert result.success is True
        assert len(result.integrations) == 1
        assert result.integrations[0].encrypted_credentials is None
        assert result.integrations[0].store_name == "Widget Shop"

    def test_list_is_scoped_to_merchant(self, store, woo_integration):
        assert store.list(OTHER_MERCHANT_ID, Platform.WOOCOMMERCE).integrations == []

    def test_persistence_failure_is_returned(self, cipher, activity, sink):
        store = CredentialStore(BrokenTable(), cipher, activity)

        result = store.list(MERCHANT_ID, Platform.WOOCOMMERCE)

        assert result.success is False
        assert result.error_kind == ErrorKind.PERSISTENCE_ERROR
        assert result.integrations == []
        assert sink.entries[-1].level == LogLevel.ERROR

    def test_summary_shape(self, woo_integration):
        summary = woo_integration.to_summary().model_dump(by_alias=True, mode="json")

        assert set(summary) == {"id", "platform", "storeName", "storeUrl", "status", "lastSync", "errorMessage"}
        assert summary["status"] == "connected"
        assert summary["errorMessage"] is None


class TestLoadSecrets:
    """Tests for CredentialStore.load_secrets."""

    def test_load_secrets_round_trip(self, store, woo_integration):
        bundle = store.load_secrets(woo_integration.id)

        assert bundle.platform is Platform.WOOCOMMERCE
        assert bundle.base_url == WOO_STORE_URL
        assert bundle.secret("consumerKey") == "ck_test"
        assert bundle.secret("consumerSecret") == "cs_test"

    def test_bundle_repr_hides_secrets(self, store, woo_integration):
        assert "cs_test" not in repr(store.load_secrets(woo_integration.id))

    def test_unknown_integration(self, store):
        with pytest.raises(InvalidInputError):
            store.load_secrets("missing")

    def test_corrupted_blob_is_decryption_error(self, store, table, woo_integration, sink):
        table.rows[woo_integration.id] = woo_integration.model_copy(
            update={"encrypted_credentials": "corrupted"}
        )

        with pytest.raises(DecryptionError):
            store.load_secrets(woo_integration.id)
        assert sink.entries[-1].level == LogLevel.ERROR


class TestDeactivate:
    """Tests for CredentialStore.deactivate."""

    def test_deactivate_hides_from_get_active(self, store, woo_integration):
        store.deactivate(MERCHANT_ID, woo_integration.id)

        assert store.get_active(MERCHANT_ID, Platform.WOOCOMMERCE) is None
        rows = store.list(MERCHANT_ID, Platform.WOOCOMMERCE).integrations
        assert rows[0].to_summary().status == "disconnected"

    def test_other_merchant_cannot_deactivate(self, store, woo_integration):
        with pytest.raises(InvalidInputError):
            store.deactivate(OTHER_MERCHANT_ID, woo_integration.id)
        assert store.get_active(MERCHANT_ID, Platform.WOOCOMMERCE) is not None

    def test_unknown_integration_returns_none(self, store):
        assert store.deactivate(MERCHANT_ID, "missing") is None
