"""
Shared pytest fixtures for the integration broker test suite.

Settings are read from the environment when `app.config` is first imported,
so required variables are set here before any `app` import.
"""

import json
import os

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("CREDENTIAL_ENCRYPTION_KEY", "test-encryption-secret")
os.environ["RETRY_INITIAL_DELAY_SECONDS"] = "0"
os.environ["APP_ENVIRONMENT"] = "test"

import pytest  # noqa: E402

from app.integrations.crypto import CredentialCipher  # noqa: E402
from app.models.broker import Platform  # noqa: E402
from app.services.activity_logger import ActivityLogger  # noqa: E402
from app.services.credential_store import CredentialStore  # noqa: E402
from tests.fakes import (  # noqa: E402
    MERCHANT_ID,
    SHOPIFY_SECRETS,
    SHOPIFY_STORE_URL,
    WOO_SECRETS,
    WOO_STORE_URL,
    InMemoryIntegrationTable,
    InMemoryLogSink,
)


@pytest.fixture
def table():
    return InMemoryIntegrationTable()


@pytest.fixture
def sink():
    return InMemoryLogSink()


@pytest.fixture
def activity(sink):
    return ActivityLogger(sink=sink, buffer_size=500)


@pytest.fixture
def cipher():
    return CredentialCipher("test-encryption-secret")


@pytest.fixture
def store(table, cipher, activity):
    return CredentialStore(table=table, cipher=cipher, activity=activity)


@pytest.fixture
def woo_integration(store):
    """A saved WooCommerce integration discovered on the standard v3 path."""
    result = store.save(
        MERCHANT_ID,
        Platform.WOOCOMMERCE,
        "Widget Shop",
        WOO_STORE_URL,
        dict(WOO_SECRETS),
        metadata={"apiCandidate": "wp-json-v3", "apiVersion": "v3", "currency": "MXN"},
    )
    assert result.success
    return result.integration


@pytest.fixture
def shopify_integration(store):
    result = store.save(
        MERCHANT_ID,
        Platform.SHOPIFY,
        "Camo Shop",
        SHOPIFY_STORE_URL,
        dict(SHOPIFY_SECRETS),
        metadata={"shopName": "Camo Shop", "currency": "USD"},
    )
    assert result.success
    return result.integration


@pytest.fixture
def assert_no_secrets(sink, activity):
    """
    Return a checker asserting that none of the given secret values appear
    in the payloads, the persisted log entries or the in-memory log view.
    """

    def check(secret_values, *payloads):
        haystacks = [json.dumps([e.model_dump(mode="json") for e in sink.entries])]
        haystacks.append(activity.export_text())
        haystacks.extend(p if isinstance(p, str) else repr(p) for p in payloads)
        for secret in secret_values:
            for haystack in haystacks:
                assert secret not in haystack

    return check
