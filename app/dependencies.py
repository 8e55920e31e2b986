"""
Process-wide service wiring for the routers.
Each builder is cached so the app shares one Supabase client, one activity
log view and one broker; tests override them through FastAPI dependency overrides.
"""

from functools import lru_cache

from app.config import settings
from app.integrations.crypto import CredentialCipher
from app.integrations.prober import ConnectivityProber
from app.services.activity_logger import ActivityLogger
from app.services.broker import IntegrationBroker
from app.services.catalog_fetcher import CatalogFetcher
from app.services.credential_store import CredentialStore
from app.services.currency_service import ExchangeRateService
from app.services.product_importer import RemoteProductImporter
from app.services.supabase_service import SupabaseService


@lru_cache
def get_supabase_service() -> SupabaseService:
    return SupabaseService()


@lru_cache
def get_activity_logger() -> ActivityLogger:
    return ActivityLogger(sink=get_supabase_service(), buffer_size=settings.log_buffer_size)


@lru_cache
def get_credential_store() -> CredentialStore:
    return CredentialStore(
        table=get_supabase_service(),
        cipher=CredentialCipher(settings.credential_encryption_key),
        activity=get_activity_logger(),
    )


@lru_cache
def get_broker() -> IntegrationBroker:
    activity = get_activity_logger()
    store = get_credential_store()
    return IntegrationBroker(
        credential_store=store,
        prober=ConnectivityProber(activity),
        fetcher=CatalogFetcher(store, activity, rates=ExchangeRateService()),
        importer=RemoteProductImporter(store, activity),
        activity=activity,
    )
