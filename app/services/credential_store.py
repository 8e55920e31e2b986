"""
Credential store: persists one active encrypted credential bundle per
(merchant, platform) and hands decrypted bundles to the prober, fetcher and
importer. Decrypted secrets never leave this process boundary.
"""

from typing import Any

import structlog

from app.integrations.crypto import CredentialCipher
from app.integrations.errors import (
    BrokerError,
    DecryptionError,
    InvalidInputError,
    PersistenceError,
)
from app.models.broker import CredentialBundle, Platform
from app.models.database import Integration, ListResult, SaveResult
from app.services.activity_logger import ActivityLogger
from app.services.tables import IntegrationTable
from app.utils.url_parsing import normalize_base_url

logger = structlog.get_logger()

SOURCE = "CREDENTIAL_STORE"


class CredentialStore:
    """Encrypted credential persistence keyed by (merchant, platform)."""

    def __init__(
        self,
        table: IntegrationTable,
        cipher: CredentialCipher,
        activity: ActivityLogger,
    ):
        self.table = table
        self.cipher = cipher
        self.activity = activity

    def save(
        self,
        merchant_id: str,
        platform: Platform,
        store_name: str,
        base_url: str,
        secrets: dict[str, str],
        metadata: dict[str, Any] | None = None,
    ) -> SaveResult:
        """
        Encrypt secrets and upsert the integration row for (merchant, platform).
        Does not probe connectivity; callers do that first.

        Args:
            merchant_id: Owning merchant
            platform: Target platform
            store_name: Display name
            base_url: Store base URL (scheme required)
            secrets: Platform secret fields (e.g. consumerKey/consumerSecret)
            metadata: Non-secret discovery data (API version, currency, ...)

        Returns:
            SaveResult with the stored row, or InvalidInput (missing store name,
            URL or secret field) / PersistenceError (table write failed)
        """
        secret_values = list(secrets.values())
        self.activity.info(
            SOURCE,
            f"Saving {platform.value} credentials",
            details={"platform": platform.value, "storeUrl": base_url},
            merchant_id=merchant_id,
            secret_values=secret_values,
        )

        try:
            if not store_name or not store_name.strip():
                raise InvalidInputError("Missing required field: storeName")
            base_url = normalize_base_url(base_url)
            for field in platform.secret_fields:
                if not (secrets.get(field) or "").strip():
                    raise InvalidInputError(f"Missing required field: {field}")

            bundle = CredentialBundle(
                platform=platform,
                base_url=base_url,
                secrets={field: secrets[field].strip() for field in platform.secret_fields},
            )
            record = Integration(
                user_id=merchant_id,
                platform=platform,
                store_name=store_name.strip(),
                store_url=base_url,
                encrypted_credentials=self.cipher.encrypt_bundle(bundle.model_dump(mode="json")),
                is_active=True,
                metadata=metadata or {},
            )
            stored = self.table.upsert(merchant_id, platform, record)
        except BrokerError as e:
            self.activity.error(
                SOURCE,
                f"Failed to save {platform.value} credentials",
                details={"platform": platform.value, "errorKind": e.kind.value, "error": e.detail},
                merchant_id=merchant_id,
                secret_values=secret_values,
            )
            return SaveResult.from_error(e)

        self.activity.success(
            SOURCE,
            f"Saved {platform.value} integration",
            details={"integrationId": stored.id, "storeUrl": stored.store_url},
            merchant_id=merchant_id,
        )
        return SaveResult(success=True, integration=stored)

    def list(self, merchant_id: str, platform: Platform) -> ListResult:
        """
        List integrations for a merchant and platform with the encrypted blob removed.
        A failed table read is returned as a PersistenceError result.
        """
        self.activity.info(
            SOURCE,
            f"Listing {platform.value} integrations",
            details={"platform": platform.value},
            merchant_id=merchant_id,
        )
        try:
            rows = self.table.list_by_platform(merchant_id, platform)
        except PersistenceError as e:
            self.activity.error(
                SOURCE,
                f"Failed to list {platform.value} integrations",
                details={"errorKind": e.kind.value, "error": e.detail},
                merchant_id=merchant_id,
            )
            return ListResult.from_error(e)

        self.activity.success(
            SOURCE,
            f"Listed {len(rows)} {platform.value} integration(s)",
            details={"platform": platform.value, "count": len(rows)},
            merchant_id=merchant_id,
        )
        return ListResult(
            success=True,
            integrations=[row.model_copy(update={"encrypted_credentials": None}) for row in rows],
        )

    def load_secrets(self, integration_id: str) -> CredentialBundle:
        """
        Decrypt the credential bundle of one integration. Internal use only.

        Raises:
            InvalidInputError: Unknown integration id
            DecryptionError: Blob malformed or key mismatch
            PersistenceError: Table read failed
        """
        self.activity.info(
            SOURCE,
            "Loading stored credentials",
            details={"integrationId": integration_id},
        )
        try:
            row = self.table.get_by_id(integration_id)
            if row is None:
                raise InvalidInputError(f"Integration not found: {integration_id}")
            bundle = self._decrypt(row)
        except BrokerError as e:
            self.activity.error(
                SOURCE,
                "Failed to load stored credentials",
                details={"integrationId": integration_id, "errorKind": e.kind.value, "error": e.detail},
            )
            raise

        self.activity.success(
            SOURCE,
            "Loaded stored credentials",
            details={"integrationId": integration_id, "platform": bundle.platform.value},
            merchant_id=row.user_id,
        )
        return bundle

    def get_active(self, merchant_id: str, platform: Platform) -> Integration | None:
        """Return the merchant's active integration for a platform, if any."""
        return self.table.get_active(merchant_id, platform)

    def deactivate(self, merchant_id: str, integration_id: str) -> Integration | None:
        """
        Mark an integration inactive. Only the owning merchant may do so.

        Raises:
            InvalidInputError: Integration belongs to another merchant
            PersistenceError: Table write failed
        """
        row = self.table.get_by_id(integration_id)
        if row is None:
            return None
        if row.user_id != merchant_id:
            raise InvalidInputError(f"Integration not found: {integration_id}")

        updated = self.table.set_active(integration_id, False)
        self.activity.info(
            SOURCE,
            f"Deactivated {row.platform.value} integration",
            details={"integrationId": integration_id},
            merchant_id=merchant_id,
        )
        return updated

    def _decrypt(self, row: Integration) -> CredentialBundle:
        bundle = self.cipher.decrypt_bundle(row.encrypted_credentials)
        try:
            return CredentialBundle(**bundle)
        except (TypeError, ValueError) as e:
            logger.error("Stored credential bundle has unexpected shape", integration_id=row.id)
            raise DecryptionError("Stored credentials have an unexpected shape") from e
