"""
Supabase service layer for database operations.
Handles the integrations table (encrypted credentials + non-secret metadata)
and the integration_logs table.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from supabase import Client, create_client

from app.config import settings
from app.integrations.errors import PersistenceError
from app.models.broker import Platform
from app.models.database import Integration, LogEntry
from app.services.tables import IntegrationTable, LogSink

logger = structlog.get_logger()

INTEGRATIONS_TABLE = "integrations"
LOGS_TABLE = "integration_logs"


class SupabaseService(IntegrationTable, LogSink):
    """Service for interacting with Supabase database."""

    def __init__(self, client: Optional[Client] = None):
        """
        Initialize Supabase client.

        Args:
            client: Pre-built client (tests); defaults to one built from settings
        """
        self.client: Client = client or create_client(
            settings.supabase_url, settings.supabase_service_key
        )

    @staticmethod
    def _to_row(merchant_id: str, platform: Platform, record: Integration) -> Dict[str, Any]:
        return {
            "user_id": merchant_id,
            "platform": platform.value,
            "store_name": record.store_name,
            "store_url": record.store_url,
            "encrypted_credentials": record.encrypted_credentials,
            "is_active": record.is_active,
            "metadata": record.metadata or {},
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

    # Integrations

    def upsert(self, merchant_id: str, platform: Platform, record: Integration) -> Integration:
        """
        Create or replace the integration row for (merchant, platform).
        Relies on the unique constraint on (user_id, platform).
        """
        try:
            result = (
                self.client.table(INTEGRATIONS_TABLE)
                .upsert(self._to_row(merchant_id, platform, record), on_conflict="user_id,platform")
                .execute()
            )
        except Exception as e:
            logger.error(
                "Failed to upsert integration",
                platform=platform.value,
                store_url=record.store_url,
                error_type=type(e).__name__,
            )
            raise PersistenceError("Failed to save integration") from e

        if not result.data:
            raise PersistenceError("No data returned from integration upsert")
        return Integration(**result.data[0])

    def list_by_platform(self, merchant_id: str, platform: Platform) -> List[Integration]:
        try:
            result = (
                self.client.table(INTEGRATIONS_TABLE)
                .select("*")
                .eq("user_id", merchant_id)
                .eq("platform", platform.value)
                .order("updated_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(
                "Failed to list integrations",
                platform=platform.value,
                error_type=type(e).__name__,
            )
            raise PersistenceError("Failed to list integrations") from e

        return [Integration(**row) for row in result.data] if result.data else []

    def get_by_id(self, integration_id: str) -> Optional[Integration]:
        try:
            # Don't use .single() - it throws exception on 0 rows
            result = (
                self.client.table(INTEGRATIONS_TABLE)
                .select("*")
                .eq("id", str(integration_id))
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("Failed to get integration by ID", error_type=type(e).__name__)
            raise PersistenceError("Failed to load integration") from e

        if result.data:
            return Integration(**result.data[0])
        return None

    def get_active(self, merchant_id: str, platform: Platform) -> Optional[Integration]:
        try:
            result = (
                self.client.table(INTEGRATIONS_TABLE)
                .select("*")
                .eq("user_id", merchant_id)
                .eq("platform", platform.value)
                .eq("is_active", True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "Failed to get active integration",
                platform=platform.value,
                error_type=type(e).__name__,
            )
            raise PersistenceError("Failed to load active integration") from e

        if result.data:
            return Integration(**result.data[0])
        return None

    def set_active(self, integration_id: str, is_active: bool) -> Optional[Integration]:
        try:
            result = (
                self.client.table(INTEGRATIONS_TABLE)
                .update(
                    {
                        "is_active": is_active,
                        "updated_at": datetime.now(timezone.utc).isoformat(),
                    }
                )
                .eq("id", str(integration_id))
                .execute()
            )
        except Exception as e:
            logger.error("Failed to update integration status", error_type=type(e).__name__)
            raise PersistenceError("Failed to update integration") from e

        if result.data:
            return Integration(**result.data[0])
        return None

    # Logs

    def append(self, entry: LogEntry) -> None:
        """Insert one activity log row. Errors propagate to the activity logger."""
        self.client.table(LOGS_TABLE).insert(entry.to_row()).execute()
